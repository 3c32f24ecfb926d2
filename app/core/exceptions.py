from fastapi import HTTPException
from app.constants.error_codes import ErrorCode


class AppException(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: ErrorCode,
        details: dict | None = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.details = details


class EditingLocked(AppException):
    """The quote is executed or archived; its ledger and send state are frozen."""

    def __init__(self, quote_id: int, message: str = "Quote can no longer be edited"):
        super().__init__(
            409,
            message,
            ErrorCode.QUOTE_EDITING_LOCKED,
            details={"quote_id": quote_id},
        )


class OrchestrationFailure(AppException):
    """
    A co-term step failed. The surrounding transaction has been rolled
    back, so the call can be retried once the cause is fixed.
    """

    def __init__(self, quote_id: int, step: str, reason: str):
        super().__init__(
            500,
            f"Co-term execution failed during {step}",
            ErrorCode.COTERM_FAILED,
            details={"quote_id": quote_id, "step": step, "reason": reason},
        )
        self.step = step


class IntegrationUnavailable(Exception):
    """Raised by external collaborator clients; never leaves the service layer."""


class CotermSourceUnavailable(AppException):
    """The quote a co-term replaces is not (or no longer) an executed contract."""

    def __init__(self, quote_id: int, source_quote_id: int | None = None, message: str | None = None):
        details = {"quote_id": quote_id}
        if source_quote_id is not None:
            details["source_quote_id"] = source_quote_id
        super().__init__(
            409,
            message or "Co-term source must be an executed quote on the same account",
            ErrorCode.COTERM_INVALID_SOURCE,
            details=details,
        )
