# app/integrations/finance_client.py

import logging
from decimal import Decimal, InvalidOperation
from typing import Protocol

import requests
from fastapi.concurrency import run_in_threadpool

from app.core.config import FINANCE_API_URL, FINANCE_API_KEY, FINANCE_TIMEOUT_SECONDS
from app.core.exceptions import IntegrationUnavailable
from app.models.billing.quote_models import Quote

logger = logging.getLogger(__name__)


class FinanceIntegration(Protocol):
    async def tax_by_quote(self, quote: Quote) -> Decimal:
        """Tax owed on the quote, or IntegrationUnavailable."""
        ...


def _quote_payload(quote: Quote) -> dict:
    owner = quote.account or quote.lead
    return {
        "quote_id": quote.id,
        "state": getattr(owner, "state", None),
        "lines": [
            {
                "code": i.item.code,
                "taxable": i.item.taxable,
                "price": str(i.price),
                "qty": i.qty,
            }
            for i in quote.items
            if i.item is not None and not i.item.is_deleted
        ],
    }


class HttpFinanceIntegration:
    """
    Accounting integration reached over HTTP.

    Every failure mode (not configured, network error, timeout, non-200,
    malformed body) surfaces as IntegrationUnavailable so the caller can
    fall back to location based tax.
    """

    def __init__(
        self,
        base_url: str = FINANCE_API_URL,
        api_key: str = FINANCE_API_KEY,
        timeout: float = FINANCE_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _post(self, path: str, body: dict) -> requests.Response:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return requests.post(
            f"{self.base_url}{path}",
            json=body,
            headers=headers,
            timeout=self.timeout,
        )

    async def tax_by_quote(self, quote: Quote) -> Decimal:
        if not self.base_url:
            raise IntegrationUnavailable("finance integration not configured")

        try:
            resp = await run_in_threadpool(self._post, "/tax/quote", _quote_payload(quote))
        except requests.RequestException as e:
            logger.info("Finance tax request failed", extra={"quote_id": quote.id, "error": str(e)})
            raise IntegrationUnavailable(str(e)) from e

        if resp.status_code != 200:
            raise IntegrationUnavailable(f"finance API returned {resp.status_code}")

        try:
            return Decimal(str(resp.json()["tax"]))
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise IntegrationUnavailable(f"malformed finance response: {e}") from e


def get_finance_integration() -> FinanceIntegration:
    return HttpFinanceIntegration()
