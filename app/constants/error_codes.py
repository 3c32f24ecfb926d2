from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- MASTERS ----------------
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    LEAD_NOT_FOUND = "LEAD_NOT_FOUND"
    BILL_ITEM_NOT_FOUND = "BILL_ITEM_NOT_FOUND"

    # ---------------- QUOTES ----------------
    QUOTE_NOT_FOUND = "QUOTE_NOT_FOUND"
    QUOTE_ITEM_NOT_FOUND = "QUOTE_ITEM_NOT_FOUND"
    QUOTE_INVALID_OWNER = "QUOTE_INVALID_OWNER"
    QUOTE_INVALID_STATE = "QUOTE_INVALID_STATE"
    QUOTE_EDITING_LOCKED = "QUOTE_EDITING_LOCKED"
    QUOTE_INVALID_SIGNATURE = "QUOTE_INVALID_SIGNATURE"
    COTERM_INVALID_SOURCE = "COTERM_INVALID_SOURCE"
    COTERM_FAILED = "COTERM_FAILED"

    # ---------------- DOCUMENTS ----------------
    DOCUMENT_RENDER_TIMEOUT = "DOCUMENT_RENDER_TIMEOUT"

    # ---------------- INVOICES ----------------
    INVOICE_NOT_FOUND = "INVOICE_NOT_FOUND"
    INVOICE_INVALID_STATE = "INVOICE_INVALID_STATE"
