from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- QUOTES ----------------
    CREATE_QUOTE = "CREATE_QUOTE"
    ADD_QUOTE_ITEM = "ADD_QUOTE_ITEM"
    UPDATE_QUOTE_ITEM = "UPDATE_QUOTE_ITEM"
    REMOVE_QUOTE_ITEM = "REMOVE_QUOTE_ITEM"
    MOVE_QUOTE_ITEM = "MOVE_QUOTE_ITEM"
    CALCULATE_TAX = "CALCULATE_TAX"

    # ---------------- LIFECYCLE ----------------
    LEAD_QUOTE = "LEAD_QUOTE"
    ACCOUNT_QUOTE = "ACCOUNT_QUOTE"
    COTERM_QUOTE = "COTERM_QUOTE"
    APPROVE_QUOTE = "APPROVE_QUOTE"
    DECLINE_QUOTE = "DECLINE_QUOTE"
    EXECUTE_QUOTE = "EXECUTE_QUOTE"
    EXECUTE_COTERM = "EXECUTE_COTERM"
    TERMINATE_QUOTE = "TERMINATE_QUOTE"
    SEND_SIGNED_CONTRACT = "SEND_SIGNED_CONTRACT"
    ARCHIVE_QUOTE = "ARCHIVE_QUOTE"

    # ---------------- INVOICES ----------------
    CREATE_INVOICE = "CREATE_INVOICE"
    SEND_INVOICE = "SEND_INVOICE"
