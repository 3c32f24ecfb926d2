from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- QUOTES ----------------
    ActivityCode.CREATE_QUOTE:
        "created quote #{target_id} for {company}",

    ActivityCode.ADD_QUOTE_ITEM:
        "added {item_name} (x{qty}) to quote #{target_id}",

    ActivityCode.UPDATE_QUOTE_ITEM:
        "updated {item_name} on quote #{target_id}: {changes}",

    ActivityCode.REMOVE_QUOTE_ITEM:
        "removed {item_name} from quote #{target_id}",

    ActivityCode.MOVE_QUOTE_ITEM:
        "moved {item_name} on quote #{target_id} to position {position}",

    ActivityCode.CALCULATE_TAX:
        "calculated tax of ${amount} for quote #{target_id} ({source})",

    # ---------------- LIFECYCLE ----------------
    ActivityCode.LEAD_QUOTE:
        "sent a quote ({amount})",

    ActivityCode.ACCOUNT_QUOTE:
        "sent a new quote ({amount})",

    ActivityCode.COTERM_QUOTE:
        "sent a cotermed quote ({amount})",

    ActivityCode.APPROVE_QUOTE:
        "approved quote #{target_id}",

    ActivityCode.DECLINE_QUOTE:
        "declined quote #{target_id}: {reason}",

    ActivityCode.EXECUTE_QUOTE:
        "executed quote #{target_id} for {company} (signed by {signer})",

    ActivityCode.EXECUTE_COTERM:
        "executed co-term quote #{target_id} replacing quote #{source_id}",

    ActivityCode.TERMINATE_QUOTE:
        "terminated quote #{target_id}; replaced by quote #{replacement_id}",

    ActivityCode.SEND_SIGNED_CONTRACT:
        "sent signed contract for quote #{target_id} to {recipient}",

    ActivityCode.ARCHIVE_QUOTE:
        "archived quote #{target_id}: {changes}",

    # ---------------- INVOICES ----------------
    ActivityCode.CREATE_INVOICE:
        "created invoice #{target_id} from quote #{quote_id} ({count} items)",

    ActivityCode.SEND_INVOICE:
        "sent invoice #{target_id} ({amount}) to {recipient}",
}
