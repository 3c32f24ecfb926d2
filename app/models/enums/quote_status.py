# app/models/enums/quote_status.py
import enum

class QuoteStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    approved = "approved"
    declined = "declined"
    executed = "executed"
    terminated = "terminated"
