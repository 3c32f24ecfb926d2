from enum import Enum

class LeadStatus(str, Enum):
    new = "new"
    quote_sent = "quote_sent"
    converted = "converted"
    lost = "lost"
