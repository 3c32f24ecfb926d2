from enum import Enum

class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    partial = "partial"
    paid = "paid"
    void = "void"
