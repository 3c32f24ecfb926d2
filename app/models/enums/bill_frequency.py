from decimal import Decimal
from enum import Enum


class BillFrequency(str, Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    semi_annually = "semi_annually"
    annually = "annually"

    @property
    def months(self) -> int:
        return {
            BillFrequency.monthly: 1,
            BillFrequency.quarterly: 3,
            BillFrequency.semi_annually: 6,
            BillFrequency.annually: 12,
        }[self]

    def split_total(self, total: Decimal, payments: int) -> Decimal:
        """Amount billed each period when ``total`` is financed over ``payments`` periods."""
        if payments <= 0:
            raise ValueError("payments must be positive")
        return Decimal(total) / Decimal(payments)
