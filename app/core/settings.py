# app/core/settings.py

from dataclasses import dataclass, field
from decimal import Decimal

from app.core.config import (
    QUOTES_SHOW_DISCOUNT,
    QUOTES_MARGIN_TARGET,
    QUOTES_TERMS,
)


@dataclass(frozen=True)
class QuoteSettings:
    """
    Quote behaviour switches handed to the financial and lifecycle
    services at call time.
    """

    show_discount: bool = False
    margin_target: Decimal = Decimal("40")
    terms: tuple[int, ...] = field(default_factory=lambda: (12, 24, 36))


def _parse_terms(raw: str) -> tuple[int, ...]:
    return tuple(int(t.strip()) for t in raw.split(",") if t.strip())


def load_quote_settings() -> QuoteSettings:
    return QuoteSettings(
        show_discount=QUOTES_SHOW_DISCOUNT,
        margin_target=QUOTES_MARGIN_TARGET,
        terms=_parse_terms(QUOTES_TERMS),
    )


# =====================================================
# DEPENDENCY
# =====================================================
def get_quote_settings() -> QuoteSettings:
    return load_quote_settings()
