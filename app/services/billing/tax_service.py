"""
Quote tax resolution.

Order of precedence:

1. the finance integration, when it answers;
2. the location table for the owning account (or lead) state;
3. a non-taxable owner always yields zero;
4. no rate means no update at all.

Every step returns a ``TaxResolution`` instead of raising; nothing in
here propagates a collaborator failure to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.core.config import FINANCE_TIMEOUT_SECONDS
from app.core.exceptions import IntegrationUnavailable
from app.integrations.finance_client import FinanceIntegration
from app.models.billing.quote_models import Quote
from app.models.masters.tax_location_models import TaxLocation
from app.services.billing.quote_financials import ItemKind, item_kind, line_amount
from app.services.billing.quote_service import get_quote_or_404
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

SOURCE_INTEGRATION = "integration"
SOURCE_LOCATION = "location"
SOURCE_NON_TAXABLE = "non_taxable"
SOURCE_UNCHANGED = "unchanged"


@dataclass(frozen=True)
class Resolved:
    amount: Decimal
    source: str


@dataclass(frozen=True)
class Unresolved:
    reason: str


TaxResolution = Resolved | Unresolved


async def rate_for(db: AsyncSession, state: str | None) -> Decimal | None:
    if not state:
        return None
    rate = await db.scalar(
        select(TaxLocation.rate).where(TaxLocation.state == state.strip().upper())
    )
    return to_decimal(rate) if rate is not None else None


async def integration_tax(
    quote: Quote,
    finance: FinanceIntegration,
    timeout: float = FINANCE_TIMEOUT_SECONDS,
) -> TaxResolution:
    try:
        amount = await asyncio.wait_for(finance.tax_by_quote(quote), timeout=timeout)
    except IntegrationUnavailable as e:
        return Unresolved(f"integration unavailable: {e}")
    except asyncio.TimeoutError:
        return Unresolved("integration timed out")
    return Resolved(to_decimal(amount), SOURCE_INTEGRATION)


async def location_tax(db: AsyncSession, quote: Quote) -> TaxResolution:
    # Account wins when both are linked (a lead quote reassigned on execution).
    owner = quote.account or quote.lead
    if owner is None:
        return Unresolved("quote has no owner")

    if not owner.taxable:
        return Resolved(ZERO, SOURCE_NON_TAXABLE)

    rate = await rate_for(db, owner.state)
    if not rate:
        return Unresolved(f"no tax rate for state {owner.state!r}")

    total = ZERO
    for item in quote.items:
        if item_kind(item) == ItemKind.deleted or not item.item.taxable:
            continue
        total += line_amount(item) * rate / 100
    return Resolved(total, SOURCE_LOCATION)


async def resolve_tax(
    db: AsyncSession,
    quote: Quote,
    finance: FinanceIntegration,
) -> TaxResolution:
    resolution = await integration_tax(quote, finance)
    if isinstance(resolution, Resolved):
        return resolution

    logger.info(
        "Falling back to location tax",
        extra={"quote_id": quote.id, "reason": resolution.reason},
    )
    return await location_tax(db, quote)


async def calculate_tax(
    db: AsyncSession,
    quote_id: int,
    finance: FinanceIntegration,
) -> tuple[Quote, TaxResolution]:
    """Resolve and persist ``Quote.tax``. Unresolved leaves it untouched."""
    q = await get_quote_or_404(db, quote_id, for_update=True)

    resolution = await resolve_tax(db, q, finance)

    if isinstance(resolution, Unresolved):
        logger.info(
            "Quote tax left unchanged",
            extra={"quote_id": q.id, "reason": resolution.reason},
        )
        # nothing changed; commit only releases the row lock
        await db.commit()
        return q, resolution

    q.tax = round_money(resolution.amount)

    await emit_activity(
        db,
        code=ActivityCode.CALCULATE_TAX,
        subject_id=q.id,
        target_id=q.id,
        amount=q.tax,
        source=resolution.source,
    )

    await db.commit()
    return q, resolution
