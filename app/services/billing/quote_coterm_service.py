"""
Co-term execution.

A co-term quote replaces an executed quote on the same account and inherits
its contract (signature, term, expiry). Executing one runs six steps:

1. remove the account items contracted by the source quote
2. activate the current quote with the source's contract fields
3. terminate the source quote
4. contract the current quote's services as account items
5. invoice and send the current quote's products, if any
6. notify the account admin with the rendered contract

All six share one transaction. Any failure rolls everything back and
surfaces as ``OrchestrationFailure`` naming the step, so the call can be
retried as a whole.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.constants.error_codes import ErrorCode
from app.core.exceptions import (
    AppException,
    CotermSourceUnavailable,
    EditingLocked,
    OrchestrationFailure,
)
from app.integrations.notifier import Attachment, Notifier, Recipient
from app.integrations.renderer import DocumentRenderer, render_pdf
from app.models.billing.quote_models import Quote
from app.models.enums.quote_status import QuoteStatus
from app.models.masters.account_models import AccountItem
from app.services.billing.invoice_service import create_settlement_invoice, mark_invoice_sent
from app.services.billing.quote_documents import build_contract_context
from app.services.billing.quote_financials import ItemKind, items_of_kind
from app.services.billing.quote_service import claim_activation, ensure_editable, get_quote_or_404
from app.utils.activity_helpers import emit_activity

logger = logging.getLogger(__name__)

STEP_REMOVE_SOURCE_ITEMS = "remove_source_items"
STEP_ACTIVATE = "activate"
STEP_TERMINATE_SOURCE = "terminate_source"
STEP_MIGRATE_SERVICES = "migrate_services"
STEP_INVOICE_PRODUCTS = "invoice_products"
STEP_NOTIFY = "notify"


@dataclass
class CotermResult:
    quote: Quote
    source_quote_id: int
    removed_items: int
    migrated_items: int
    invoice_id: int | None = None


def _check_preconditions(q: Quote) -> Quote:
    ensure_editable(q)

    if q.coterm_id is None or q.coterm is None:
        raise CotermSourceUnavailable(q.id, message="Quote is not a co-term quote")
    if q.account is None:
        raise AppException(
            409,
            "Co-term quotes must belong to an account",
            ErrorCode.QUOTE_INVALID_OWNER,
            details={"quote_id": q.id},
        )

    source = q.coterm
    if (
        source.is_deleted
        or source.status != QuoteStatus.executed
        or source.account_id != q.account_id
    ):
        raise CotermSourceUnavailable(q.id, source.id)
    return source


async def execute_coterm(
    db: AsyncSession,
    quote_id: int,
    *,
    notifier: Notifier,
    renderer: DocumentRenderer,
    now: datetime | None = None,
) -> CotermResult:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    source = _check_preconditions(q)
    account = q.account
    now = now or datetime.now(timezone.utc)

    step = STEP_REMOVE_SOURCE_ITEMS
    try:
        removed = await db.execute(
            delete(AccountItem)
            .where(
                AccountItem.account_id == account.id,
                AccountItem.quote_id == source.id,
            )
            .execution_options(synchronize_session=False)
        )
        removed_items = removed.rowcount or 0

        step = STEP_ACTIVATE
        await claim_activation(db, q, now)
        q.contract_expires = source.contract_expires
        q.term = source.term
        q.signature_id = source.signature_id
        q.contract_name = source.contract_name
        q.contract_ip = source.contract_ip
        q.active = False
        q.status = QuoteStatus.executed
        q.version += 1

        step = STEP_TERMINATE_SOURCE
        # the source row is not locked; only one co-term may terminate it
        terminated = await db.execute(
            update(Quote)
            .where(
                Quote.id == source.id,
                Quote.status == QuoteStatus.executed,
                Quote.is_deleted.is_(False),
            )
            .values(
                status=QuoteStatus.terminated,
                contract_expires=now,
                active=False,
                version=Quote.version + 1,
            )
            .returning(Quote.id)
            .execution_options(synchronize_session=False)
        )
        if terminated.scalar_one_or_none() is None:
            raise CotermSourceUnavailable(
                q.id, source.id, "Co-term source was terminated by another co-term"
            )
        await db.refresh(source)

        step = STEP_MIGRATE_SERVICES
        migrated_items = 0
        for item in items_of_kind(q, ItemKind.service):
            db.add(
                AccountItem(
                    account_id=account.id,
                    item=item.item,
                    quote_id=q.id,
                    description=item.item.description,
                    price=item.price,
                    qty=item.qty,
                    notes=item.notes,
                    meta=item.meta,
                )
            )
            migrated_items += 1
        await db.flush()

        step = STEP_INVOICE_PRODUCTS
        invoice_id = None
        products = items_of_kind(q, ItemKind.product)
        if products:
            invoice = await create_settlement_invoice(db, account, q, products, now)
            await mark_invoice_sent(db, invoice, notifier=notifier, renderer=renderer, now=now)
            invoice_id = invoice.id

        step = STEP_NOTIFY
        pdf = await render_pdf(renderer, "contract", build_contract_context(q, now))
        await notifier.deliver(
            "account.cotermexe",
            Recipient(account.admin_email, account.admin_name),
            {"quote_id": q.id, "source_quote_id": source.id, "company": account.name},
            [Attachment(f"Contract-{q.id}.pdf", pdf)],
        )

        await emit_activity(
            db,
            code=ActivityCode.EXECUTE_COTERM,
            subject_id=q.id,
            target_id=q.id,
            source_id=source.id,
        )
        await emit_activity(
            db,
            code=ActivityCode.TERMINATE_QUOTE,
            subject_id=source.id,
            target_id=source.id,
            replacement_id=q.id,
        )

        await db.commit()

    except (EditingLocked, CotermSourceUnavailable):
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(
            "Co-term execution failed",
            extra={"quote_id": quote_id, "step": step},
        )
        raise OrchestrationFailure(quote_id, step, str(e)) from e

    logger.info(
        "Co-term executed",
        extra={
            "quote_id": q.id,
            "source_quote_id": source.id,
            "removed_items": removed_items,
            "migrated_items": migrated_items,
            "invoice_id": invoice_id,
        },
    )

    return CotermResult(
        quote=await get_quote_or_404(db, q.id, refresh=True),
        source_quote_id=source.id,
        removed_items=removed_items,
        migrated_items=migrated_items,
        invoice_id=invoice_id,
    )
