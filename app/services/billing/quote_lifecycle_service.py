"""
Quote lifecycle transitions.

    draft -> sent -> approved | declined -> executed

``terminated`` is reached only from ``executed``, when a co-term quote
replaces it (see ``quote_coterm_service``). Execution is guarded twice: the
row is locked with ``SELECT ... FOR UPDATE`` and ``activated_on`` is claimed
with a conditional UPDATE, so a second execute fails with ``EditingLocked``.
"""

import base64
import binascii
import logging
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.activity_codes import ActivityCode
from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException, EditingLocked
from app.core.settings import QuoteSettings
from app.integrations.file_storage import FileStorage
from app.integrations.notifier import Attachment, Notifier, Recipient
from app.integrations.renderer import DocumentRenderer, render_pdf
from app.models.billing.quote_models import Quote
from app.models.enums.lead_status import LeadStatus
from app.models.enums.quote_status import QuoteStatus
from app.models.masters.account_models import Account
from app.schemas.billing.quote_schemas import QuoteExecute
from app.services.billing.quote_documents import (
    build_contract_context,
    build_quote_context,
    term_label,
)
from app.services.billing.quote_financials import activity_widget, total
from app.services.billing.quote_service import (
    claim_activation,
    ensure_editable,
    get_quote_or_404,
    owner_name,
)
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import money_format

logger = logging.getLogger(__name__)


def term_options(settings: QuoteSettings) -> list[dict]:
    return [{"value": t, "label": term_label(t)} for t in (0, *settings.terms)]


def _notification_models(q: Quote) -> dict:
    return {
        "quote_id": q.id,
        "company": owner_name(q),
        "total": money_format(total(q)),
        "widget": activity_widget(q),
    }


# =====================================================
# SEND
# =====================================================
async def send_quote(
    db: AsyncSession,
    quote_id: int,
    *,
    notifier: Notifier,
    renderer: DocumentRenderer,
    now: datetime | None = None,
) -> Quote:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)

    now = now or datetime.now(timezone.utc)
    q.presentable = True
    q.sent_on = now
    if q.status == QuoteStatus.draft:
        q.status = QuoteStatus.sent
    q.version += 1

    pdf = await render_pdf(renderer, "quote", build_quote_context(q))
    attachments = [Attachment(f"Quote-{q.id}.pdf", pdf)]
    models = _notification_models(q)
    widget = activity_widget(q)

    if q.account is None:
        lead = q.lead
        await notifier.deliver(
            "lead.quote",
            Recipient(lead.email, lead.contact),
            models,
            attachments,
        )
        if lead.agent_email:
            await notifier.deliver("lead.quote", Recipient(lead.agent_email), models, attachments)
        lead.status = LeadStatus.quote_sent

        await emit_activity(
            db,
            code=ActivityCode.LEAD_QUOTE,
            subject_id=q.id,
            detail=widget,
            amount=widget,
        )

    elif q.coterm_id is not None:
        account = q.account
        await notifier.deliver(
            "account.coterm",
            Recipient(account.admin_email, account.admin_name),
            {**models, "source_quote_id": q.coterm_id},
            attachments,
        )
        await emit_activity(
            db,
            code=ActivityCode.COTERM_QUOTE,
            subject_id=q.id,
            detail=widget,
            amount=widget,
        )

    else:
        account = q.account
        await notifier.deliver(
            "account.quote",
            Recipient(account.admin_email, account.admin_name),
            models,
            attachments,
        )
        await emit_activity(
            db,
            code=ActivityCode.ACCOUNT_QUOTE,
            subject_id=q.id,
            detail=widget,
            amount=widget,
        )

    await db.commit()

    logger.info("Quote sent", extra={"quote_id": q.id, "status": q.status.value})
    return q


# =====================================================
# APPROVE / DECLINE
# =====================================================
async def _transition_from_sent(
    db: AsyncSession,
    quote_id: int,
    target: QuoteStatus,
    **values,
) -> Quote:
    result = await db.execute(
        update(Quote)
        .where(
            Quote.id == quote_id,
            Quote.status == QuoteStatus.sent,
            Quote.activated_on.is_(None),
            Quote.archived.is_(False),
            Quote.is_deleted.is_(False),
        )
        .values(status=target, version=Quote.version + 1, **values)
        .returning(Quote.id)
        .execution_options(synchronize_session=False)
    )

    if result.scalar_one_or_none() is None:
        q = await get_quote_or_404(db, quote_id)
        ensure_editable(q)
        raise AppException(
            409,
            f"Quote cannot move from {q.status.value} to {target.value}",
            ErrorCode.QUOTE_INVALID_STATE,
            details={"quote_id": quote_id, "status": q.status.value},
        )

    return await get_quote_or_404(db, quote_id, refresh=True)


async def approve_quote(db: AsyncSession, quote_id: int) -> Quote:
    q = await _transition_from_sent(db, quote_id, QuoteStatus.approved)

    await emit_activity(
        db,
        code=ActivityCode.APPROVE_QUOTE,
        subject_id=q.id,
        target_id=q.id,
    )

    await db.commit()
    return q


async def decline_quote(db: AsyncSession, quote_id: int, reason: str) -> Quote:
    q = await _transition_from_sent(
        db,
        quote_id,
        QuoteStatus.declined,
        declined_reason=reason,
    )

    await emit_activity(
        db,
        code=ActivityCode.DECLINE_QUOTE,
        subject_id=q.id,
        target_id=q.id,
        reason=reason,
    )

    await db.commit()
    return q


# =====================================================
# EXECUTE (direct)
# =====================================================
def decode_signature(data_url: str) -> bytes:
    """Accepts a ``data:image/png;base64,...`` URL or bare base64."""
    _, sep, encoded = data_url.partition(",")
    if not sep:
        encoded = data_url
    try:
        data = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError):
        data = b""
    if not data:
        raise AppException(400, "Signature is not valid base64 image data", ErrorCode.QUOTE_INVALID_SIGNATURE)
    return data


async def execute_direct(
    db: AsyncSession,
    quote_id: int,
    payload: QuoteExecute,
    contract_ip: str | None,
    *,
    storage: FileStorage,
    now: datetime | None = None,
) -> Quote:
    """
    Sign and execute a quote, reassigning it to ``payload.account_id``.

    A lead quote becomes an account quote here. An account quote can only
    be signed for its own account. The quote is archived and frozen once
    this commits.
    """
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)

    if q.coterm_id is not None:
        raise AppException(
            409,
            "Co-term quotes replace their source contract and must be executed as a co-term",
            ErrorCode.QUOTE_INVALID_STATE,
            details={"quote_id": q.id, "coterm_id": q.coterm_id},
        )
    if q.account_id is not None and q.account_id != payload.account_id:
        raise AppException(
            409,
            "Quote belongs to a different account",
            ErrorCode.QUOTE_INVALID_OWNER,
            details={"quote_id": q.id, "account_id": q.account_id},
        )

    account = await db.get(Account, payload.account_id)
    if not account or account.is_deleted or not account.is_active:
        raise AppException(404, "Account not found", ErrorCode.ACCOUNT_NOT_FOUND)

    signature = decode_signature(payload.signature)
    now = now or datetime.now(timezone.utc)

    await claim_activation(db, q, now)

    signature_id = await storage.store(f"{q.id}-signature.png", "image/png", signature, q.id)

    q.contract_name = payload.name
    q.contract_ip = contract_ip
    q.signature_id = signature_id
    q.contract_expires = now + relativedelta(months=q.term) if q.term else None
    q.status = QuoteStatus.executed
    q.archived = True
    q.account_id = account.id
    q.account = account
    q.version += 1

    if q.lead is not None:
        q.lead.status = LeadStatus.converted

    await emit_activity(
        db,
        code=ActivityCode.EXECUTE_QUOTE,
        subject_id=q.id,
        target_id=q.id,
        company=account.name,
        signer=payload.name,
    )

    await db.commit()

    logger.info(
        "Quote executed",
        extra={"quote_id": q.id, "account_id": account.id},
    )
    return await get_quote_or_404(db, q.id, refresh=True)


# =====================================================
# SIGNED CONTRACT
# =====================================================
async def send_signed_contract(
    db: AsyncSession,
    quote_id: int,
    *,
    notifier: Notifier,
    renderer: DocumentRenderer,
) -> Quote:
    q = await get_quote_or_404(db, quote_id)
    if q.activated_on is None or q.account is None:
        raise AppException(
            409,
            "Only executed account quotes have a signed contract",
            ErrorCode.QUOTE_INVALID_STATE,
            details={"quote_id": q.id, "status": q.status.value},
        )

    account = q.account
    pdf = await render_pdf(renderer, "contract", build_contract_context(q))
    await notifier.deliver(
        "quote.signed",
        Recipient(account.admin_email, account.admin_name),
        _notification_models(q),
        [Attachment(f"Contract-{q.id}.pdf", pdf)],
    )

    await emit_activity(
        db,
        code=ActivityCode.SEND_SIGNED_CONTRACT,
        subject_id=q.id,
        target_id=q.id,
        recipient=account.admin_email or account.name,
    )

    await db.commit()
    return q
