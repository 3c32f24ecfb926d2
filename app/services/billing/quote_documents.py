# Context builders for rendered quote, contract and invoice documents.

from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

from app.core.config import BRAND_NAME
from app.models.billing.invoice_models import Invoice
from app.models.billing.quote_models import Quote, QuoteItem
from app.services.billing.quote_financials import (
    ItemKind,
    items_of_kind,
    line_amount,
    one_time_charge,
    recurring_charge,
    total,
)
from app.services.billing.quote_service import owner_name
from app.utils.decimal_utils import money_format

DATE_FORMAT = "%B %d, %Y"


def term_label(term: int) -> str:
    return "Month-To-Month" if not term else f"{term} Months"


def msa_start(q: Quote, now: datetime | None = None) -> datetime:
    return q.activated_on or now or datetime.now(timezone.utc)


def msa_end(q: Quote, now: datetime | None = None) -> datetime:
    return msa_start(q, now) + relativedelta(months=q.term or 0)


def _row(i: QuoteItem) -> dict:
    return {
        "name": i.item.name,
        "qty": i.qty,
        "price": money_format(i.price),
        "line_total": money_format(line_amount(i)),
    }


def build_quote_context(q: Quote, title: str | None = None) -> dict:
    return {
        "brand": BRAND_NAME,
        "title": title or f"Quote #{q.id}",
        "quote_id": q.id,
        "company": owner_name(q),
        "issued_on": (q.sent_on or q.created_at).strftime(DATE_FORMAT),
        "term_label": term_label(q.term),
        "services": [_row(i) for i in items_of_kind(q, ItemKind.service)],
        "products": [_row(i) for i in items_of_kind(q, ItemKind.product)],
        "mrr": money_format(recurring_charge(q)),
        "nrc": money_format(one_time_charge(q)),
        "tax": money_format(q.tax),
        "total": money_format(total(q)),
        "notes": q.notes,
    }


def build_contract_context(q: Quote, now: datetime | None = None) -> dict:
    context = build_quote_context(q, f"Service Agreement #{q.id}")
    context.update(
        {
            "msa_start": msa_start(q, now).strftime(DATE_FORMAT),
            "msa_end": msa_end(q, now).strftime(DATE_FORMAT),
            "signer": q.contract_name,
            "contract_ip": q.contract_ip,
        }
    )
    return context


def build_invoice_context(invoice: Invoice) -> dict:
    return {
        "brand": BRAND_NAME,
        "title": f"Invoice #{invoice.id}",
        "company": invoice.account.name if invoice.account else None,
        "issued_on": invoice.created_at.strftime(DATE_FORMAT),
        "due_on": invoice.due_on.strftime(DATE_FORMAT) if invoice.due_on else None,
        "po": invoice.po,
        "items": [
            {
                "name": i.name,
                "qty": i.qty,
                "price": money_format(i.price),
                "line_total": money_format(i.line_total),
            }
            for i in invoice.items
        ],
        "total": money_format(invoice.total),
    }
