from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.response import success_response, APIResponse

from app.integrations.dependencies import get_notifier
from app.integrations.notifier import Notifier
from app.integrations.renderer import DocumentRenderer, get_renderer

from app.schemas.billing.invoice_schemas import (
    InvoiceOut,
    InvoiceListData,
)

from app.services.billing.invoice_service import (
    get_invoice,
    list_invoices,
    map_invoice,
    send_invoice,
)

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
)


@router.get(
    "/{invoice_id}",
    response_model=APIResponse[InvoiceOut],
)
async def get_invoice_api(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
):
    invoice = await get_invoice(db, invoice_id)
    return success_response(
        "Invoice retrieved successfully",
        map_invoice(invoice),
    )


@router.get(
    "/",
    response_model=APIResponse[InvoiceListData],
)
async def list_invoices_api(
    db: AsyncSession = Depends(get_db),
    account_id: int | None = Query(None, description="Filter by account"),
    quote_id: int | None = Query(None, description="Filter by originating quote"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    data = await list_invoices(
        db,
        account_id=account_id,
        quote_id=quote_id,
        page=page,
        page_size=page_size,
    )
    return success_response(
        "Invoices retrieved successfully",
        data,
    )


@router.post(
    "/{invoice_id}/send",
    response_model=APIResponse[InvoiceOut],
)
async def send_invoice_api(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    renderer: DocumentRenderer = Depends(get_renderer),
):
    invoice = await send_invoice(db, invoice_id, notifier=notifier, renderer=renderer)
    return success_response(
        "Invoice sent successfully",
        map_invoice(invoice),
    )
