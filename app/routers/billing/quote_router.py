from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.settings import QuoteSettings, get_quote_settings
from app.utils.response import success_response, APIResponse

from app.integrations.analysis_engine import AnalysisEngine, get_analysis_engine
from app.integrations.dependencies import get_file_storage, get_notifier
from app.integrations.file_storage import FileStorage
from app.integrations.finance_client import FinanceIntegration, get_finance_integration
from app.integrations.notifier import Notifier
from app.integrations.renderer import DocumentRenderer, get_renderer

from app.models.enums.quote_status import QuoteStatus

from app.schemas.billing.quote_schemas import (
    QuoteCreate,
    QuoteOut,
    QuoteListData,
    QuoteItemCreate,
    QuoteItemUpdate,
    QuoteItemMove,
    QuoteDecline,
    QuoteExecute,
    QuoteFinancialsOut,
    TaxResultOut,
    CotermResultOut,
)

from app.services.billing.quote_service import (
    create_quote,
    delete_quote,
    get_quote_or_404,
    list_quotes,
    map_quote,
)
from app.services.billing.quote_ledger_service import (
    add_item,
    update_item,
    remove_item,
    move_item,
)
from app.services.billing.quote_lifecycle_service import (
    send_quote,
    approve_quote,
    decline_quote,
    execute_direct,
    send_signed_contract,
    term_options,
)
from app.services.billing.quote_coterm_service import execute_coterm
from app.services.billing.quote_financials import margin
from app.services.billing.tax_service import Resolved, SOURCE_UNCHANGED, calculate_tax
from app.utils.decimal_utils import round_money

router = APIRouter(
    prefix="/quotes",
    tags=["Quotes"],
)


# =====================================================
# QUOTES
# =====================================================
@router.post(
    "",
    response_model=APIResponse[QuoteOut],
)
async def create_quote_api(
    payload: QuoteCreate,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    q = await create_quote(db, payload)
    return success_response(
        "Quote created successfully",
        map_quote(q, settings),
    )


@router.get(
    "/",
    response_model=APIResponse[QuoteListData],
)
async def list_quotes_api(
    db: AsyncSession = Depends(get_db),
    account_id: int | None = Query(None, description="Filter by account"),
    lead_id: int | None = Query(None, description="Filter by lead"),
    status: QuoteStatus | None = Query(None),
    include_archived: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    data = await list_quotes(
        db=db,
        account_id=account_id,
        lead_id=lead_id,
        status=status,
        include_archived=include_archived,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response(
        "Quotes retrieved successfully",
        data,
    )


@router.get(
    "/terms",
    response_model=APIResponse[list[dict]],
)
async def term_options_api(
    settings: QuoteSettings = Depends(get_quote_settings),
):
    return success_response("Term options retrieved successfully", term_options(settings))


@router.get(
    "/{quote_id}",
    response_model=APIResponse[QuoteOut],
)
async def get_quote_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    q = await get_quote_or_404(db, quote_id)
    return success_response(
        "Quote retrieved successfully",
        map_quote(q, settings),
    )


@router.delete(
    "/{quote_id}",
    response_model=APIResponse[None],
)
async def delete_quote_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
):
    await delete_quote(db, quote_id)
    return success_response("Quote deleted successfully")


# =====================================================
# LINE ITEMS
# =====================================================
@router.post(
    "/{quote_id}/items",
    response_model=APIResponse[QuoteOut],
)
async def add_item_api(
    quote_id: int,
    payload: QuoteItemCreate,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    await add_item(db, quote_id, payload)
    q = await get_quote_or_404(db, quote_id)
    return success_response("Item added successfully", map_quote(q, settings))


@router.patch(
    "/{quote_id}/items/{item_id}",
    response_model=APIResponse[QuoteOut],
)
async def update_item_api(
    quote_id: int,
    item_id: int,
    payload: QuoteItemUpdate,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    await update_item(db, quote_id, item_id, payload)
    q = await get_quote_or_404(db, quote_id)
    return success_response("Item updated successfully", map_quote(q, settings))


@router.delete(
    "/{quote_id}/items/{item_id}",
    response_model=APIResponse[QuoteOut],
)
async def remove_item_api(
    quote_id: int,
    item_id: int,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    q = await remove_item(db, quote_id, item_id)
    return success_response("Item removed successfully", map_quote(q, settings))


@router.post(
    "/{quote_id}/items/{item_id}/move",
    response_model=APIResponse[QuoteOut],
)
async def move_item_api(
    quote_id: int,
    item_id: int,
    payload: QuoteItemMove,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    q = await move_item(db, quote_id, item_id, payload.position)
    return success_response("Item moved successfully", map_quote(q, settings))


# =====================================================
# FINANCIALS / TAX
# =====================================================
@router.get(
    "/{quote_id}/financials",
    response_model=APIResponse[QuoteFinancialsOut],
)
async def quote_financials_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
    engine: AnalysisEngine = Depends(get_analysis_engine),
):
    q = await get_quote_or_404(db, quote_id)
    analysis = await margin(q, engine)
    return success_response(
        "Quote financials retrieved successfully",
        map_quote(q, settings, analysis).financials,
    )


@router.post(
    "/{quote_id}/tax",
    response_model=APIResponse[TaxResultOut],
)
async def calculate_tax_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    finance: FinanceIntegration = Depends(get_finance_integration),
):
    q, resolution = await calculate_tax(db, quote_id, finance)
    source = resolution.source if isinstance(resolution, Resolved) else SOURCE_UNCHANGED
    return success_response(
        "Quote tax calculated",
        TaxResultOut(quote_id=q.id, tax=round_money(q.tax), source=source),
    )


# =====================================================
# LIFECYCLE
# =====================================================
@router.post(
    "/{quote_id}/send",
    response_model=APIResponse[QuoteOut],
)
async def send_quote_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
    notifier: Notifier = Depends(get_notifier),
    renderer: DocumentRenderer = Depends(get_renderer),
):
    q = await send_quote(db, quote_id, notifier=notifier, renderer=renderer)
    return success_response("Quote sent successfully", map_quote(q, settings))


@router.post(
    "/{quote_id}/approve",
    response_model=APIResponse[QuoteOut],
)
async def approve_quote_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    q = await approve_quote(db, quote_id)
    return success_response("Quote approved successfully", map_quote(q, settings))


@router.post(
    "/{quote_id}/decline",
    response_model=APIResponse[QuoteOut],
)
async def decline_quote_api(
    quote_id: int,
    payload: QuoteDecline,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
):
    q = await decline_quote(db, quote_id, payload.reason)
    return success_response("Quote declined", map_quote(q, settings))


@router.post(
    "/{quote_id}/execute",
    response_model=APIResponse[QuoteOut],
)
async def execute_quote_api(
    quote_id: int,
    payload: QuoteExecute,
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
    storage: FileStorage = Depends(get_file_storage),
):
    contract_ip = request.client.host if request.client else None
    q = await execute_direct(db, quote_id, payload, contract_ip, storage=storage)
    return success_response("Quote executed successfully", map_quote(q, settings))


@router.post(
    "/{quote_id}/coterm",
    response_model=APIResponse[CotermResultOut],
)
async def execute_coterm_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    settings: QuoteSettings = Depends(get_quote_settings),
    notifier: Notifier = Depends(get_notifier),
    renderer: DocumentRenderer = Depends(get_renderer),
):
    result = await execute_coterm(db, quote_id, notifier=notifier, renderer=renderer)
    return success_response(
        "Co-term quote executed successfully",
        CotermResultOut(
            quote=map_quote(result.quote, settings),
            source_quote_id=result.source_quote_id,
            removed_items=result.removed_items,
            migrated_items=result.migrated_items,
            invoice_id=result.invoice_id,
        ),
    )


@router.post(
    "/{quote_id}/signed-contract",
    response_model=APIResponse[None],
)
async def send_signed_contract_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    renderer: DocumentRenderer = Depends(get_renderer),
):
    await send_signed_contract(db, quote_id, notifier=notifier, renderer=renderer)
    return success_response("Signed contract sent")
