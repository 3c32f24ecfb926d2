import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from main import app
from app.core.db import get_db
from app.core.settings import get_quote_settings
from app.integrations.analysis_engine import get_analysis_engine
from app.integrations.finance_client import get_finance_integration
from app.models.files.stored_file_models import StoredFile
from app.models.notifications.outbox_models import NotificationOutbox


@pytest.fixture
async def client(session_factory, settings, make_finance, make_analysis):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_quote_settings] = lambda: settings
    app.dependency_overrides[get_finance_integration] = lambda: make_finance(amount="9.99")
    app.dependency_overrides[get_analysis_engine] = lambda: make_analysis(margin="30")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def test_health(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_quote_needs_exactly_one_owner(client):
    resp = await client.post("/quotes", json={"account_id": 1, "lead_id": 1})

    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error_code"] == "VALIDATION_ERROR"


async def test_unknown_quote_is_404(client):
    resp = await client.get("/quotes/404")

    assert resp.status_code == 404
    assert resp.json()["error_code"] == "QUOTE_NOT_FOUND"


async def test_build_price_and_tax_a_quote(client, factory):
    account = await factory.account()
    svc = await factory.service(price="100")
    hw = await factory.product(price="50")

    resp = await client.post("/quotes", json={"account_id": account.id, "term": 12})
    assert resp.status_code == 200
    quote_id = resp.json()["data"]["id"]

    await client.post(f"/quotes/{quote_id}/items", json={"bill_item_id": svc.id, "qty": 2})
    resp = await client.post(
        f"/quotes/{quote_id}/items",
        json={"bill_item_id": hw.id, "frequency": "monthly", "payments": 2},
    )
    data = resp.json()["data"]
    assert [i["ord"] for i in data["services"]] == [1]
    assert [i["ord"] for i in data["products"]] == [1]
    assert data["financials"]["recurring"] == "225.00"
    assert data["financials"]["one_time"] == "0.00"

    resp = await client.post(f"/quotes/{quote_id}/tax")
    assert resp.json()["data"] == {"quote_id": quote_id, "tax": "9.99", "source": "integration"}

    resp = await client.get(f"/quotes/{quote_id}/financials")
    financials = resp.json()["data"]
    assert financials["total"] == "234.99"
    assert financials["margin"]["agent_spiff"] == "25"
    assert financials["margin_band"] == "warning"
    assert financials["margin_variation"] == "-25.00"


async def test_executed_quote_is_locked(client, factory, session_factory):
    account = await factory.account()
    svc = await factory.service()
    q = await factory.quote(account=account, items=[(svc, {})])

    payload = factory.execute_payload(account).model_dump()
    resp = await client.post(f"/quotes/{q.id}/execute", json=payload)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "executed"
    assert data["editable"] is False

    resp = await client.post(f"/quotes/{q.id}/items", json={"bill_item_id": svc.id})
    assert resp.status_code == 409
    body = resp.json()
    assert body["error_code"] == "QUOTE_EDITING_LOCKED"
    assert body["details"] == {"quote_id": q.id}

    async with session_factory() as s:
        signature_owner = (await s.execute(select(StoredFile.owner_id))).scalar_one()
    assert signature_owner == q.id


async def test_send_queues_rendered_quote_in_outbox(client, factory, session_factory):
    account = await factory.account()
    svc = await factory.service()
    q = await factory.quote(account=account, items=[(svc, {})])

    resp = await client.post(f"/quotes/{q.id}/send")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "sent"

    async with session_factory() as s:
        outbox = (await s.execute(select(NotificationOutbox))).scalars().all()
        assert [o.template for o in outbox] == ["account.quote"]
        assert outbox[0].recipient_email == "admin@acme.test"

        pdf = await s.get(StoredFile, outbox[0].attachments[0]["file_id"])
        assert pdf.content.startswith(b"%PDF")


async def test_coterm_on_plain_quote_is_rejected(client, factory):
    account = await factory.account()
    q = await factory.quote(account=account)

    resp = await client.post(f"/quotes/{q.id}/coterm")

    assert resp.status_code == 409
    assert resp.json()["error_code"] == "COTERM_INVALID_SOURCE"


async def test_term_options(client):
    resp = await client.get("/quotes/terms")

    assert [t["value"] for t in resp.json()["data"]] == [0, 12, 24, 36]


async def test_null_price_on_item_update_is_a_validation_error(client, factory):
    account = await factory.account()
    svc = await factory.service()
    q = await factory.quote(account=account, items=[(svc, {})])

    resp = await client.patch(f"/quotes/{q.id}/items/{q.items[0].id}", json={"price": None})

    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"
