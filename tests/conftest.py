import os
import tempfile

# app.core.config validates the environment at import time
_TMP = tempfile.mkdtemp(prefix="quotes-tests-")
os.environ["APP_ENV"] = "development"
os.environ["DB_TYPE"] = "sqlite"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/app.db"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["FINANCE_API_URL"] = ""
os.environ["ANALYSIS_API_URL"] = ""

import asyncio
import base64
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.db import Base, enable_sqlite_foreign_keys
from app.core.exceptions import IntegrationUnavailable
from app.core.settings import QuoteSettings
from app.integrations.analysis_engine import MarginAnalysis
from app.models.enums.bill_item_type import BillItemType
from app.models.masters.account_models import Account
from app.models.masters.bill_item_models import BillItem
from app.models.masters.lead_models import Lead
from app.models.masters.tax_location_models import TaxLocation
from app.schemas.billing.quote_schemas import QuoteCreate, QuoteItemCreate, QuoteExecute
from app.services.billing.quote_service import create_quote, get_quote_or_404
from app.services.billing.quote_ledger_service import add_item

SIGNATURE = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\nsignature").decode()


# =====================================================
# DATABASE
# =====================================================
@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    event.listen(eng.sync_engine, "connect", enable_sqlite_foreign_keys)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return QuoteSettings(show_discount=True, margin_target=Decimal("40"), terms=(12, 24, 36))


# =====================================================
# COLLABORATOR FAKES
# =====================================================
class FakeFinance:
    def __init__(self, amount=None, error=None, delay=0):
        self.amount = amount
        self.error = error
        self.delay = delay
        self.calls = 0

    async def tax_by_quote(self, quote):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.amount is None:
            raise IntegrationUnavailable(self.error or "finance offline")
        return Decimal(self.amount)


class FakeAnalysis:
    def __init__(self, margin=None):
        self.margin = margin

    async def by_quote(self, quote):
        if self.margin is None:
            raise IntegrationUnavailable("analysis offline")
        return MarginAnalysis(
            profit=Decimal("100"),
            margin=Decimal(self.margin),
            opex=Decimal("10"),
            capex=Decimal("5"),
            monthly_commission=Decimal("12.50"),
            agent_spiff=Decimal("25"),
        )


class FakeRenderer:
    def __init__(self):
        self.rendered = []

    def render(self, template, context):
        self.rendered.append((template, context))
        return f"%PDF-{template}".encode()


class RecordingNotifier:
    def __init__(self, fail_on=None):
        self.sent = []
        self.fail_on = fail_on

    async def deliver(self, template, recipient, models, attachments=()):
        if template == self.fail_on:
            raise RuntimeError(f"mail relay rejected {template}")
        self.sent.append((template, recipient, models, list(attachments)))

    def templates(self):
        return [t for t, *_ in self.sent]


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def notifier():
    return RecordingNotifier()


# =====================================================
# DATA
# =====================================================
class Factory:
    def __init__(self, db):
        self.db = db
        self._codes = 0

    async def bill_item(self, type=BillItemType.services, price="100", taxable=True, name=None):
        self._codes += 1
        item = BillItem(
            code=f"CODE-{self._codes}",
            name=name or f"{type.value} {self._codes}",
            description=f"catalog description {self._codes}",
            type=type,
            taxable=taxable,
            price=Decimal(price),
        )
        self.db.add(item)
        await self.db.commit()
        return item

    async def service(self, price="100", **kw):
        return await self.bill_item(BillItemType.services, price, **kw)

    async def product(self, price="50", **kw):
        return await self.bill_item(BillItemType.products, price, **kw)

    async def account(self, state="TX", taxable=True, net_terms=15, po="PO-7"):
        account = Account(
            name="Acme Corp",
            state=state,
            taxable=taxable,
            net_terms=net_terms,
            po=po,
            admin_name="Ada Admin",
            admin_email="admin@acme.test",
            agent_email="agent@acme.test",
        )
        self.db.add(account)
        await self.db.commit()
        return account

    async def lead(self, state="TX", taxable=True):
        lead = Lead(
            company="Lead Co",
            contact="Lee Contact",
            email="lee@lead.test",
            state=state,
            taxable=taxable,
            agent_email="agent@lead.test",
        )
        self.db.add(lead)
        await self.db.commit()
        return lead

    async def tax_rate(self, state, rate):
        self.db.add(TaxLocation(state=state, rate=Decimal(rate)))
        await self.db.commit()

    async def quote(self, account=None, lead=None, items=(), **kw):
        q = await create_quote(
            self.db,
            QuoteCreate(
                account_id=account.id if account else None,
                lead_id=lead.id if lead else None,
                **kw,
            ),
        )
        for bill_item, extra in items:
            await add_item(self.db, q.id, QuoteItemCreate(bill_item_id=bill_item.id, **extra))
        return await get_quote_or_404(self.db, q.id, refresh=True)

    def execute_payload(self, account, name="Sam Signer"):
        return QuoteExecute(account_id=account.id, name=name, signature=SIGNATURE)


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def make_finance():
    return FakeFinance


@pytest.fixture
def make_analysis():
    return FakeAnalysis


@pytest.fixture
def make_notifier():
    return RecordingNotifier
