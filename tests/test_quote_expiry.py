from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from app.integrations.file_storage import DatabaseFileStorage
from app.models.billing.quote_models import Quote
from app.models.support.activity_models import SystemActivity
from app.services.billing.quote_expiry_service import auto_archive_expired_quotes
from app.services.billing.quote_lifecycle_service import execute_direct

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


async def test_archives_only_unexecuted_expired_quotes(db, factory):
    account = await factory.account()
    expired = await factory.quote(account=account, expires_on=NOW - timedelta(days=1))
    current = await factory.quote(account=account, expires_on=NOW + timedelta(days=1))
    open_ended = await factory.quote(account=account)
    signed = await factory.quote(account=account, expires_on=NOW - timedelta(days=5))
    await execute_direct(db, signed.id, factory.execute_payload(account), None, storage=DatabaseFileStorage(db))

    count = await auto_archive_expired_quotes(db, now=NOW)

    assert count == 1
    archived = dict((await db.execute(select(Quote.id, Quote.archived))).all())
    assert archived[expired.id] is True
    assert archived[current.id] is False
    assert archived[open_ended.id] is False

    messages = (
        await db.execute(select(SystemActivity.message).where(SystemActivity.activity_type == "ARCHIVE_QUOTE"))
    ).scalars().all()
    assert messages == [f"archived quote #{expired.id}: expired on 2026-06-01"]


async def test_second_run_is_a_no_op(db, factory):
    account = await factory.account()
    await factory.quote(account=account, expires_on=NOW - timedelta(days=1))

    assert await auto_archive_expired_quotes(db, now=NOW) == 1
    assert await auto_archive_expired_quotes(db, now=NOW) == 0
