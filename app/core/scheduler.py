from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.db import AsyncSessionLocal

from app.services.billing.quote_expiry_service import auto_archive_expired_quotes

scheduler = AsyncIOScheduler()

@scheduler.scheduled_job("cron", hour=0, minute=5)  # daily at 00:05
async def archive_expired_quotes_job():
    async with AsyncSessionLocal() as db:
        await auto_archive_expired_quotes(db)
