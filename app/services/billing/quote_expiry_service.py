from datetime import datetime, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.activity_helpers import emit_activity
from app.constants.activity_codes import ActivityCode
from app.services.billing.quote_expiry_core import _archive_expired_quote_stmt

logger = logging.getLogger(__name__)


async def auto_archive_expired_quotes(db: AsyncSession, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)

    result = await db.execute(_archive_expired_quote_stmt(now=now))
    archived = result.scalars().all()

    if not archived:
        return 0

    for quote_id in archived:
        await emit_activity(
            db,
            code=ActivityCode.ARCHIVE_QUOTE,
            subject_id=quote_id,
            target_id=quote_id,
            changes=f"expired on {now.date()}",
        )

    await db.commit()

    logger.info("Expired quotes archived", extra={"count": len(archived)})
    return len(archived)
