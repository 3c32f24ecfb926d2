from sqlalchemy import update
from app.models.billing.quote_models import Quote
from app.models.enums.quote_status import QuoteStatus


def _archive_expired_quote_stmt(*, now):
    """
    Archive quotes past ``expires_on`` that were never executed.
    Idempotent and safe for cron.
    """
    return (
        update(Quote)
        .where(
            Quote.is_deleted.is_(False),
            Quote.archived.is_(False),
            Quote.activated_on.is_(None),
            Quote.status.notin_([QuoteStatus.executed, QuoteStatus.terminated]),
            Quote.expires_on.isnot(None),
            Quote.expires_on < now,
        )
        .values(
            archived=True,
            version=Quote.version + 1,
        )
        .returning(Quote.id)
        .execution_options(synchronize_session=False)
    )
