# app/integrations/notifier.py

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations.file_storage import FileStorage
from app.models.notifications.outbox_models import NotificationOutbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    email: str | None
    name: str | None = None


@dataclass(frozen=True)
class Attachment:
    name: str
    content: bytes
    mime_type: str = "application/pdf"


class Notifier(Protocol):
    async def deliver(
        self,
        template: str,
        recipient: Recipient,
        models: dict,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        ...


class OutboxNotifier:
    """
    Queues templated notifications in ``notification_outbox``.

    Rows share the caller's transaction, so a rolled back transition never
    leaves a notification behind. Transport is handled downstream.
    """

    def __init__(self, db: AsyncSession, storage: FileStorage):
        self.db = db
        self.storage = storage

    async def deliver(
        self,
        template: str,
        recipient: Recipient,
        models: dict,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        stored = []
        for a in attachments:
            file_id = await self.storage.store(a.name, a.mime_type, a.content, None)
            stored.append({"file_id": file_id, "name": a.name})

        self.db.add(
            NotificationOutbox(
                template=template,
                recipient_email=recipient.email,
                recipient_name=recipient.name,
                context=models,
                attachments=stored,
            )
        )

        logger.info(
            "Notification queued",
            extra={"template": template, "recipient": recipient.email},
        )
