# FastAPI providers for the external collaborators.

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.integrations.file_storage import DatabaseFileStorage, FileStorage
from app.integrations.notifier import Notifier, OutboxNotifier


def get_file_storage(db: AsyncSession = Depends(get_db)) -> FileStorage:
    return DatabaseFileStorage(db)


def get_notifier(
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
) -> Notifier:
    return OutboxNotifier(db, storage)
