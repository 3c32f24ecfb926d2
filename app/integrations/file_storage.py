# app/integrations/file_storage.py

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.files.stored_file_models import StoredFile


class FileStorage(Protocol):
    async def store(self, name: str, mime_type: str, data: bytes, owner_id: int | None) -> int:
        ...


class DatabaseFileStorage:
    """Keeps files in the request's session so they commit or roll back with it."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def store(self, name: str, mime_type: str, data: bytes, owner_id: int | None) -> int:
        f = StoredFile(
            name=name,
            mime_type=mime_type,
            owner_id=owner_id,
            size=len(data),
            content=data,
        )
        self.db.add(f)
        await self.db.flush()
        return f.id
