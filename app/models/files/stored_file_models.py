from sqlalchemy import Column, Integer, String, LargeBinary
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class StoredFile(Base, TimestampMixin):
    __tablename__ = "stored_files"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    owner_id = Column(Integer, nullable=True, index=True)
    size = Column(Integer, nullable=False)
    content = Column(LargeBinary, nullable=False)

    def __repr__(self):
        return f"<StoredFile id={self.id} name={self.name} size={self.size}>"
