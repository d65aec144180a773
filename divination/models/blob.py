from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from divination.core.db import Base


class BlobObject(Base):
    """One stored object, addressed by key. Rows are overwritten in full on put."""

    __tablename__ = "blob_objects"

    key: Mapped[str] = mapped_column(String(1024), primary_key=True)
    body: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    etag: Mapped[str] = mapped_column(String(64), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False, default="application/octet-stream")
    cache_control: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    custom_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
