"""App API Channel ORM — maps an API key to the app it serves.

Invariants:
    - api_key is unique: one key resolves to at most one app
    - Deleting an app deletes its channels
    - Only CHANNEL_API keys may call the completion endpoints
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from gateway.db.base import Base

CHANNEL_API = "api"


class AppApiChannel(Base):
    """API channel — the caller-facing handle for an app."""
    __tablename__ = "app_api_channels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    app_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("apps.id", ondelete="CASCADE"), nullable=False,
    )
    api_key: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, index=True,
    )
    channel: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CHANNEL_API,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    app = relationship("App", back_populates="channels")
