"""App ORM — persisted application configuration (model, system prompt, knowledge bases).

Invariants:
    - id is a string primary key chosen by the operator (stable across environments)
    - model_id is non-nullable: an app without a model cannot serve completions
    - knowledge_ids keeps operator order

Design Decisions:
    - JSON column for knowledge_ids: small ordered list, never queried by element
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gateway.db.base import Base


class App(Base):
    """Application configuration served through one or more API channels."""
    __tablename__ = "apps"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    model_id: Mapped[str] = mapped_column(String(200), nullable=False)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    knowledge_ids: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    channels = relationship(
        "AppApiChannel", back_populates="app", cascade="all, delete-orphan",
    )
