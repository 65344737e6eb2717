"""Initial schema — apps, app_api_channels.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "apps",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, server_default=""),
        sa.Column("model_id", sa.String(200), nullable=False),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("knowledge_ids", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "app_api_channels",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "app_id", sa.String(64),
            sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("api_key", sa.String(128), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False, server_default="api"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_app_api_channels_api_key", "app_api_channels", ["api_key"], unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_app_api_channels_api_key", table_name="app_api_channels")
    op.drop_table("app_api_channels")
    op.drop_table("apps")
