"""App Store — SQLAlchemy implementation of AppConfigStore.

Invariants:
    - Returns frozen AppConfig values, never ORM instances (core stays ORM-free)
    - Unknown app or key → None; the normalizer decides that this is a validation failure
    - Only keys on the API channel resolve; keys issued for other channels are unknown here
    - Read-only: no commits; store outages raise DatabaseError
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.domain_types import AppConfig
from gateway.core.repository_protocols import AppConfigStore
from gateway.infrastructure.database import database_errors
from gateway.models.app import App
from gateway.models.app_api_channel import CHANNEL_API, AppApiChannel


class SqlAppStore:
    """Application configuration lookup backed by the gateway database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_app(self, app_id: str) -> AppConfig | None:
        async with database_errors("get_app"):
            app = await self.db.get(App, app_id)
        if app is None:
            return None
        return AppConfig(
            app_id=app.id,
            model_id=app.model_id,
            prompt=app.prompt,
            knowledge_ids=tuple(app.knowledge_ids or ()),
        )

    async def get_channel_app_id(self, api_key: str) -> str | None:
        async with database_errors("get_channel"):
            result = await self.db.execute(
                select(AppApiChannel.app_id).where(
                    AppApiChannel.api_key == api_key,
                    AppApiChannel.channel == CHANNEL_API,
                ),
            )
            return result.scalar_one_or_none()


async def resolve_app_for_key(
    store: AppConfigStore, api_key: str | None,
) -> AppConfig | None:
    """Channel key → app configuration, or None when either link is missing."""
    if not api_key:
        return None
    app_id = await store.get_channel_app_id(api_key)
    if not app_id:
        return None
    return await store.get_app(app_id)
