"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: store methods are async because implementations do IO
"""

from typing import Protocol

from gateway.core.domain_types import AppConfig


class ChatMessageLike(Protocol):
    """Structural contract for one inbound chat message (schema or plain object)."""
    role: str
    content: str


class AppConfigStore(Protocol):
    """Contract for application configuration lookup — implemented by shell."""
    async def get_app(self, app_id: str) -> AppConfig | None: ...
    async def get_channel_app_id(self, api_key: str) -> str | None: ...
