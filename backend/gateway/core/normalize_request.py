"""Request Normalizer — turns a chat request plus app configuration into a GenerationRequest.

Invariants:
    - Empty or absent message list → ChatValidationError(field="messages")
    - Unresolved app configuration → ChatValidationError(field="app")
    - Pure: no IO, no generation work; failures happen before any run exists

Design Decisions:
    - App configuration passed in, never looked up here: the store is injected at the shell
    - Only the first message is forwarded (role + content); the backend owns history
"""

from collections.abc import Sequence

from gateway.core.domain_types import AppConfig, GenerationRequest
from gateway.core.errors import ChatValidationError, ErrorContext
from gateway.core.repository_protocols import ChatMessageLike


def normalize_chat_request(
    messages: Sequence[ChatMessageLike] | None,
    app: AppConfig | None,
) -> GenerationRequest:
    """Validate and resolve a chat request. Raises ChatValidationError."""
    if not messages:
        raise ChatValidationError("Chat messages are empty", field="messages")
    if app is None:
        raise ChatValidationError(
            "No application is configured for this channel", field="app",
        )

    first = messages[0]
    return GenerationRequest(
        message=first.content,
        role=first.role,
        model_id=app.model_id,
        prompt_text=app.prompt,
        knowledge_ids=tuple(app.knowledge_ids),
    )


def error_context_for(app: AppConfig | None) -> ErrorContext:
    """Observability context for errors raised while serving an app."""
    if app is None:
        return ErrorContext()
    return ErrorContext(app_id=app.app_id, model_id=app.model_id)
