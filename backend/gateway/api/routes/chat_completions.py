"""Chat Completions — OpenAI-style streaming (SSE) and buffered (JSON) endpoints.

Invariants:
    - Channel → app resolution and normalization happen before any run starts;
      failures surface as 400 JSON, never as a stream
    - Streaming: content events, then exactly one done or error event, then end of stream
    - Buffered: one CompletionResponse, or 502 (generation failed) / 504 (timed out)
    - Client disconnect stops forwarding; the backend run is left to finish on its own

Design Decisions:
    - Bearer token selects the API channel (key issuance/authorization live elsewhere)
    - Generation client and service are dependencies: tests override them
    - StreamingResponse for SSE: event_generator yields formatted SSE lines
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.config import get_settings
from gateway.core.domain_types import AppConfig
from gateway.core.generation_run import GenerationClient
from gateway.core.normalize_request import (
    error_context_for, normalize_chat_request,
)
from gateway.infrastructure.anthropic_client import AnthropicGenerationClient
from gateway.infrastructure.app_store import SqlAppStore, resolve_app_for_key
from gateway.infrastructure.database import get_db
from gateway.schemas.completion import CompletionRequest, CompletionResponse
from gateway.services.chat_service import ChatCompletionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["chat"])

# SSE headers prevent proxy/browser buffering of streamed events.
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


# -- Dependencies --------------------------------------------------------------

_generation_client: AnthropicGenerationClient | None = None


def get_generation_client() -> GenerationClient:
    """Singleton Anthropic backend — reused across requests (one connection pool)."""
    global _generation_client
    if _generation_client is None:
        settings = get_settings()
        _generation_client = AnthropicGenerationClient(
            api_key=settings.anthropic_api_key,
            max_retries=settings.anthropic_max_retries,
            timeout_seconds=settings.anthropic_timeout_seconds,
            max_tokens=settings.generation_max_tokens,
        )
    return _generation_client


def get_chat_service(
    client: GenerationClient = Depends(get_generation_client),
) -> ChatCompletionService:
    return ChatCompletionService(
        client, timeout_seconds=get_settings().completion_timeout_seconds,
    )


async def get_app_config(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> AppConfig | None:
    """Resolve the caller's API channel to its app configuration (None if unresolved)."""
    return await resolve_app_for_key(SqlAppStore(db), _bearer_token(authorization))


# -- Routes --------------------------------------------------------------------

@router.post("/chat/completions")
async def stream_completion(
    body: CompletionRequest,
    app_config: AppConfig | None = Depends(get_app_config),
    service: ChatCompletionService = Depends(get_chat_service),
):
    """Streaming protocol — one SSE event per token, then done or error."""
    request = normalize_chat_request(body.messages, app_config)
    emitter = service.stream(request)

    async def event_generator():
        try:
            async for event in emitter.events():
                yield _sse_line(event)
        except asyncio.CancelledError:
            logger.info("Client disconnected from completion stream",
                extra={"app_id": app_config.app_id})
            return
        finally:
            emitter.disconnect()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


@router.post("/chat/completions/json", response_model=CompletionResponse)
async def buffered_completion(
    body: CompletionRequest,
    app_config: AppConfig | None = Depends(get_app_config),
    service: ChatCompletionService = Depends(get_chat_service),
) -> CompletionResponse:
    """Buffered protocol — waits (bounded) and returns one aggregate response."""
    request = normalize_chat_request(body.messages, app_config)
    return await service.complete(request, error_context_for(app_config))


# -- Helpers -------------------------------------------------------------------

def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
