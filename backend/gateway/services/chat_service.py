"""Chat Completion Service — connects a normalized request to one consumer discipline.

Invariants:
    - Each call creates a fresh run and a fresh emitter/aggregator (nothing shared across runs)
    - Callbacks are registered before start(), so no fragment is missed
    - stream() returns as soon as the run is launched; complete() waits at most timeout_seconds

Design Decisions:
    - Client injected (GenerationClient Protocol): routes pass the Anthropic backend,
      tests pass scripted fakes
"""

import logging

from gateway.core.domain_types import GenerationRequest
from gateway.core.errors import ErrorContext
from gateway.core.generation_run import GenerationClient
from gateway.schemas.completion import CompletionResponse
from gateway.services.completion_aggregator import (
    CompletionAggregator, DEFAULT_TIMEOUT_SECONDS,
)
from gateway.services.stream_emitter import StreamEmitter, bind_emitter

logger = logging.getLogger(__name__)


class ChatCompletionService:
    """Runs generation requests for the streaming and buffered protocols."""

    def __init__(
        self,
        client: GenerationClient,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.timeout_seconds = timeout_seconds

    def stream(self, request: GenerationRequest) -> StreamEmitter:
        """Start a run whose events flow into the returned channel."""
        emitter = StreamEmitter()
        bind_emitter(self.client.chat(request), emitter).start()
        logger.info(
            "Streaming completion started", extra={"model_id": request.model_id},
        )
        return emitter

    async def complete(
        self, request: GenerationRequest, context: ErrorContext | None = None,
    ) -> CompletionResponse:
        """Start a run and wait for its aggregate response."""
        aggregator = CompletionAggregator(
            request.model_id, self.timeout_seconds, context,
        )
        aggregator.bind(self.client.chat(request)).start()
        return await aggregator.wait()
