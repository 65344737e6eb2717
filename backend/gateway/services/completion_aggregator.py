"""Completion Aggregator — turns a streamed run into one buffered CompletionResponse.

Invariants:
    - content == ordered concatenation of every fragment received before the terminal signal
    - completion_tokens == number of fragments received
    - prompt_tokens / total_tokens come from the CompletionSummary
    - Exactly three outcomes: response (COMPLETED), GenerationError raised (FAILED),
      GenerationTimeoutError raised (TIMED_OUT). Partial content is never returned
    - State INIT → STREAMING → {COMPLETED, FAILED, TIMED_OUT}; terminal states are final

Design Decisions:
    - Callbacks only post to an EventInbox; the waiting coroutine owns buffer and counters,
      so there is no shared mutable state across threads
    - The terminal item in the inbox is the single-use gate
    - Timeout releases the caller but leaves the run alone (disposal is the backend's job)
"""

import asyncio
import logging
import time

from gateway.core.domain_types import (
    AggregatorState, Completed, CompletionSummary, Failed, Outcome, TokenEvent,
)
from gateway.core.errors import (
    ErrorContext, GenerationError, GenerationTimeoutError,
)
from gateway.core.generation_run import GenerationRun
from gateway.schemas.completion import (
    ChatCompletionChoice, CompletionResponse, Delta, Usage,
)
from gateway.services.event_inbox import EventInbox

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class CompletionAggregator:
    """Buffers one run's fragments and usage; waits for its terminal signal."""

    def __init__(
        self,
        model_id: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        context: ErrorContext | None = None,
    ):
        self.model_id = model_id
        self.timeout_seconds = timeout_seconds
        self.context = context
        self.state = AggregatorState.INIT
        self._inbox = EventInbox()
        self._fragments: list[str] = []
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.total_tokens = 0

    def bind(self, run: GenerationRun) -> GenerationRun:
        """Wire a run's callbacks to this aggregator. Caller still calls start()."""
        return (
            run.on_token(lambda fragment: self._inbox.put(TokenEvent(fragment)))
            .on_complete(lambda summary: self._inbox.put(Completed(summary)))
            .on_error(lambda error: self._inbox.put(Failed(error)))
        )

    @property
    def content(self) -> str:
        return "".join(self._fragments)

    async def wait(self) -> CompletionResponse:
        """Wait (bounded) for the terminal signal and build the response."""
        self.state = AggregatorState.STREAMING
        try:
            outcome = await asyncio.wait_for(
                self._drain(), timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.state = AggregatorState.TIMED_OUT
            logger.warning(
                "Buffered completion timed out after %d fragments",
                self.completion_tokens,
                extra={
                    "model_id": self.model_id,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            raise GenerationTimeoutError(self.timeout_seconds, self.context)

        if isinstance(outcome, Failed):
            self.state = AggregatorState.FAILED
            raise self._with_context(outcome.error)

        self._apply_summary(outcome.summary)
        self.state = AggregatorState.COMPLETED
        return self._build_response()

    async def _drain(self) -> Outcome:
        while True:
            item = await self._inbox.get()
            if isinstance(item, TokenEvent):
                self._fragments.append(item.text)
                self.completion_tokens += 1
                continue
            return item

    def _apply_summary(self, summary: CompletionSummary) -> None:
        self.prompt_tokens = summary.input_tokens
        self.total_tokens = summary.total_tokens
        logger.info(
            "Buffered completion finished",
            extra={
                "model_id": self.model_id,
                "input_tokens": summary.input_tokens,
                "output_tokens": summary.output_tokens,
                "completion_tokens": self.completion_tokens,
            },
        )

    def _with_context(self, error: GenerationError) -> GenerationError:
        if self.context is not None and error.context.app_id is None:
            error.context.app_id = self.context.app_id
            error.context.model_id = self.context.model_id
        return error

    def _build_response(self) -> CompletionResponse:
        now = time.time()
        return CompletionResponse(
            id=f"chatcmpl-{int(now * 1000)}",
            created=int(now),
            model=self.model_id,
            choices=[
                ChatCompletionChoice(
                    delta=Delta(content=self.content), finish_reason="stop",
                ),
            ],
            usage=Usage(
                prompt_tokens=self.prompt_tokens,
                completion_tokens=self.completion_tokens,
                total_tokens=self.total_tokens,
            ),
        )
