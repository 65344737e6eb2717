"""Stream Emitter — forwards generation callbacks to a live SSE channel.

Invariants:
    - Every token is forwarded as its own content event, in generation order, unbatched
    - Terminal callback → one done (or error) event, then the channel closes
    - State OPEN → CLOSED only; after CLOSED every send is a silent no-op
    - Sends never block and never raise into the generation backend
    - Consumer disconnect closes the channel but does not cancel the run

Design Decisions:
    - SSE envelope {"type", "data"} shared with GatewayError.to_sse_event()
    - Done event carries usage + epoch-millisecond timestamp (clients show "used tokens")
    - events() owns the read side; disconnect() is called when the reader stops
"""

import logging
import threading
from collections.abc import AsyncIterator

from gateway.core.domain_types import ChannelState, CompletionSummary
from gateway.core.errors import GenerationError
from gateway.core.generation_run import GenerationRun
from gateway.services.event_inbox import EventInbox

logger = logging.getLogger(__name__)

_CLOSE = object()


# -- SSE event builders --------------------------------------------------------

def content_event(fragment: str) -> dict:
    return {"type": "content", "data": {"content": fragment}}


def done_event(summary: CompletionSummary) -> dict:
    return {
        "type": "done",
        "data": {
            "usage": {
                "prompt_tokens": summary.input_tokens,
                "completion_tokens": summary.output_tokens,
                "total_tokens": summary.total_tokens,
            },
            "time": int(summary.finished_at.timestamp() * 1000),
        },
    }


# -- Channel -------------------------------------------------------------------

class StreamEmitter:
    """Outbound incremental channel for one generation run."""

    def __init__(self, inbox: EventInbox | None = None):
        self._inbox = inbox or EventInbox()
        self._lock = threading.Lock()
        self._state = ChannelState.OPEN

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is ChannelState.CLOSED

    def send(self, event: dict) -> None:
        with self._lock:
            if self._state is ChannelState.CLOSED:
                return
            if not self._inbox.put(event):
                self._state = ChannelState.CLOSED

    def finish(self, event: dict) -> None:
        """Send the terminal event and close."""
        with self._lock:
            if self._state is ChannelState.CLOSED:
                return
            self._inbox.put(event)
            self._inbox.put(_CLOSE)
            self._state = ChannelState.CLOSED

    def close(self) -> None:
        with self._lock:
            if self._state is ChannelState.CLOSED:
                return
            self._inbox.put(_CLOSE)
            self._state = ChannelState.CLOSED

    def disconnect(self) -> None:
        """Reader went away: stop forwarding, leave the run alone."""
        with self._lock:
            if self._state is ChannelState.OPEN:
                logger.info("Stream consumer disconnected, dropping further events")
            self._state = ChannelState.CLOSED

    async def events(self) -> AsyncIterator[dict]:
        """Yield events until the channel closes."""
        try:
            while True:
                item = await self._inbox.get()
                if item is _CLOSE:
                    return
                yield item
        finally:
            self.disconnect()


def bind_emitter(run: GenerationRun, emitter: StreamEmitter) -> GenerationRun:
    """Wire a run's callbacks to the channel. Caller still calls start()."""

    def _on_error(error: GenerationError) -> None:
        emitter.finish(error.to_sse_event())

    return (
        run.on_token(lambda fragment: emitter.send(content_event(fragment)))
        .on_complete(lambda summary: emitter.finish(done_event(summary)))
        .on_error(_on_error)
    )
