"""Mock Generation Backends — scripted GenerationClient implementations for adapter tests.

Invariants:
    - ScriptedGenerationClient produces from an asyncio task (same loop, different task)
    - ThreadedGenerationClient produces from a separate OS thread
    - Both honor the run contract: tokens, then exactly one terminal signal,
      unless hang=True, which emits tokens and never terminates (timeout tests)
    - Every request and run is recorded for assertions

Design Decisions:
    - Flat classes, no inheritance beyond a shared script: simple, explicit, easy to debug
"""

import asyncio
import threading
import time

from gateway.core.domain_types import CompletionSummary, GenerationRequest
from gateway.core.errors import GenerationError
from gateway.core.generation_run import GenerationRun


def make_request(**overrides) -> GenerationRequest:
    fields = {
        "message": "hi",
        "role": "user",
        "model_id": "claude-test",
        "prompt_text": "Be brief.",
        "knowledge_ids": ("kb-1",),
    }
    fields.update(overrides)
    return GenerationRequest(**fields)


class _Script:
    def __init__(
        self,
        tokens=(),
        summary: CompletionSummary | None = None,
        error: GenerationError | None = None,
        hang: bool = False,
        delay: float = 0.0,
    ):
        self.tokens = list(tokens)
        self.summary = summary
        self.error = error
        self.hang = hang
        self.delay = delay
        self.requests: list[GenerationRequest] = []
        self.runs: list[GenerationRun] = []

    def chat(self, request: GenerationRequest) -> GenerationRun:
        self.requests.append(request)
        run = GenerationRun(self._launch)
        self.runs.append(run)
        return run

    def _launch(self, run: GenerationRun) -> None:
        raise NotImplementedError

    def _terminate(self, run: GenerationRun) -> None:
        if self.hang:
            return
        if self.error is not None:
            run.fail(self.error)
            return
        run.complete(self.summary or CompletionSummary(
            total_tokens=len(self.tokens), input_tokens=0,
            output_tokens=len(self.tokens),
        ))


class ScriptedGenerationClient(_Script):
    """Produces the script from a background asyncio task."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tasks: list[asyncio.Task] = []

    def _launch(self, run: GenerationRun) -> None:
        self.tasks.append(asyncio.get_running_loop().create_task(self._produce(run)))

    async def _produce(self, run: GenerationRun) -> None:
        for token in self.tokens:
            await asyncio.sleep(self.delay)
            run.emit_token(token)
        self._terminate(run)


class ThreadedGenerationClient(_Script):
    """Produces the script from a separate thread (callbacks off the event loop)."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.threads: list[threading.Thread] = []
        self.callback_threads: set[int] = set()

    def _launch(self, run: GenerationRun) -> None:
        thread = threading.Thread(target=self._produce, args=(run,), daemon=True)
        self.threads.append(thread)
        thread.start()

    def _produce(self, run: GenerationRun) -> None:
        self.callback_threads.add(threading.get_ident())
        for token in self.tokens:
            if self.delay:
                time.sleep(self.delay)
            run.emit_token(token)
        self._terminate(run)

    def join(self, timeout: float = 5.0) -> None:
        for thread in self.threads:
            thread.join(timeout)
