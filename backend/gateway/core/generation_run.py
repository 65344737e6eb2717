"""Generation Run — the callback contract between generation backends and consumers.

Invariants:
    - start() launches the run and returns without waiting for generation to finish
    - on_token fires zero or more times, strictly before the terminal callback
    - Exactly one of on_complete / on_error fires, exactly once
    - A token or second terminal signal after the terminal signal raises RuntimeError
      into the producer: a backend breaking the contract is a defect, not absorbed
    - Callbacks may run on any thread; consumers must not assume the caller's context

Design Decisions:
    - Single finish(outcome) entry point with typed Completed/Failed variants:
      at-most-one terminal signal is enforced in one place
    - Backends supply a non-blocking launch callable instead of subclassing
      (Protocol at the client seam, composition at the run seam)
    - Fluent registration (run.on_token(...).on_complete(...).start())
"""

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from gateway.core.domain_types import (
    Completed, CompletionSummary, Failed, GenerationRequest, Outcome,
)
from gateway.core.errors import GenerationError

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]
CompleteCallback = Callable[[CompletionSummary], None]
ErrorCallback = Callable[[GenerationError], None]


def _ignore(_value) -> None:
    return None


class GenerationRun:
    """One streamed generation: callback registration plus producer-side signals."""

    def __init__(self, launch: Callable[["GenerationRun"], None]):
        self._launch = launch
        self._on_token: TokenCallback = _ignore
        self._on_complete: CompleteCallback = _ignore
        self._on_error: ErrorCallback = _ignore
        self._lock = threading.Lock()
        self._started = False
        self._outcome: Outcome | None = None

    # -- Consumer side ---------------------------------------------------------

    def on_token(self, callback: TokenCallback) -> "GenerationRun":
        self._on_token = callback
        return self

    def on_complete(self, callback: CompleteCallback) -> "GenerationRun":
        self._on_complete = callback
        return self

    def on_error(self, callback: ErrorCallback) -> "GenerationRun":
        self._on_error = callback
        return self

    def start(self) -> None:
        """Launch the run. Never blocks on generation."""
        with self._lock:
            if self._started:
                raise RuntimeError("Generation run already started")
            self._started = True
        self._launch(self)

    @property
    def outcome(self) -> Outcome | None:
        return self._outcome

    # -- Producer side ---------------------------------------------------------

    def emit_token(self, fragment: str) -> None:
        with self._lock:
            if self._outcome is not None:
                raise RuntimeError("Token emitted after terminal signal")
        self._on_token(fragment)

    def complete(self, summary: CompletionSummary) -> None:
        self.finish(Completed(summary))

    def fail(self, error: BaseException) -> None:
        if not isinstance(error, GenerationError):
            error = GenerationError(str(error) or type(error).__name__)
        self.finish(Failed(error))

    def finish(self, outcome: Outcome) -> None:
        """Record the single terminal signal and deliver it."""
        with self._lock:
            if self._outcome is not None:
                raise RuntimeError(
                    f"Second terminal signal {type(outcome).__name__} "
                    f"after {type(self._outcome).__name__}"
                )
            self._outcome = outcome
        if isinstance(outcome, Completed):
            self._on_complete(outcome.summary)
        else:
            logger.warning(
                "Generation run failed: %s", outcome.error.message,
                extra={"error_code": outcome.error.code},
            )
            self._on_error(outcome.error)


class GenerationClient(Protocol):
    """Contract for token-producing backends — implemented by infrastructure."""
    def chat(self, request: GenerationRequest) -> GenerationRun: ...
