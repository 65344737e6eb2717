"""Domain Types — immutable values exchanged between normalizer, backend, and adapters.

Invariants:
    - GenerationRequest, AppConfig, TokenEvent, CompletionSummary are frozen
    - knowledge_ids are an ordered tuple (order preserved from app configuration)
    - A run ends with exactly one Outcome: Completed xor Failed
    - All lifecycle states encoded as Enums — no raw string matching

Design Decisions:
    - Frozen dataclasses over pydantic here: core stays free of validation machinery,
      pydantic lives at the API boundary (schemas/)
    - str Enums: serialize to JSON without custom encoders
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from gateway.core.errors import GenerationError


# ─── Requests ────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    """Resolved application configuration for one API channel."""
    app_id: str
    model_id: str
    prompt: str | None = None
    knowledge_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class GenerationRequest:
    """Canonical input to a generation backend."""
    message: str
    role: str
    model_id: str
    prompt_text: str | None = None
    knowledge_ids: tuple[str, ...] = ()


# ─── Stream Events ───────────────────────────────────────────────

@dataclass(frozen=True)
class TokenEvent:
    """One generated text fragment, in generation order."""
    text: str


@dataclass(frozen=True)
class CompletionSummary:
    """Usage accounting reported once, when a run completes."""
    total_tokens: int
    input_tokens: int
    output_tokens: int = 0
    finished_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


@dataclass(frozen=True)
class Completed:
    """Terminal variant: the run finished normally."""
    summary: CompletionSummary


@dataclass(frozen=True)
class Failed:
    """Terminal variant: the run failed."""
    error: GenerationError


Outcome = Union[Completed, Failed]


# ─── Lifecycles ──────────────────────────────────────────────────

class ChannelState(str, Enum):
    """Incremental channel lifecycle. CLOSED is terminal."""
    OPEN = "open"
    CLOSED = "closed"


class AggregatorState(str, Enum):
    """Buffered aggregation lifecycle. The last three are terminal."""
    INIT = "init"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
