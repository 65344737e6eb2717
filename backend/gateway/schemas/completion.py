"""Completion Schemas — OpenAI-style chat completion request and buffered response.

Invariants:
    - CompletionRequest.messages may be absent or empty here; the normalizer rejects it
      with a domain error (same envelope for both protocols)
    - CompletionResponse is frozen: never mutated after construction
    - Unknown request fields (model, stream, temperature, ...) are ignored
    - A message without content is malformed (400 from request validation)

Design Decisions:
    - choices[].delta (not message) mirrors the streaming chunk shape clients already parse
"""

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """One inbound chat message."""
    role: str = "user"
    content: str = Field(max_length=100_000)


class CompletionRequest(BaseModel):
    """Chat completion request body (both protocols)."""
    model_config = ConfigDict(extra="ignore")

    messages: list[ChatMessage] | None = None


class Delta(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str


class ChatCompletionChoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    delta: Delta
    finish_reason: str


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class CompletionResponse(BaseModel):
    """Buffered protocol response — one aggregate per run."""
    model_config = ConfigDict(frozen=True)

    id: str
    created: int
    model: str
    choices: list[ChatCompletionChoice]
    usage: Usage
