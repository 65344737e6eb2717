"""Anthropic Generation Backend — drives AsyncAnthropic streaming behind the GenerationRun contract.

Invariants:
    - start() schedules a background task on the running loop and returns immediately
    - Every text delta → one emit_token, in stream order
    - Success → complete(summary) with input/output/total token counts from the final message
    - Every failure (SDK, mid-stream, cancellation) → exactly one fail(GenerationError)
    - Background tasks are referenced until done (no garbage-collected runs)

Design Decisions:
    - Error mapping in an asynccontextmanager: catches connection setup AND mid-stream
      errors (errors from the caller's async for propagate through the yield)
    - Retries delegated to the SDK (max_retries): a half-streamed answer cannot be retried
    - knowledge_ids are carried but not resolved here: retrieval is the backend's concern
      and this backend has none
"""

import asyncio
import logging
from contextlib import asynccontextmanager

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    InternalServerError,
)

from gateway.core.domain_types import CompletionSummary, GenerationRequest
from gateway.core.errors import GenerationError, ErrorContext
from gateway.core.generation_run import GenerationRun

logger = logging.getLogger(__name__)

# OverloadedError (HTTP 529) is not re-exported by every SDK version.
_OVERLOADED_STATUS = 529

_ANTHROPIC_ROLES = ("user", "assistant")


def _is_overloaded(e: APIError) -> bool:
    """Check if error is Anthropic 529 Overloaded."""
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


class AnthropicGenerationClient:
    """GenerationClient backed by the Anthropic Messages streaming API."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        timeout_seconds: int = 300,
        max_tokens: int = 4096,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            max_retries=max_retries,
            timeout=timeout_seconds,
        )
        self.max_tokens = max_tokens
        self._tasks: set[asyncio.Task] = set()

    def chat(self, request: GenerationRequest) -> GenerationRun:
        return GenerationRun(lambda run: self._launch(request, run))

    def _launch(self, request: GenerationRequest, run: GenerationRun) -> None:
        task = asyncio.get_running_loop().create_task(self._produce(request, run))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _produce(self, request: GenerationRequest, run: GenerationRun) -> None:
        ctx = ErrorContext(model_id=request.model_id)
        try:
            async with self.stream_message(request, context=ctx) as stream:
                async for text in stream.text_stream:
                    run.emit_token(text)
                final = await stream.get_final_message()
        except GenerationError as e:
            logger.error("Anthropic stream failed: %s", e.message,
                extra={"model_id": request.model_id, "error_type": e.error_type})
            run.fail(e)
            return
        except asyncio.CancelledError:
            run.fail(GenerationError("Generation cancelled", "cancelled", context=ctx))
            raise

        usage = final.usage
        logger.info(
            "Anthropic stream finished",
            extra={
                "model_id": request.model_id,
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            },
        )
        run.complete(CompletionSummary(
            total_tokens=usage.input_tokens + usage.output_tokens,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        ))

    @asynccontextmanager
    async def stream_message(
        self, request: GenerationRequest, context: ErrorContext | None = None,
    ):
        """Stream one request with Anthropic error → GenerationError mapping.

        CancelledError (BaseException) passes through uncaught.
        """
        try:
            async with self.client.messages.stream(
                **self._build_params(request),
            ) as stream:
                yield stream
        except RateLimitError as e:
            raise GenerationError(
                "Rate limit exceeded",
                "rate_limit",
                retry_after_ms=self._extract_retry_after(e),
                context=context,
            )
        # APITimeoutError subclasses APIConnectionError: must come first
        except APITimeoutError:
            raise GenerationError(
                "API timeout during stream", "timeout", context=context,
            )
        except (APIConnectionError, InternalServerError) as e:
            raise GenerationError(
                f"Connection error during stream: {e}",
                "connection_error",
                context=context,
            )
        except APIError as e:
            if _is_overloaded(e):
                raise GenerationError(
                    "Anthropic API overloaded (529)",
                    "overloaded",
                    context=context,
                )
            raise GenerationError(str(e), "client_error", context=context)
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Unexpected Anthropic error: {e}", exc_info=True)
            raise GenerationError(str(e), "unknown", context=context)

    def _build_params(self, request: GenerationRequest) -> dict:
        role = request.role if request.role in _ANTHROPIC_ROLES else "user"
        params = {
            "model": request.model_id,
            "max_tokens": self.max_tokens,
            "messages": [{"role": role, "content": request.message}],
        }
        if request.prompt_text:
            params["system"] = request.prompt_text
        return params

    def _extract_retry_after(self, error: RateLimitError) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        try:
            if hasattr(error, "response") and error.response:
                val = error.response.headers.get("retry-after")
                if val:
                    return int(val) * 1000
        except (TypeError, ValueError):
            return None
        return None
