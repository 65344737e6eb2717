"""Anthropic Generation Backend — SDK stream → GenerationRun callbacks.

Tests:
    - Text deltas become tokens in order; final usage becomes the CompletionSummary
    - Request params: model, system prompt (only when set), role mapping
    - SDK errors (setup and mid-stream) become exactly one GenerationError
    - start() returns before the stream is consumed
    - Cancelling the producer task still fails the run exactly once
"""

import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from gateway.core.domain_types import Completed, Failed
from gateway.core.errors import GenerationError
from gateway.infrastructure.anthropic_client import AnthropicGenerationClient
from gateway.services.completion_aggregator import CompletionAggregator
from gateway.services.stream_emitter import StreamEmitter, bind_emitter

from tests.services.mock_generation import make_request

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class _FakeStream:
    def __init__(self, texts, input_tokens, output_tokens, error=None):
        self._texts = texts
        self._usage = SimpleNamespace(
            input_tokens=input_tokens, output_tokens=output_tokens,
        )
        self._error = error

    @property
    def text_stream(self):
        return self._iter_texts()

    async def _iter_texts(self):
        for text in self._texts:
            await asyncio.sleep(0)
            yield text
        if self._error is not None:
            raise self._error

    async def get_final_message(self):
        return SimpleNamespace(usage=self._usage, stop_reason="end_turn")


class _FakeMessages:
    def __init__(self, stream=None, setup_error=None):
        self._stream = stream
        self._setup_error = setup_error
        self.calls = []

    def stream(self, **params):
        self.calls.append(params)
        return self._manager()

    @asynccontextmanager
    async def _manager(self):
        if self._setup_error is not None:
            raise self._setup_error
        yield self._stream


def _backend(stream=None, setup_error=None):
    messages = _FakeMessages(stream, setup_error)
    fake = SimpleNamespace(messages=messages)
    return AnthropicGenerationClient(api_key="unused", client=fake), messages


async def _aggregate(backend, request):
    aggregator = CompletionAggregator(request.model_id, timeout_seconds=2.0)
    run = aggregator.bind(backend.chat(request))
    run.start()
    return run, aggregator, await aggregator.wait()


async def test_tokens_and_usage_forwarded():
    backend, _ = _backend(_FakeStream(["He", "llo"], input_tokens=2, output_tokens=3))

    run, _, response = await _aggregate(backend, make_request())

    assert response.choices[0].delta.content == "Hello"
    assert response.usage.prompt_tokens == 2
    assert response.usage.total_tokens == 5
    assert response.usage.completion_tokens == 2
    assert isinstance(run.outcome, Completed)
    assert run.outcome.summary.output_tokens == 3


async def test_request_params():
    backend, messages = _backend(_FakeStream([], 1, 0))

    await _aggregate(backend, make_request(role="system", prompt_text="Be brief."))

    params = messages.calls[0]
    assert params["model"] == "claude-test"
    assert params["system"] == "Be brief."
    assert params["messages"] == [{"role": "user", "content": "hi"}]
    assert params["max_tokens"] == 4096


async def test_system_omitted_without_prompt():
    backend, messages = _backend(_FakeStream([], 1, 0))

    await _aggregate(backend, make_request(prompt_text=None, role="assistant"))

    assert "system" not in messages.calls[0]
    assert messages.calls[0]["messages"][0]["role"] == "assistant"


async def test_start_does_not_wait_for_stream():
    backend, _ = _backend(_FakeStream(["a"], 1, 1))
    run = backend.chat(make_request())

    run.start()

    assert run.outcome is None
    await asyncio.gather(*list(backend._tasks))
    assert isinstance(run.outcome, Completed)


@pytest.mark.parametrize("error, error_type", [
    (anthropic.APIConnectionError(request=_REQUEST), "connection_error"),
    (anthropic.APITimeoutError(request=_REQUEST), "timeout"),
    (RuntimeError("socket closed"), "unknown"),
])
async def test_setup_errors_mapped(error, error_type):
    backend, _ = _backend(setup_error=error)
    aggregator = CompletionAggregator("claude-test", timeout_seconds=2.0)
    run = aggregator.bind(backend.chat(make_request()))
    run.start()

    with pytest.raises(GenerationError) as exc:
        await aggregator.wait()

    assert exc.value.error_type == error_type
    assert isinstance(run.outcome, Failed)


async def test_rate_limit_carries_retry_after():
    response = httpx.Response(429, headers={"retry-after": "3"}, request=_REQUEST)
    error = anthropic.RateLimitError("slow down", response=response, body=None)
    backend, _ = _backend(setup_error=error)
    aggregator = CompletionAggregator("claude-test", timeout_seconds=2.0)
    aggregator.bind(backend.chat(make_request())).start()

    with pytest.raises(GenerationError) as exc:
        await aggregator.wait()

    assert exc.value.error_type == "rate_limit"
    assert exc.value.context.retry_after_ms == 3000


async def test_mid_stream_error_fails_after_tokens():
    stream = _FakeStream(
        ["par", "tial"], 1, 1,
        error=anthropic.APIConnectionError(request=_REQUEST),
    )
    backend, _ = _backend(stream)
    tokens = []
    errors = []
    done = asyncio.Event()

    run = backend.chat(make_request())
    run.on_token(tokens.append)
    run.on_error(lambda e: (errors.append(e), done.set()))
    run.on_complete(lambda s: done.set())
    run.start()
    await asyncio.wait_for(done.wait(), 2)

    assert tokens == ["par", "tial"]
    assert len(errors) == 1
    assert errors[0].error_type == "connection_error"


class _StalledStream:
    """Yields one delta, then waits forever for the next."""

    def __init__(self):
        self.stalled = asyncio.Event()

    @property
    def text_stream(self):
        return self._iter_texts()

    async def _iter_texts(self):
        yield "par"
        self.stalled.set()
        await asyncio.Event().wait()


async def test_cancelled_task_fails_run_once():
    stream = _StalledStream()
    backend, _ = _backend(stream)
    emitter = StreamEmitter()
    run = bind_emitter(backend.chat(make_request()), emitter)
    run.start()
    await asyncio.wait_for(stream.stalled.wait(), 2)

    (task,) = backend._tasks
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert isinstance(run.outcome, Failed)
    assert run.outcome.error.error_type == "cancelled"
    events = [event async for event in emitter.events()]
    assert [e["type"] for e in events] == ["content", "error"]
    assert events[-1]["data"]["code"] == "GENERATION_ERROR"
