from __future__ import annotations

import json

import httpx
import pytest

from flowsprint.core.providers.base import ChatShape, GenerationRequest, PreExtractedShape
from flowsprint.core.providers.cerebras_adapter import CerebrasAdapter
from flowsprint.core.providers.meta_llama_adapter import MetaLlamaAdapter
from flowsprint.core.providers.openrouter_adapter import OpenRouterAdapter
from flowsprint.core.runtime.errors import AdapterCallError


def _chat(content: str) -> dict:
    return {"id": "x", "choices": [{"message": {"role": "assistant", "content": content}}]}


class Recorder:
    """Replays (status, json) pairs; the last pair repeats once the script runs out."""

    def __init__(self, *responses: tuple[int, dict]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, json=body)


def _kwargs(recorder: Recorder, **extra) -> dict:
    return {
        "base_url": "https://llm.test/v1/",
        "api_key_env": "FLOWSPRINT_TEST_KEY",
        "default_model": "base-model",
        "transport": httpx.MockTransport(recorder),
        **extra,
    }


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setenv("FLOWSPRINT_TEST_KEY", "sk-test")


def test_chat_completion_request_and_shape():
    recorder = Recorder((200, _chat("hello")))
    adapter = CerebrasAdapter(**_kwargs(recorder, models={"mindmap": "fast-model"}))

    response = adapter.generate(GenerationRequest(kind="mindmap", prompt="plan it", system_prompt="be brief", max_output_tokens=50))

    assert isinstance(response.payload, ChatShape)
    assert response.provider == "cerebras"
    assert response.model == "fast-model"
    sent = recorder.requests[0]
    assert str(sent.url) == "https://llm.test/v1/chat/completions"
    assert sent.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(sent.content)
    assert body["model"] == "fast-model"
    assert body["max_tokens"] == 50
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


def test_request_model_override_wins():
    recorder = Recorder((200, _chat("ok")))
    adapter = CerebrasAdapter(**_kwargs(recorder, models={"code": "per-kind"}))
    response = adapter.generate(GenerationRequest(kind="code", prompt="x", model="explicit"))
    assert response.model == "explicit"


def test_transient_upstream_error_is_retried_once():
    recorder = Recorder((503, {"error": "busy"}), (200, _chat("second time")))
    adapter = CerebrasAdapter(**_kwargs(recorder))

    response = adapter.generate(GenerationRequest(kind="mindmap", prompt="x"))
    assert response.payload.body["choices"][0]["message"]["content"] == "second time"
    assert len(recorder.requests) == 2


def test_client_error_is_not_retried():
    recorder = Recorder((401, {"error": "bad key"}))
    adapter = OpenRouterAdapter(**_kwargs(recorder))

    with pytest.raises(AdapterCallError, match="HTTP 401 from upstream"):
        adapter.generate(GenerationRequest(kind="prd", prompt="x"))
    assert len(recorder.requests) == 1


def test_malformed_body_raises_adapter_error():
    recorder = Recorder((200, {"unexpected": True}))
    adapter = CerebrasAdapter(**_kwargs(recorder))
    with pytest.raises(AdapterCallError, match="malformed chat completion body"):
        adapter.generate(GenerationRequest(kind="mindmap", prompt="x"))


def test_openrouter_attribution_headers_and_model_listing():
    recorder = Recorder((200, {"data": [{"id": "a"}, {"id": "b"}]}))
    adapter = OpenRouterAdapter(site_url="https://flowsprint.test", site_name="FlowSprint", **_kwargs(recorder))

    status = adapter.health_check()
    assert status.healthy
    assert status.detail["availableModels"] == 2
    sent = recorder.requests[0]
    assert sent.method == "GET"
    assert str(sent.url) == "https://llm.test/v1/models"
    assert sent.headers["HTTP-Referer"] == "https://flowsprint.test"
    assert sent.headers["X-Title"] == "FlowSprint"


def test_openrouter_health_reports_upstream_failure():
    recorder = Recorder((500, {}))
    adapter = OpenRouterAdapter(**_kwargs(recorder))
    status = adapter.health_check()
    assert status.status == "unhealthy"
    assert status.error


def test_cerebras_health_probe(monkeypatch):
    recorder = Recorder((200, _chat("healthy")))
    adapter = CerebrasAdapter(**_kwargs(recorder))

    status = adapter.health_check()
    assert status.healthy
    assert "isUltraFast" in status.detail
    assert json.loads(recorder.requests[0].content)["max_tokens"] == 10

    monkeypatch.delenv("FLOWSPRINT_TEST_KEY")
    missing = adapter.health_check()
    assert missing.status == "unhealthy"
    assert missing.error == "missing api key in env"
    assert len(recorder.requests) == 1


def test_meta_llama_pre_extracts_code_and_text():
    fenced = "Here you go:\n```python\ndef add(a, b):\n    return a + b\n```"
    recorder = Recorder((200, _chat(fenced)))
    adapter = MetaLlamaAdapter(**_kwargs(recorder))

    code = adapter.generate(GenerationRequest(kind="code", prompt="x"))
    assert code.provider == "meta-llama"
    assert code.payload == PreExtractedShape(key="code", value="def add(a, b):\n    return a + b", raw=_chat(fenced))

    prd = adapter.generate(GenerationRequest(kind="prd", prompt="x"))
    assert prd.payload.key == "prd"
    assert prd.payload.value == fenced

    mindmap = adapter.generate(GenerationRequest(kind="mindmap", prompt="x"))
    assert mindmap.payload.key == "generated_text"


def _sse_body(*chunks: str) -> bytes:
    lines = [f'data: {json.dumps({"choices": [{"delta": {"content": c}}]})}' for c in chunks]
    lines.insert(1, "data: {not json")
    lines.append(": keep-alive")
    lines.append("data: [DONE]")
    lines.append(f'data: {json.dumps({"choices": [{"delta": {"content": "after done"}}]})}')
    return "\n\n".join(lines).encode()


def test_stream_yields_delta_text_until_done():
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, content=_sse_body("Hel", "lo", " world"), headers={"content-type": "text/event-stream"})

    adapter = CerebrasAdapter(
        base_url="https://llm.test/v1",
        api_key_env="FLOWSPRINT_TEST_KEY",
        default_model="base-model",
        transport=httpx.MockTransport(handler),
    )
    chunks = list(adapter.stream(GenerationRequest(kind="stream", prompt="hi", max_output_tokens=30)))

    assert chunks == ["Hel", "lo", " world"]
    body = json.loads(sent[0].content)
    assert body["stream"] is True
    assert body["max_tokens"] == 30
    assert sent[0].headers["Authorization"] == "Bearer sk-test"


def test_stream_upstream_error_raises_adapter_error():
    adapter = CerebrasAdapter(
        base_url="https://llm.test/v1",
        api_key_env="FLOWSPRINT_TEST_KEY",
        default_model="base-model",
        transport=httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "slow down"})),
    )
    with pytest.raises(AdapterCallError, match="HTTP 429 from upstream") as excinfo:
        list(adapter.stream(GenerationRequest(kind="stream", prompt="hi")))
    assert excinfo.value.status_code == 429


def test_describe_lists_configured_models():
    recorder = Recorder((200, _chat("ok")))
    adapter = MetaLlamaAdapter(**_kwargs(recorder, models={"prd": "big-model", "code": "base-model"}))
    info = adapter.describe()
    assert info["name"] == "Meta Llama"
    assert info["models"] == ["base-model", "big-model"]
    assert "Code generation" in info["useCases"]
