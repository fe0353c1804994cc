from __future__ import annotations

import json
import os
from collections.abc import Iterator
from time import perf_counter
from typing import Any

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_fixed

from flowsprint.core.providers.base import (
    ChatShape,
    GenerationRequest,
    HealthStatus,
    ProviderAdapter,
    ProviderResponse,
)
from flowsprint.core.runtime.errors import AdapterCallError


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500 or exc.response.status_code == 429
    return False


_DONE = object()


def _delta_text(line: str):
    """Pull the delta text out of one server-sent event line; ``_DONE`` ends the stream."""
    if not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if data == "[DONE]":
        return _DONE
    try:
        parsed = json.loads(data)
    except ValueError:
        return None
    try:
        return parsed["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


class OpenAICompatibleAdapter(ProviderAdapter):
    """Chat-completions client shared by every provider speaking the OpenAI wire format."""

    name = "openai_compatible"
    display_name = "OpenAI-compatible"
    description = "Chat-completions endpoint"
    use_cases: tuple[str, ...] = ()

    def __init__(
        self,
        *,
        base_url: str,
        api_key_env: str | None,
        default_model: str,
        models: dict[str, str] | None = None,
        timeout_seconds: float = 30,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key_env = api_key_env
        self.default_model = default_model
        self.models = dict(models or {})
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def _api_key(self) -> str:
        return os.getenv(self.api_key_env or "", "")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key()}", "Content-Type": "application/json"}

    def _client(self, timeout: float | None = None) -> httpx.Client:
        return httpx.Client(timeout=timeout or self.timeout_seconds, transport=self.transport)

    def model_for(self, request: GenerationRequest) -> str:
        return request.model or self.models.get(request.kind) or self.default_model

    def _chat_body(self, request: GenerationRequest, model: str) -> dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_output_tokens,
            "stream": False,
        }

    @retry(stop=stop_after_attempt(2), wait=wait_fixed(0.2), retry=retry_if_exception(_is_transient), reraise=True)
    def _post_chat(self, body: dict[str, Any], timeout: float | None = None) -> dict[str, Any]:
        with self._client(timeout) as client:
            resp = client.post(f"{self.base_url}/chat/completions", json=body, headers=self._headers())
            resp.raise_for_status()
            return resp.json()

    def chat(self, request: GenerationRequest) -> tuple[str, dict[str, Any]]:
        model = self.model_for(request)
        try:
            body = self._post_chat(self._chat_body(request, model))
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            raise AdapterCallError(self.name, f"HTTP {code} from upstream", status_code=code) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise AdapterCallError(self.name, str(exc) or exc.__class__.__name__) from exc
        if not isinstance(body, dict) or not isinstance(body.get("choices"), list):
            raise AdapterCallError(self.name, "malformed chat completion body")
        return model, body

    def generate(self, request: GenerationRequest) -> ProviderResponse:
        model, body = self.chat(request)
        return ProviderResponse(provider=self.name, model=model, payload=ChatShape(body=body))

    def stream(self, request: GenerationRequest) -> Iterator[str]:
        body = self._chat_body(request, self.model_for(request))
        body["stream"] = True
        try:
            with self._client() as client:
                with client.stream(
                    "POST", f"{self.base_url}/chat/completions", json=body, headers=self._headers()
                ) as resp:
                    if resp.status_code >= 400:
                        raise AdapterCallError(
                            self.name, f"HTTP {resp.status_code} from upstream", status_code=resp.status_code
                        )
                    for line in resp.iter_lines():
                        chunk = _delta_text(line)
                        if chunk is _DONE:
                            return
                        if chunk:
                            yield chunk
        except httpx.HTTPError as exc:
            raise AdapterCallError(self.name, str(exc) or exc.__class__.__name__) from exc

    def describe(self) -> dict[str, Any]:
        models = [self.default_model, *self.models.values()]
        return {
            "name": self.display_name,
            "description": self.description,
            "models": sorted({m for m in models if m}),
            "useCases": list(self.use_cases),
        }

    def _probe_chat(self) -> HealthStatus:
        if not self._api_key():
            return HealthStatus(status="unhealthy", error="missing api key in env")
        started = perf_counter()
        probe = GenerationRequest(
            kind="health",
            prompt='Say "healthy"',
            system_prompt="You are a test AI.",
            max_output_tokens=10,
        )
        try:
            with self._client(timeout=10.0) as client:
                resp = client.post(
                    f"{self.base_url}/chat/completions",
                    json=self._chat_body(probe, self.default_model),
                    headers=self._headers(),
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            return HealthStatus(status="unhealthy", error=str(exc) or exc.__class__.__name__)
        elapsed = int((perf_counter() - started) * 1000)
        return HealthStatus(status="healthy", response_time_ms=elapsed, detail={"model": self.default_model})

    def health_check(self) -> HealthStatus:
        return self._probe_chat()
