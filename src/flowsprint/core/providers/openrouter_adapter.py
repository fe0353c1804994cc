from __future__ import annotations

from time import perf_counter

import httpx

from flowsprint.core.providers.base import HealthStatus
from flowsprint.core.providers.openai_compatible import OpenAICompatibleAdapter


class OpenRouterAdapter(OpenAICompatibleAdapter):
    name = "openrouter"
    display_name = "OpenRouter"
    description = "Multi-model routing and general-purpose fallback"
    use_cases = ("Fallback routing", "Model diversity", "Cost optimization")

    def __init__(self, *, site_url: str = "http://localhost:3000", site_name: str = "FlowSprint.AI", **kwargs) -> None:
        super().__init__(**kwargs)
        self.site_url = site_url
        self.site_name = site_name

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = self.site_url
        headers["X-Title"] = self.site_name
        return headers

    def health_check(self) -> HealthStatus:
        started = perf_counter()
        try:
            with self._client(timeout=10.0) as client:
                resp = client.get(f"{self.base_url}/models", headers=self._headers())
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            return HealthStatus(status="unhealthy", error=str(exc) or exc.__class__.__name__)
        models = body.get("data") if isinstance(body, dict) else None
        return HealthStatus(
            status="healthy",
            response_time_ms=int((perf_counter() - started) * 1000),
            detail={"availableModels": len(models or [])},
        )
