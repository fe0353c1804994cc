from __future__ import annotations

from flowsprint.core.gateway.policy import Role
from flowsprint.core.gateway.registry import ServiceRegistry
from flowsprint.core.gateway.router import GatewayRouter
from flowsprint.core.providers.base import GenerationRequest, HealthStatus, PlainTextShape, ProviderAdapter, ProviderResponse
from flowsprint.core.telemetry.tracing import recent_traces


class FlakyAdapter(ProviderAdapter):
    def __init__(self, name: str, every: int) -> None:
        self.name = name
        self.every = every
        self.calls = 0

    def generate(self, request: GenerationRequest) -> ProviderResponse:
        self.calls += 1
        if self.every and self.calls % self.every == 0:
            raise RuntimeError("intermittent upstream failure")
        return ProviderResponse(provider=self.name, model="m", payload=PlainTextShape(text="ok"))

    def health_check(self) -> HealthStatus:
        return HealthStatus(status="healthy")


def test_long_run_counters_and_trace_buffer_stay_bounded():
    registry = ServiceRegistry()
    fast = FlakyAdapter("cerebras", every=3)
    general = FlakyAdapter("openrouter", every=0)
    registry.register(fast.name, fast)
    registry.register(general.name, general)
    router = GatewayRouter(registry, {Role.FAST_INFERENCE: "cerebras", Role.GENERAL_PURPOSE: "openrouter"})

    fallbacks = 0
    for i in range(900):
        result = router.route("mindmap", {"prompt": f"project {i}", "priority": "speed"})
        fallbacks += int(result.fallback_used)

    assert fallbacks == 300
    snap = registry.snapshot()
    assert snap["cerebras"]["requestCount"] == 900
    assert snap["cerebras"]["errorCount"] == 300
    assert snap["cerebras"]["errorRate"] == "33.33%"
    assert snap["openrouter"]["requestCount"] == 300
    assert registry.total_requests() == 1200
    assert len(recent_traces(limit=10_000)) <= 500
