from __future__ import annotations

import uuid
from collections.abc import Iterator, Mapping
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from flowsprint.core.gateway.normalizer import RouteResult, normalize
from flowsprint.core.gateway.policy import DEFAULT_POLICIES, Role, RoutingPolicy
from flowsprint.core.gateway.registry import ServiceRegistry
from flowsprint.core.providers.base import GenerationRequest, ProviderResponse
from flowsprint.core.providers.prompts import build_request
from flowsprint.core.runtime.errors import (
    AdapterCallError,
    AllProvidersFailedError,
    UnknownRequestKindError,
    UnregisteredProviderError,
    classify_error,
    compact_error_summary,
)
from flowsprint.core.runtime.timeouts import run_with_timeout_sync
from flowsprint.core.telemetry.logging import get_logger
from flowsprint.core.telemetry.tracing import RouteTraceContext, trace_event


class GatewayRouter:
    """Pick an adapter per request kind, call it, and walk the fallback order on failure.

    Candidates are tried strictly one after another. Every attempt, failed or
    not, is recorded against the adapter that served it before the next
    candidate is tried or the result is returned.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        bindings: Mapping[Role | str, str],
        *,
        policies: Mapping[str, RoutingPolicy] | None = None,
        attempt_timeout_seconds: float | None = None,
    ) -> None:
        self.registry = registry
        self.bindings: dict[Role, str] = {Role(role): name for role, name in bindings.items()}
        self.policies = dict(policies or DEFAULT_POLICIES)
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self.logger = get_logger("flowsprint.gateway.router")

        if Role.GENERAL_PURPOSE not in self.bindings:
            raise UnregisteredProviderError(Role.GENERAL_PURPOSE.value)
        for name in self.bindings.values():
            if name not in registry:
                raise UnregisteredProviderError(name)

    def kinds(self) -> list[str]:
        return sorted(self.policies)

    def plan(self, kind: str, payload: Mapping[str, Any]) -> list[str]:
        policy = self.policies.get(kind)
        if policy is None:
            raise UnknownRequestKindError(kind)

        chain: list[str] = []
        for role in policy.roles():
            name = self.bindings.get(role)
            if name is None or name in chain:
                continue
            if role == Role.GENERAL_PURPOSE:
                chain.append(name)
            elif policy.allows(role, payload) and self.registry.is_healthy(name):
                chain.append(name)
        return chain

    def _call(self, name: str, request: GenerationRequest) -> ProviderResponse:
        adapter = self.registry.get(name).adapter
        if self.attempt_timeout_seconds:
            return run_with_timeout_sync(lambda: adapter.generate(request), timeout_seconds=self.attempt_timeout_seconds)
        return adapter.generate(request)

    def route(
        self,
        kind: str,
        payload: Mapping[str, Any],
        options: dict[str, Any] | None = None,
        *,
        request_id: str | None = None,
    ) -> RouteResult:
        chain = self.plan(kind, payload)
        # Input errors surface here, before any adapter is charged an attempt.
        request = build_request(kind, dict(payload), options)
        ctx = RouteTraceContext(request_id=request_id or uuid.uuid4().hex, kind=kind)
        attempted: list[str] = []
        original_error: str | None = None

        for index, name in enumerate(chain):
            attempted.append(name)
            if index > 0:
                trace_event(self.logger, ctx, "route_fallback", "retrying", {"provider": name, "attempt": index + 1})
            started = perf_counter()
            try:
                response = self._call(name, request)
                elapsed = (perf_counter() - started) * 1000
                result = normalize(
                    response.payload,
                    name,
                    response.model,
                    elapsed,
                    fallback_used=index > 0,
                    attempted=list(attempted),
                )
                if not result.content.strip():
                    raise AdapterCallError(name, f"No content in {name} response")
            except Exception as exc:  # noqa: BLE001
                elapsed = (perf_counter() - started) * 1000
                self.registry.record_attempt(name, elapsed, success=False)
                info = classify_error(exc, category="provider", component=name)
                if original_error is None:
                    original_error = str(exc) or compact_error_summary(exc)
                trace_event(
                    self.logger,
                    ctx,
                    "route_attempt",
                    "error",
                    {
                        "provider": name,
                        "elapsed_ms": round(elapsed, 2),
                        "error_type": info.error_type,
                        "retryable": info.retryable,
                        "http_status": info.http_status,
                        "error": compact_error_summary(exc),
                    },
                )
                continue

            self.registry.record_attempt(name, elapsed, success=True)
            trace_event(
                self.logger,
                ctx,
                "route_ok",
                "ok",
                {"provider": name, "model": result.model, "elapsed_ms": round(elapsed, 2), "fallback": result.fallback_used},
            )
            return result

        trace_event(self.logger, ctx, "route_failed", "error", {"attempted": attempted})
        raise AllProvidersFailedError(kind, original_error or "no eligible provider", attempted)

    def open_stream(
        self,
        prompt: str,
        *,
        provider: str | None = None,
        max_tokens: int = 1500,
        request_id: str | None = None,
    ) -> Iterator[str]:
        """Stream one prompt through a single adapter, the fast-inference one unless ``provider`` is given.

        The adapter is resolved before the first chunk is pulled, so an unknown
        name raises ``ProviderNotFoundError`` here. There is no fallback once
        chunks have been handed out; the attempt is recorded when the stream ends.
        """
        name = provider or self.bindings.get(Role.FAST_INFERENCE) or self.bindings[Role.GENERAL_PURPOSE]
        adapter = self.registry.get(name).adapter
        request = GenerationRequest(kind="stream", prompt=prompt, max_output_tokens=max_tokens)
        ctx = RouteTraceContext(request_id=request_id or uuid.uuid4().hex, kind="stream")
        return self._stream(name, adapter, request, ctx)

    def _stream(self, name: str, adapter, request: GenerationRequest, ctx: RouteTraceContext) -> Iterator[str]:
        started = perf_counter()
        chunks = 0
        try:
            for chunk in adapter.stream(request):
                chunks += 1
                yield chunk
        except Exception as exc:  # noqa: BLE001
            elapsed = (perf_counter() - started) * 1000
            self.registry.record_attempt(name, elapsed, success=False)
            trace_event(
                self.logger,
                ctx,
                "stream_failed",
                "error",
                {"provider": name, "elapsed_ms": round(elapsed, 2), "error": compact_error_summary(exc)},
            )
            raise
        elapsed = (perf_counter() - started) * 1000
        self.registry.record_attempt(name, elapsed, success=True)
        trace_event(self.logger, ctx, "stream_ok", "ok", {"provider": name, "elapsed_ms": round(elapsed, 2), "chunks": chunks})

    def providers(self) -> dict[str, dict[str, Any]]:
        catalog = {}
        for name in self.registry.names():
            entry = self.registry.get(name).adapter.describe()
            entry["roles"] = [role.value for role, bound in self.bindings.items() if bound == name]
            catalog[name] = entry
        return catalog

    def gateway_status(self) -> dict[str, Any]:
        return {
            "gateway": "FlowSprint Gateway",
            "status": "operational",
            "services": self.registry.snapshot(),
            "roles": {role.value: name for role, name in self.bindings.items()},
            "totalRequests": self.registry.total_requests(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def health_summary(self) -> dict[str, Any]:
        services = self.registry.snapshot()
        healthy = sum(1 for s in services.values() if s["healthy"])
        total = len(services)
        if total and healthy == total:
            overall = "healthy"
        elif healthy > 0:
            overall = "degraded"
        else:
            overall = "unhealthy"
        fast = self.bindings.get(Role.FAST_INFERENCE)
        return {
            "status": overall,
            "services": services,
            "summary": {
                "healthyServices": healthy,
                "totalServices": total,
                "healthPercentage": round(healthy / total * 100) if total else 0,
            },
            "capabilities": {
                "mindmapGeneration": healthy > 0,
                "codeGeneration": healthy > 0,
                "prdGeneration": healthy > 0,
                "fastInference": bool(fast and self.registry.is_healthy(fast)),
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
