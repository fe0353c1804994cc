from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Literal

from flowsprint.core.providers.base import HealthStatus, ProviderAdapter
from flowsprint.core.runtime.errors import DuplicateProviderError, ProviderNotFoundError
from flowsprint.core.telemetry.logging import get_logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class AdapterRecord:
    name: str
    adapter: ProviderAdapter
    healthy: bool
    last_health_check_at: datetime
    request_count: int = 0
    error_count: int = 0
    avg_response_time_ms: float = 0.0
    last_health: HealthStatus | None = None


class ServiceRegistry:
    """Registered adapters plus their live health and latency state.

    All mutation goes through ``record_attempt`` and ``record_health`` under a
    single lock; readers get copies so nothing outside the registry can change a
    record.
    """

    def __init__(
        self,
        *,
        latency_average: Literal["pairwise", "running"] = "pairwise",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.latency_average = latency_average
        self._clock = clock
        self._records: dict[str, AdapterRecord] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("flowsprint.gateway.registry")

    def register(self, name: str, adapter: ProviderAdapter) -> None:
        with self._lock:
            if name in self._records:
                raise DuplicateProviderError(name)
            self._records[name] = AdapterRecord(
                name=name,
                adapter=adapter,
                healthy=True,
                last_health_check_at=self._clock(),
            )
        self.logger.info("provider_registered", provider=name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records

    def get(self, name: str) -> AdapterRecord:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                raise ProviderNotFoundError(name)
            return replace(record)

    def is_healthy(self, name: str) -> bool:
        with self._lock:
            record = self._records.get(name)
            return bool(record and record.healthy)

    def record_attempt(self, name: str, response_time_ms: float, success: bool) -> None:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                raise ProviderNotFoundError(name)
            record.request_count += 1
            if not success:
                record.error_count += 1
            if self.latency_average == "running":
                n = record.request_count
                record.avg_response_time_ms = record.avg_response_time_ms + (response_time_ms - record.avg_response_time_ms) / n
            else:
                record.avg_response_time_ms = (record.avg_response_time_ms + response_time_ms) / 2

    def record_health(self, name: str, status: HealthStatus) -> None:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                raise ProviderNotFoundError(name)
            record.healthy = status.status == "healthy"
            record.last_health = status
            record.last_health_check_at = self._clock()

    def total_requests(self) -> int:
        with self._lock:
            return sum(r.request_count for r in self._records.values())

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            records = [replace(r) for r in self._records.values()]

        out: dict[str, dict] = {}
        for r in records:
            if r.request_count > 0:
                error_rate = round(r.error_count / r.request_count * 100, 2)
                error_rate_label = f"{error_rate:.2f}%"
            else:
                error_rate = 0.0
                error_rate_label = "0%"
            out[r.name] = {
                "healthy": r.healthy,
                "requestCount": r.request_count,
                "errorCount": r.error_count,
                "avgResponseTimeMs": round(r.avg_response_time_ms, 2),
                "errorRatePercent": error_rate,
                "errorRate": error_rate_label,
                "lastHealthCheckAt": r.last_health_check_at.isoformat(),
                "lastError": r.last_health.error if r.last_health else None,
            }
        return out
