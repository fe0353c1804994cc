from __future__ import annotations

import threading

from flowsprint.core.gateway.registry import ServiceRegistry
from flowsprint.core.providers.base import HealthStatus
from flowsprint.core.runtime.errors import ProviderNotFoundError, compact_error_summary
from flowsprint.core.telemetry.logging import get_logger

DEFAULT_INTERVAL_SECONDS = 30


class HealthMonitor:
    """Periodically probes every registered adapter and stores the outcome in the registry.

    Probes run outside the registry lock, so a slow health check never stalls
    routing. ``tick`` performs one sweep synchronously; ``start``/``stop`` manage
    the background thread that calls it every ``interval_seconds``.
    """

    def __init__(self, registry: ServiceRegistry, *, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> None:
        self.registry = registry
        self.interval_seconds = max(0.01, float(interval_seconds))
        self.logger = get_logger("flowsprint.gateway.health")
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def check(self, name: str) -> HealthStatus:
        adapter = self.registry.get(name).adapter
        try:
            status = adapter.health_check()
        except Exception as exc:  # noqa: BLE001
            status = HealthStatus(status="unhealthy", error=str(exc) or compact_error_summary(exc))
        if not isinstance(status, HealthStatus):
            status = HealthStatus(status="unhealthy", error=f"invalid health result: {type(status).__name__}")
        if status.healthy:
            self.logger.debug("provider_health", provider=name, status=status.status, response_time_ms=status.response_time_ms)
        else:
            self.logger.warning("provider_health", provider=name, status=status.status, error=status.error)
        return status

    def tick(self) -> dict[str, HealthStatus]:
        results: dict[str, HealthStatus] = {}
        for name in self.registry.names():
            status = self.check(name)
            try:
                self.registry.record_health(name, status)
            except ProviderNotFoundError:
                continue
            results[name] = status
        return results

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception as exc:  # noqa: BLE001
                self.logger.error("health_tick_failed", error=compact_error_summary(exc))

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="flowsprint-health-monitor", daemon=True)
        self._thread.start()
        self.logger.info("health_monitor_started", interval_seconds=self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        self._thread = None
        self.logger.info("health_monitor_stopped")
