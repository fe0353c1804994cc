from __future__ import annotations

from flowsprint.core.providers.base import HealthStatus
from flowsprint.core.providers.openai_compatible import OpenAICompatibleAdapter


class CerebrasAdapter(OpenAICompatibleAdapter):
    name = "cerebras"
    display_name = "Cerebras"
    description = "Ultra-fast inference (<100ms)"
    use_cases = ("Real-time mindmaps", "Live code completion", "Instant insights")

    def health_check(self) -> HealthStatus:
        status = self._probe_chat()
        if status.healthy and status.response_time_ms is not None:
            status.detail["isUltraFast"] = status.response_time_ms < 100
        return status
