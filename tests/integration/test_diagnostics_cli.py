from __future__ import annotations

import json

from flowsprint.apps import diagnostics_cli
from flowsprint.apps.runtime_support import build_gateway_runtime
from flowsprint.core.config.schema import AppConfig
from flowsprint.core.providers.base import GenerationRequest, HealthStatus, ProviderAdapter, ProviderResponse


class ProbeAdapter(ProviderAdapter):
    def __init__(self, name: str, healthy: bool) -> None:
        self.name = name
        self.healthy = healthy

    def generate(self, request: GenerationRequest) -> ProviderResponse:
        raise AssertionError("not called")

    def health_check(self) -> HealthStatus:
        if self.healthy:
            return HealthStatus(status="healthy", response_time_ms=12)
        return HealthStatus(status="unhealthy", error="missing api key in env")


def _write_config(tmp_path) -> str:
    path = tmp_path / "instance.yaml"
    path.write_text(
        f"environment: test\ndatabase:\n  url: sqlite:///{tmp_path / 'diag.db'}\n",
        encoding="utf-8",
    )
    return str(path)


def _fake_runtime(cfg: AppConfig):
    adapters = [ProbeAdapter("cerebras", True), ProbeAdapter("openrouter", True), ProbeAdapter("meta-llama", False)]
    return build_gateway_runtime(cfg=cfg, adapters=adapters)


def test_diag_validate_config(tmp_path, capsys):
    rc = diagnostics_cli.main(["--config", _write_config(tmp_path), "--validate-config"])
    out = capsys.readouterr().out
    assert rc == 0
    assert "config-valid" in out
    assert "env=test" in out
    assert "general-purpose=openrouter" in out


def test_diag_invalid_config(tmp_path, capsys):
    bad = tmp_path / "bad.yaml"
    bad.write_text("gateway:\n  health_interval_seconds: never\n", encoding="utf-8")
    rc = diagnostics_cli.main(["--config", str(bad), "--validate-config"])
    assert rc == 1
    assert "config-invalid" in capsys.readouterr().out


def test_diag_check_providers_runs_one_health_tick(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("flowsprint.apps.diagnostics_cli.build_gateway_runtime", lambda cfg: _fake_runtime(cfg))
    rc = diagnostics_cli.main(["--config", _write_config(tmp_path), "--check-providers"])
    out = capsys.readouterr().out
    assert rc == 0
    assert "provider-checks:" in out
    assert "- cerebras: status=healthy response_time_ms=12" in out
    assert "- meta-llama: status=unhealthy" in out
    assert "missing api key in env" in out


def test_diag_gateway_status_prints_snapshot(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("flowsprint.apps.diagnostics_cli.build_gateway_runtime", lambda cfg: _fake_runtime(cfg))
    rc = diagnostics_cli.main(["--config", _write_config(tmp_path), "--gateway-status"])
    out = capsys.readouterr().out
    assert rc == 0
    snapshot = json.loads(out[out.index("{\n") :])
    assert snapshot["totalRequests"] == 0
    assert set(snapshot["services"]) == {"cerebras", "openrouter", "meta-llama"}


def test_diag_without_flags_prints_usage(capsys):
    assert diagnostics_cli.main([]) == 0
    assert "diag-ready" in capsys.readouterr().out
