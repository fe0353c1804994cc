from __future__ import annotations

from dataclasses import dataclass

from flowsprint.core.config.loader import load_app_config
from flowsprint.core.config.schema import AppConfig, ProviderConfig
from flowsprint.core.gateway.health import HealthMonitor
from flowsprint.core.gateway.policy import Role
from flowsprint.core.gateway.registry import ServiceRegistry
from flowsprint.core.gateway.router import GatewayRouter
from flowsprint.core.projects.service import ProjectService
from flowsprint.core.providers.base import ProviderAdapter
from flowsprint.core.providers.cerebras_adapter import CerebrasAdapter
from flowsprint.core.providers.meta_llama_adapter import MetaLlamaAdapter
from flowsprint.core.providers.openrouter_adapter import OpenRouterAdapter
from flowsprint.core.telemetry.logging import configure_logging, get_logger
from flowsprint.db.session import init_db


@dataclass(slots=True)
class GatewayRuntime:
    cfg: AppConfig
    registry: ServiceRegistry
    router: GatewayRouter
    health_monitor: HealthMonitor
    project_service: ProjectService

    def start(self) -> None:
        self.health_monitor.start()

    def stop(self) -> None:
        self.health_monitor.stop()


def _adapter_kwargs(pc: ProviderConfig) -> dict:
    return {
        "base_url": pc.base_url or "",
        "api_key_env": pc.api_key_env,
        "default_model": pc.model or "",
        "models": pc.models,
        "timeout_seconds": pc.timeout_seconds,
    }


def build_adapters(cfg: AppConfig) -> list[ProviderAdapter]:
    providers = cfg.providers
    adapters: list[ProviderAdapter] = []
    if providers.cerebras.enabled:
        adapters.append(CerebrasAdapter(**_adapter_kwargs(providers.cerebras)))
    if providers.openrouter.enabled:
        adapters.append(
            OpenRouterAdapter(
                site_url=providers.site_url,
                site_name=providers.site_name,
                **_adapter_kwargs(providers.openrouter),
            )
        )
    if providers.meta_llama.enabled:
        adapters.append(MetaLlamaAdapter(**_adapter_kwargs(providers.meta_llama)))
    return adapters


def role_bindings(cfg: AppConfig, registered: list[str]) -> dict[Role, str]:
    wanted = {
        Role.FAST_INFERENCE: cfg.gateway.fast_inference,
        Role.GENERAL_PURPOSE: cfg.gateway.general_purpose,
        Role.CODE_SPECIALIST: cfg.gateway.code_specialist,
    }
    # Specialised roles bound to a disabled provider are left unbound; the
    # general-purpose binding is kept so the router rejects it at start-up.
    return {
        role: name
        for role, name in wanted.items()
        if name in registered or role == Role.GENERAL_PURPOSE
    }


def build_gateway_runtime(
    config_path: str | None = None,
    *,
    cfg: AppConfig | None = None,
    adapters: list[ProviderAdapter] | None = None,
) -> GatewayRuntime:
    cfg = cfg or load_app_config(instance_path=config_path)
    configure_logging(cfg.telemetry.log_level, cfg.telemetry.json_logs)
    logger = get_logger("flowsprint.runtime")

    registry = ServiceRegistry(latency_average=cfg.gateway.latency_average)
    for adapter in adapters if adapters is not None else build_adapters(cfg):
        registry.register(adapter.name, adapter)

    router = GatewayRouter(
        registry,
        role_bindings(cfg, registry.names()),
        attempt_timeout_seconds=cfg.gateway.attempt_timeout_seconds,
    )
    monitor = HealthMonitor(registry, interval_seconds=cfg.gateway.health_interval_seconds)

    session_factory, _engine = init_db(cfg.database.url)
    project_service = ProjectService(
        db_session_factory=session_factory,
        router=router,
        auto_mindmap=cfg.runtime.auto_mindmap_on_create,
    )
    logger.info("gateway_runtime_ready", providers=registry.names(), environment=cfg.environment)
    return GatewayRuntime(
        cfg=cfg,
        registry=registry,
        router=router,
        health_monitor=monitor,
        project_service=project_service,
    )
