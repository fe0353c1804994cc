from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class InstanceConfig(BaseModel):
    name: str = "flowsprint"


class TelemetryConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///flowsprint.db"


class GatewayConfig(BaseModel):
    health_interval_seconds: int = Field(default=30, ge=1)
    attempt_timeout_seconds: int = Field(default=60, ge=1)
    latency_average: Literal["pairwise", "running"] = "pairwise"
    fast_inference: str = "cerebras"
    general_purpose: str = "openrouter"
    code_specialist: str = "meta-llama"


class ProviderConfig(BaseModel):
    enabled: bool = True
    base_url: str | None = None
    api_key_env: str | None = None
    model: str | None = None
    models: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: int = 30


class ProvidersConfig(BaseModel):
    cerebras: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://api.cerebras.ai/v1",
            api_key_env="CEREBRAS_API_KEY",
            model="llama3.1-8b",
        )
    )
    openrouter: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://openrouter.ai/api/v1",
            api_key_env="OPENROUTER_API_KEY",
            model="meta-llama/llama-4-maverick-17b-128e-instruct:free",
            models={"mindmap": "meta-llama/llama-4-scout-17b-16e-instruct:free"},
        )
    )
    meta_llama: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            base_url="https://router.huggingface.co/v1",
            api_key_env="HUGGINGFACE_API_KEY",
            model="meta-llama/Llama-4-Scout-17B-16E-Instruct",
            models={"prd": "meta-llama/Llama-4-Maverick-17B-128E-Instruct"},
        )
    )
    site_url: str = "http://localhost:3000"
    site_name: str = "FlowSprint.AI"


class RuntimeConfig(BaseModel):
    cors_origin: str = "http://localhost:3000"
    auto_mindmap_on_create: bool = True


class AppConfig(BaseModel):
    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    environment: str = "dev"
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
