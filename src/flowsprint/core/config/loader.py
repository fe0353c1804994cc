from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from flowsprint.core.config.schema import AppConfig

# Deployment settings that are usually injected through the environment.
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "FLOWSPRINT_ENVIRONMENT": ("environment",),
    "FLOWSPRINT_DATABASE_URL": ("database", "url"),
    "FLOWSPRINT_CORS_ORIGIN": ("runtime", "cors_origin"),
    "FLOWSPRINT_SITE_URL": ("providers", "site_url"),
    "FLOWSPRINT_LOG_LEVEL": ("telemetry", "log_level"),
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in override.items():
        current = out.get(key)
        out[key] = _merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return out


def _read_mapping(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _apply_env(tree: dict[str, Any]) -> dict[str, Any]:
    for var, keys in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if not value:
            continue
        node = tree
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value
    return tree


def load_app_config(
    defaults_path: str | Path = "config/defaults.yaml",
    instance_path: str | Path | None = None,
) -> AppConfig:
    """Defaults file, then the instance file, then environment overrides."""
    tree = _read_mapping(Path(defaults_path))

    instance = instance_path or os.getenv("FLOWSPRINT_CONFIG_FILE")
    if instance:
        tree = _merge(tree, _read_mapping(Path(instance)))

    try:
        return AppConfig.model_validate(_apply_env(tree))
    except ValidationError as exc:
        raise ValueError(f"Invalid FlowSprint configuration: {exc}") from exc
