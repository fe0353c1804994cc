from __future__ import annotations

import json

from flowsprint.apps.runtime_support import build_gateway_runtime
from flowsprint.cli import base_parser
from flowsprint.core.config.loader import load_app_config


def main(argv: list[str] | None = None) -> int:
    parser = base_parser("flowsprint-diag", "FlowSprint gateway diagnostics CLI")
    parser.add_argument("--validate-config", action="store_true")
    parser.add_argument("--check-providers", action="store_true")
    parser.add_argument("--gateway-status", action="store_true")
    args = parser.parse_args(argv)

    if not (args.validate_config or args.check_providers or args.gateway_status):
        print("diag-ready (use --validate-config/--check-providers/--gateway-status)")
        return 0

    try:
        cfg = load_app_config(instance_path=args.config)
    except Exception as exc:  # noqa: BLE001
        print(f"config-invalid error={exc}")
        return 1

    if args.validate_config:
        bindings = (
            f"fast-inference={cfg.gateway.fast_inference} "
            f"general-purpose={cfg.gateway.general_purpose} "
            f"code-specialist={cfg.gateway.code_specialist}"
        )
        print(f"config-valid instance={cfg.instance.name} env={cfg.environment} {bindings}")

    if not (args.check_providers or args.gateway_status):
        return 0

    runtime = build_gateway_runtime(cfg=cfg)

    if args.check_providers:
        print("provider-checks:")
        statuses = runtime.health_monitor.tick()
        for name in sorted(statuses):
            item = statuses[name]
            print(
                f"- {name}: status={item.status} response_time_ms={item.response_time_ms} "
                f"error={item.error}"
            )

    if args.gateway_status:
        print(json.dumps(runtime.router.gateway_status(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
