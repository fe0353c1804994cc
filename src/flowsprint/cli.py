"""Shared CLI helpers for the flowsprint entry points."""

from __future__ import annotations

import argparse


def base_parser(name: str, description: str, *, with_config: bool = True) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=name, description=description)
    if with_config:
        parser.add_argument(
            "--config",
            default=None,
            help="Instance config file merged over config/defaults.yaml (falls back to $FLOWSPRINT_CONFIG_FILE)",
        )
    return parser
