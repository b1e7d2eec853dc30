"""Configuration and runtime bootstrapping."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure the database directory exists and return resolved paths."""
    paths_cfg = config.get("paths", {})
    db_path = (root / paths_cfg.get("db_path", "workspace/ax.db")).resolve()
    entities_path = (root / paths_cfg.get("entities_path", "workspace/entities.json")).resolve()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "db_path": db_path,
        "entities_path": entities_path,
    }


def load_effective_config(root: Path) -> dict[str, Any]:
    """Load default configuration and apply the optional local override."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    local_cfg = load_yaml(config_dir / "local.yaml")
    return merge_dicts(default_cfg, local_cfg)


def configure_logging(config: dict[str, Any], verbose: bool = False) -> None:
    """Configure root logging from the ``logging`` config section."""
    logging_cfg = config.get("logging", {})
    level_name = "DEBUG" if verbose else str(logging_cfg.get("level", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format=logging_cfg.get("format", DEFAULT_LOG_FORMAT),
    )
