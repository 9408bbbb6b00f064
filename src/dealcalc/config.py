"""Configuration loading (``dealcalc.yaml``) and document helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "dealcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    # Compare saved text to the canonical defaults ignoring whitespace.
    "normalize_default_whitespace": False,
    # Round offers half-up to whole units and clamp at zero for display.
    "round_offers": True,
    "log_dir": None,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def _flatten_logging_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``logging:`` block into flat config keys.

    Supports::

        logging:
          dir: .dealcalc/logs
          fsync: true
          tail_bytes: 1048576

    Maps to ``log_dir``, ``logging_fsync`` and ``logging_tail_bytes``.
    """
    block = user_config.pop("logging", None)
    if not isinstance(block, dict):
        return user_config

    mapping = {
        "dir": "log_dir",
        "fsync": "logging_fsync",
        "tail_bytes": "logging_tail_bytes",
    }
    for short_key, flat_key in mapping.items():
        if short_key in block:
            user_config[flat_key] = block[short_key]
    return user_config


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from *path* (or ``./dealcalc.yaml``), with defaults.

    A missing default file is not an error; a missing explicit *path* is.

    Args:
        path: Explicit config file.

    Returns:
        Merged configuration dict.

    Raises:
        FileNotFoundError: If an explicit *path* does not exist.
        ValueError: If the file is not a mapping or has unknown keys.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = path if path is not None else Path.cwd() / CONFIG_FILENAME
    if not config_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return config

    user_config = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"{config_path}: expected a mapping at top level")
    user_config = _flatten_logging_block(user_config)
    unknown = sorted(set(user_config) - set(DEFAULT_CONFIG))
    if unknown:
        raise ValueError(f"{config_path}: unknown config keys {unknown}")
    config.update(user_config)

    if config["log_dir"] is not None:
        log_dir = Path(config["log_dir"])
        if not log_dir.is_absolute():
            log_dir = config_path.parent / log_dir
        config["log_dir"] = str(log_dir)
    return config


def configure_logging(config: dict[str, Any]) -> None:
    """Point the event sink at ``config["log_dir"]`` (or disable it)."""
    from dealcalc.logging import set_log_dir

    tb = config.get("logging_tail_bytes")
    set_log_dir(
        config.get("log_dir"),
        fsync=bool(config.get("logging_fsync", False)),
        tail_bytes=int(tb) if tb is not None else None,
    )


def load_document(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON file that must contain a mapping.

    ``.json`` files are parsed with :mod:`json`; anything else with
    ``yaml.safe_load`` (which also accepts JSON).

    Raises:
        ValueError: If the document is not a mapping.
    """
    text = path.read_text()
    data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data
