from __future__ import annotations

import os
from pathlib import Path
from typing import Dict

import yaml

DEFAULT_CONFIG: Dict[str, object] = {
    "db_path": "spendlog.db",
    "default_user_id": None,
    "host": "127.0.0.1",
    "port": 8000,
    "output_dir": "./data",
    "output_modules": {
        "csv": "spendlog.outputs.csv_output.CSVOutput",
        "excel": "spendlog.outputs.excel_output.ExcelOutput",
    },
}

_ENV_OVERRIDES = {
    "SPENDLOG_DB_PATH": ("db_path", str),
    "SPENDLOG_DEFAULT_USER_ID": ("default_user_id", str),
    "SPENDLOG_HOST": ("host", str),
    "SPENDLOG_PORT": ("port", int),
    "SPENDLOG_OUTPUT_DIR": ("output_dir", str),
}


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = value
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def _apply_env(config: Dict[str, object]) -> Dict[str, object]:
    for env_name, (key, cast) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            config[key] = cast(raw.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid value for {env_name}: {raw!r}") from exc
    return config


def load_config(path: str | Path | None = None) -> Dict[str, object]:
    """Load the YAML config at ``path`` over the defaults, then apply env overrides.

    A missing file is not an error: the defaults are used as-is.
    """
    data: Dict[str, object] = {}
    if path is not None:
        target = Path(path)
        if target.exists():
            with target.open("r", encoding="utf-8") as fp:
                data = yaml.safe_load(fp) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {target} must contain a mapping")
    return _apply_env(_merge_defaults(data, DEFAULT_CONFIG))
