"""Configuration loader for the replay runtime."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

ENV_PREFIX = "FLOWRUNNER_"
CONFIG_FILE = "flowrunner.toml"
CONFIG_TABLE = "flowrunner"

DEFAULTS: Dict[str, Any] = {
    "step_delay_ms": 500,
    "step_timeout_ms": 10000,
    "page_load_timeout_ms": 30000,
    "poll_interval_ms": 100,
    "settle_delay_ms": 200,
    "max_logs": 100,
    "notify_on_complete": True,
    "webhook_url": "",
    "data_dir": "~/.flowrunner",
    "log_root": "runs",
    "headless": True,
    "keep_pages_open": False,
    "try_all_alternatives": False,
    "timezone": "",
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


@dataclass(slots=True)
class ReplayConfig:
    step_delay_ms: int = DEFAULTS["step_delay_ms"]
    step_timeout_ms: int = DEFAULTS["step_timeout_ms"]
    page_load_timeout_ms: int = DEFAULTS["page_load_timeout_ms"]
    poll_interval_ms: int = DEFAULTS["poll_interval_ms"]
    settle_delay_ms: int = DEFAULTS["settle_delay_ms"]
    max_logs: int = DEFAULTS["max_logs"]
    notify_on_complete: bool = DEFAULTS["notify_on_complete"]
    webhook_url: str = DEFAULTS["webhook_url"]
    data_dir: Optional[Path] = field(default_factory=lambda: Path(DEFAULTS["data_dir"]).expanduser())
    log_root: Optional[Path] = field(default_factory=lambda: Path(DEFAULTS["log_root"]))
    headless: bool = DEFAULTS["headless"]
    keep_pages_open: bool = DEFAULTS["keep_pages_open"]
    try_all_alternatives: bool = DEFAULTS["try_all_alternatives"]
    timezone: str = DEFAULTS["timezone"]

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "ReplayConfig":
        data = dict(DEFAULTS)
        data.update({k: v for k, v in mapping.items() if k in DEFAULTS})
        data_dir = str(data["data_dir"]).strip()
        log_root = str(data["log_root"]).strip()
        return cls(
            step_delay_ms=int(data["step_delay_ms"]),
            step_timeout_ms=int(data["step_timeout_ms"]),
            page_load_timeout_ms=int(data["page_load_timeout_ms"]),
            poll_interval_ms=int(data["poll_interval_ms"]),
            settle_delay_ms=int(data["settle_delay_ms"]),
            max_logs=int(data["max_logs"]),
            notify_on_complete=_as_bool(data["notify_on_complete"]),
            webhook_url=str(data["webhook_url"]),
            data_dir=Path(data_dir).expanduser() if data_dir else None,
            log_root=Path(log_root).expanduser() if log_root else None,
            headless=_as_bool(data["headless"]),
            keep_pages_open=_as_bool(data["keep_pages_open"]),
            try_all_alternatives=_as_bool(data["try_all_alternatives"]),
            timezone=str(data["timezone"]).strip(),
        )


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_config(config_path: Path | None = None, *, environ: Optional[Dict[str, str]] = None) -> ReplayConfig:
    """Load configuration from environment, optional TOML file, and defaults."""

    env = os.environ if environ is None else environ
    env_map: Dict[str, Any] = {}
    for key, value in env.items():
        if key.startswith(ENV_PREFIX):
            env_map[key[len(ENV_PREFIX):].lower()] = value

    path = config_path or Path(CONFIG_FILE)
    file_map = _load_toml(path).get(CONFIG_TABLE, {})

    merged = {**file_map, **env_map}
    return ReplayConfig.from_mapping(merged)


__all__ = ["DEFAULTS", "ReplayConfig", "load_config"]
