"""Structured JSONL event log for replay runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(slots=True)
class LogPaths:
    base: Path
    events: Path


class RunEventLog:
    """Writes one JSONL record per executed step."""

    def __init__(self, run_id: str, paths: LogPaths) -> None:
        self.run_id = run_id
        self.paths = paths
        self._events_file = paths.events.open("a", encoding="utf-8")

    def log_step(
        self,
        *,
        index: int,
        kind: str,
        ok: bool,
        duration_ms: int,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = {
            "ts": time.time(),
            "run_id": self.run_id,
            "event": "step",
            "index": index,
            "kind": kind,
            "ok": ok,
            "duration_ms": duration_ms,
            "error": error,
            "error_code": error_code,
            "metadata": metadata or {},
        }
        self._write(payload)

    def log_outcome(self, outcome: Dict[str, Any]) -> None:
        self._write({"ts": time.time(), "run_id": self.run_id, "event": "outcome", "outcome": outcome})

    def _write(self, payload: Dict[str, Any]) -> None:
        self._events_file.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._events_file.flush()

    def close(self) -> None:
        if not self._events_file.closed:
            self._events_file.close()

    def __enter__(self) -> "RunEventLog":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def prepare_log_paths(run_id: str, log_root: Path) -> LogPaths:
    base_dir = log_root / run_id
    base_dir.mkdir(parents=True, exist_ok=True)
    return LogPaths(base=base_dir, events=base_dir / "events.jsonl")


def open_event_log(run_id: str, log_root: Optional[Path]) -> Optional[RunEventLog]:
    if log_root is None:
        return None
    return RunEventLog(run_id, prepare_log_paths(run_id, log_root))


__all__ = ["LogPaths", "RunEventLog", "prepare_log_paths", "open_event_log"]
