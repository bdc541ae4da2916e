"""Per-book cost, time and token ledger keyed by ``<stage>_<page_id>``"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

SCHEMA_VERSION = "1.0"


def _now() -> str:
    return datetime.now().isoformat()


def _add(current: Any, value: Any) -> Any:
    if isinstance(current, (int, float)) and isinstance(value, (int, float)):
        return current + value
    return value


class MetricsManager:
    """
    JSON-file metrics store.

    Each key maps to one entry holding cost_usd, time_seconds, optional
    tokens and any custom fields. Recording a key replaces its entry unless
    ``accumulate`` is set, in which case numeric fields are summed. Every
    write goes to a temp file first and is renamed into place.
    """

    def __init__(self, metrics_file: Path):
        self.metrics_file = Path(metrics_file)
        self._lock = threading.RLock()
        self._metrics: Dict[str, Dict[str, Any]] = {}
        self._created_at = _now()
        self._load()

    def record(
        self,
        key: str,
        cost_usd: float = 0.0,
        time_seconds: float = 0.0,
        tokens: Optional[int] = None,
        custom_metrics: Optional[Dict[str, Any]] = None,
        accumulate: bool = False
    ) -> None:
        values: Dict[str, Any] = {"cost_usd": cost_usd, "time_seconds": time_seconds}
        if tokens is not None:
            values["tokens"] = tokens
        values.update(custom_metrics or {})

        with self._lock:
            entry = dict(self._metrics.get(key, {})) if accumulate else {}
            for name, value in values.items():
                entry[name] = _add(entry[name], value) if name in entry else value
            entry["updated_at"] = _now()

            self._metrics[key] = entry
            self._save()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._metrics.get(key)
            return dict(entry) if entry is not None else None

    def get_all(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {key: dict(entry) for key, entry in self._metrics.items()}

    def _sum(self, field: str, prefix: Optional[str] = None) -> float:
        with self._lock:
            return sum(
                entry.get(field, 0)
                for key, entry in self._metrics.items()
                if prefix is None or key.startswith(prefix)
            )

    def get_total_cost(self) -> float:
        return self._sum("cost_usd")

    def get_total_time(self) -> float:
        return self._sum("time_seconds")

    def get_cumulative_metrics(self, prefix: Optional[str] = None) -> Dict[str, Any]:
        """Totals over every key starting with ``prefix`` (all keys when None)."""
        with self._lock:
            requests = sum(1 for key in self._metrics if prefix is None or key.startswith(prefix))
            return {
                "total_requests": requests,
                "total_cost_usd": self._sum("cost_usd", prefix),
                "total_time_seconds": self._sum("time_seconds", prefix),
                "total_prompt_tokens": self._sum("prompt_tokens", prefix),
                "total_completion_tokens": self._sum("completion_tokens", prefix),
            }

    def reset(self) -> None:
        with self._lock:
            self._metrics = {}
            self._created_at = _now()
            self._save()

    def _load(self) -> None:
        if not self.metrics_file.exists():
            return

        try:
            with open(self.metrics_file, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            # rebuilt from scratch on the next record
            return

        if isinstance(data, dict) and isinstance(data.get("metrics"), dict):
            self._metrics = data["metrics"]
            self._created_at = data.get("created_at", self._created_at)

    def _save(self) -> None:
        self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": SCHEMA_VERSION,
            "created_at": self._created_at,
            "updated_at": _now(),
            "metrics": self._metrics,
        }

        temp_file = self.metrics_file.with_suffix('.tmp')
        try:
            with open(temp_file, 'w') as f:
                json.dump(payload, f, indent=2)
            temp_file.replace(self.metrics_file)
        except OSError:
            temp_file.unlink(missing_ok=True)
            raise
