"""
ObservabilityStore: audit log for export runs.
- Append-only JSONL event log per course
- Counters and on-demand summaries
- Read endpoints are exposed in api.py
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import json

from env import get_observability_root as _get_observability_root

def _utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z")

def _parse_iso_z(ts: str) -> Optional[datetime]:
    if not ts or not isinstance(ts, str):
        return None
    raw = ts.strip()
    if not raw:
        return None
    try:
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError:
        return None

def get_observability_root() -> Path:
    return _get_observability_root()

@dataclass
class ObservabilityStore:
    root: Path = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.root is None:
            self.root = get_observability_root()
        self.root = Path(self.root)

    def _course_dir(self, course: str) -> Path:
        if not course:
            raise ValueError("course is required")
        return self.root / course

    def _events_path(self, course: str) -> Path:
        return self._course_dir(course) / "events.jsonl"

    def _counters_path(self, course: str) -> Path:
        return self._course_dir(course) / "counters.json"

    def record_event(self, *, course: str, event: str, status: str = "success", level: str = "INFO", **fields: Any) -> Dict[str, Any]:
        cd = self._course_dir(course)
        cd.mkdir(parents=True, exist_ok=True)

        payload: Dict[str, Any] = {
            "timestamp": _utc_now_iso(),
            "course": course,
            "event": str(event),
            "status": str(status),
            "level": str(level),
        }
        payload.update(fields)

        with self._events_path(course).open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")

        self.increment(course=course, key=f"event:{event}")
        self.increment(course=course, key=f"status:{status}")
        self.increment(course=course, key=f"event_status:{event}:{status}")

        return payload

    def increment(self, *, course: str, key: str, amount: int = 1) -> None:
        cd = self._course_dir(course)
        cd.mkdir(parents=True, exist_ok=True)
        path = self._counters_path(course)
        counters = self.counters(course=course)
        counters[key] = int(counters.get(key, 0)) + int(amount)
        path.write_text(json.dumps(counters, ensure_ascii=False, sort_keys=True, indent=2), encoding="utf-8")

    def counters(self, *, course: str) -> Dict[str, int]:
        path = self._counters_path(course)
        counters: Dict[str, int] = {}
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(raw, dict):
                    for k, v in raw.items():
                        if isinstance(k, str) and isinstance(v, int):
                            counters[k] = v
            except json.JSONDecodeError:
                counters = {}
        return counters

    def list_events(self, *, course: str, limit: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest first. With `status`, only events with that status count toward `limit`."""
        if limit <= 0:
            return []
        p = self._events_path(course)
        if not p.exists():
            return []
        out: List[Dict[str, Any]] = []
        for line in reversed(p.read_text(encoding="utf-8").splitlines()):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(obj, dict):
                continue
            if status is not None and obj.get("status") != status:
                continue
            out.append(obj)
            if len(out) >= limit:
                break
        return out

    def summarize(self, *, course: str, hours: int = 24) -> Dict[str, Any]:
        now = datetime.now(tz=timezone.utc)
        since = None
        if hours is not None and int(hours) > 0:
            since = now - timedelta(hours=int(hours))

        runs: List[Dict[str, Any]] = []
        for e in self.list_events(course=course, limit=10_000):
            ts = _parse_iso_z(str(e.get("timestamp", "")))
            if ts is None or (since is not None and ts < since):
                continue
            runs.append(e)

        counts_by_event: Dict[str, int] = {}
        counts_by_status: Dict[str, int] = {}
        totals = {"blocks": 0, "payloads": 0, "mismatches": 0}
        failures = 0
        with_mismatches = 0
        last_success: Optional[str] = None
        last_failure: Optional[str] = None
        for e in runs:
            ev = str(e.get("event", ""))
            st = str(e.get("status", ""))
            counts_by_event[ev] = counts_by_event.get(ev, 0) + 1
            counts_by_status[st] = counts_by_status.get(st, 0) + 1
            if ev != "export_run":
                continue
            # runs are newest first
            if st == "error":
                failures += 1
                last_failure = last_failure or e.get("timestamp")
            elif st == "success":
                last_success = last_success or e.get("timestamp")
            counts = e.get("counts")
            if not isinstance(counts, dict):
                continue
            for key in totals:
                totals[key] += int(counts.get(key, 0) or 0)
            if int(counts.get("mismatches", 0) or 0) > 0:
                with_mismatches += 1

        alerts: List[Dict[str, Any]] = []
        if failures > 0:
            alerts.append({"type": "export_failure", "count": failures, "severity": "high"})
        if with_mismatches > 0:
            alerts.append({"type": "structural_mismatch", "count": with_mismatches, "severity": "medium"})

        return {
            "course": course,
            "window_hours": int(hours),
            "event_count": len(runs),
            "counts_by_event": counts_by_event,
            "counts_by_status": counts_by_status,
            "totals": totals,
            "last_success": last_success,
            "last_failure": last_failure,
            "alerts": alerts,
        }
