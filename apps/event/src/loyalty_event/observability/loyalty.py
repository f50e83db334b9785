from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class LoyaltySnapshot:
    outcomes: Dict[str, int]
    skips: Dict[str, int]
    failures: Dict[str, int]
    points: Dict[str, int]
    version_conflicts: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "outcomes": dict(self.outcomes),
            "skips": dict(self.skips),
            "failures": dict(self.failures),
            "points": dict(self.points),
            "version_conflicts": self.version_conflicts,
        }


class LoyaltyObservabilityStore:
    """Collect loyalty event processing telemetry for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._outcomes: Dict[str, int] = defaultdict(int)
        self._skips: Dict[str, int] = defaultdict(int)
        self._failures: Dict[str, int] = defaultdict(int)
        self._points: Dict[str, int] = defaultdict(int)
        self._version_conflicts = 0

    def record_outcome(self, status: str, *, reason: str | None = None) -> None:
        with self._lock:
            self._outcomes[status] += 1
            if reason:
                self._skips[reason] += 1

    def record_points(self, direction: str, *, earned: int, deducted: int) -> None:
        with self._lock:
            self._points[f"{direction}:earned"] += earned
            self._points[f"{direction}:deducted"] += deducted

    def record_version_conflict(self) -> None:
        with self._lock:
            self._version_conflicts += 1

    def record_failure(self, kind: str) -> None:
        with self._lock:
            self._failures[kind or "unknown"] += 1

    def snapshot(self) -> LoyaltySnapshot:
        with self._lock:
            return LoyaltySnapshot(
                outcomes=dict(self._outcomes),
                skips=dict(self._skips),
                failures=dict(self._failures),
                points=dict(self._points),
                version_conflicts=self._version_conflicts,
            )

    def reset(self) -> None:
        with self._lock:
            self._outcomes.clear()
            self._skips.clear()
            self._failures.clear()
            self._points.clear()
            self._version_conflicts = 0


_STORE = LoyaltyObservabilityStore()


def get_loyalty_store() -> LoyaltyObservabilityStore:
    return _STORE


__all__ = ["get_loyalty_store", "LoyaltyObservabilityStore", "LoyaltySnapshot"]
