# SPDX-License-Identifier: Apache-2.0
"""
Conformance report.

Each scenario yields a pass/fail outcome; failures carry the diagnostic a CI
system needs without a re-run: the schema violation list for a
ValidationError, the observed message types for a WaitTimeoutError, the
underlying cause for a TransportError.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConformanceError


@dataclass(frozen=True)
class ScenarioOutcome:
    name: str
    interface: str
    outcome: str  # passed | failed | skipped | error
    duration_ms: float = 0.0
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.outcome == "passed"


def diagnostics_for(exc: Optional[BaseException]) -> Dict[str, Any]:
    """Machine-readable context for a failure."""
    if exc is None:
        return {}
    if isinstance(exc, ConformanceError):
        return exc.to_dict()
    return {"error": type(exc).__name__, "message": str(exc)}


@dataclass
class ConformanceReport:
    """Thread-safe collection of scenario outcomes for one run."""

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    outcomes: List[ScenarioOutcome] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def record(self, outcome: ScenarioOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)

    def record_result(
        self,
        name: str,
        interface: str,
        outcome: str,
        duration_ms: float = 0.0,
        exc: Optional[BaseException] = None,
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> ScenarioOutcome:
        diag = dict(diagnostics or diagnostics_for(exc))
        result = ScenarioOutcome(name, interface, outcome, duration_ms, diag)
        self.record(result)
        return result

    def by_interface(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            table: Dict[str, Dict[str, int]] = {}
            for o in self.outcomes:
                row = table.setdefault(o.interface, {"passed": 0, "failed": 0, "skipped": 0, "error": 0})
                row[o.outcome] = row.get(o.outcome, 0) + 1
            return table

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            counts: Dict[str, int] = {"passed": 0, "failed": 0, "skipped": 0, "error": 0}
            for o in self.outcomes:
                counts[o.outcome] = counts.get(o.outcome, 0) + 1
            return {
                "total": len(self.outcomes),
                **counts,
                "conformant": counts["passed"] > 0 and counts["failed"] == 0 and counts["error"] == 0,
                "duration_s": round(time.time() - self.started_at, 3),
                "interfaces": self.by_interface(),
            }

    def failures(self) -> List[ScenarioOutcome]:
        with self._lock:
            return [o for o in self.outcomes if o.outcome in ("failed", "error")]

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "summary": self.summary(),
                "scenarios": [asdict(o) for o in self.outcomes],
            }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True, default=str)

    def write(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
