# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Stage timer for scan latency reporting.

One timer per scan attempt: ``stage("links")`` ends the previous stage and
starts the next; ``finalize()`` closes the last one on success or failure.
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(slots=True)
class StageRecord:
    name: str
    start_ns: int
    end_ns: int = 0

    @property
    def elapsed_ms(self) -> float:
        return round((self.end_ns - self.start_ns) / 1e6, 1)


_STAGE_HINTS = {
    "connect": "The page side is not answering. Reload the page and scan again.",
    "links": "Link extraction is slow. The page may be very large.",
    "verification": "Some external sites are slow to answer; each probe waits up to 10s.",
}


class PipelineTimer:
    """Track scan stage transitions."""

    __slots__ = ("_stages", "_current", "_start_ns")

    def __init__(self) -> None:
        self._stages: list[StageRecord] = []
        self._current: StageRecord | None = None
        self._start_ns: int = time.monotonic_ns()

    def stage(self, name: str) -> None:
        """End previous stage + start new stage."""
        now = time.monotonic_ns()
        if self._current is not None:
            self._current.end_ns = now
            self._stages.append(self._current)
        self._current = StageRecord(name=name, start_ns=now)

    def finalize(self) -> None:
        if self._current is not None:
            self._current.end_ns = time.monotonic_ns()
            self._stages.append(self._current)
            self._current = None

    @property
    def current_stage(self) -> str | None:
        return self._current.name if self._current else None

    def elapsed_per_stage(self) -> dict[str, float]:
        """{stage_name: elapsed_ms}, including a still-running stage."""
        now = time.monotonic_ns()
        result = {s.name: s.elapsed_ms for s in self._stages}
        if self._current is not None:
            result[self._current.name] = round((now - self._current.start_ns) / 1e6, 1)
        return result

    def total_ms(self) -> float:
        return round((time.monotonic_ns() - self._start_ns) / 1e6, 1)

    def failure_report(self) -> dict:
        """Where a failed attempt stopped, with a hint for the user."""
        current = self.current_stage or (self._stages[-1].name if self._stages else "unknown")
        return {
            "failed_at": current,
            "completed_stages": [{"stage": s.name, "ms": s.elapsed_ms} for s in self._stages if s.name != current],
            "total_ms": self.total_ms(),
            "hint": _STAGE_HINTS.get(current, f"Failed during '{current}' stage."),
        }
