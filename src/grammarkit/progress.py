"""Batch-wide progress counters shared by every running pipeline."""

from __future__ import annotations

from typing import List


class ProgressTracker:
    """
    started/finished/failed counters for the current batch.

    Invariant: 0 <= failed <= finished <= started.
    Only the orchestrator records transitions; reset() is a no-op while any
    pipeline is still in flight so a new batch cannot zero an active one.
    """

    def __init__(self, label: str = "grammarkit"):
        self.label = label
        self.started = 0
        self.finished = 0
        self.failed = 0
        self.reports: List[str] = []

    @property
    def is_idle(self) -> bool:
        return self.started == self.finished

    def record_start(self) -> None:
        self.started += 1

    def record_finish(self) -> None:
        if self.finished >= self.started:
            raise RuntimeError("finish recorded with no pipeline in flight")
        self.finished += 1

    def record_failure(self, report: str = "") -> None:
        self.record_finish()
        self.failed += 1
        if report:
            self.reports.append(report)

    def reset(self) -> bool:
        """Zero everything if idle. Returns whether anything was reset."""
        if not self.is_idle:
            return False
        self.started = 0
        self.finished = 0
        self.failed = 0
        self.reports = []
        return True

    def status(self) -> str:
        text = f"{self.finished}/{self.started}"
        if self.failed > 0:
            text += f", failed: {self.failed}"
        return text

    def banner(self) -> str:
        return f"[{self.label}] [{self.status()}]"
