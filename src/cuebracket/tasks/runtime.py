"""Result type shared by the background sweeps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

SweepStatus = Literal["success", "partial", "failed", "skipped"]


@dataclass
class SweepResult:
    """Outcome of one sweep over a batch of matches."""

    sweep_name: str
    started_at: datetime
    ended_at: datetime | None = None
    candidates: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> SweepStatus:
        if self.failed == 0:
            return "success" if self.candidates else "skipped"
        return "partial" if self.processed else "failed"

    @property
    def duration_s(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    def record_error(self, match_id: int, exc: BaseException) -> None:
        self.failed += 1
        self.errors.append(f"match {match_id}: {type(exc).__name__}: {exc}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "sweep_name": self.sweep_name,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_s": self.duration_s,
            "metrics": {
                "candidates": self.candidates,
                "processed": self.processed,
                "skipped": self.skipped,
                "failed": self.failed,
            },
            "errors": self.errors,
        }

    def summary(self) -> str:
        return (
            f"{self.sweep_name}: {self.status} "
            f"(candidates={self.candidates}, processed={self.processed}, "
            f"skipped={self.skipped}, failed={self.failed}, {self.duration_s:.2f}s)"
        )
