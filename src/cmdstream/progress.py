from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    elapsed_ms: int
    line_number: int
    bytes_sent: int
    total_bytes: int
    percent: int
    elapsed_min: int
    total_min: int | None = None
    remaining_min: int | None = None

    @property
    def available(self) -> bool:
        """False until at least 1% has been sent; no estimate exists before that."""
        return self.total_min is not None

    def format(self) -> str:
        if not self.available:
            tail = "Remaining=?, Total=?"
        else:
            tail = f"Remaining={self.remaining_min}min, Total={self.total_min}min"
        return f"{self.elapsed_min}min: Line {self.line_number} ({self.percent}%) {tail}"


def estimate(elapsed_ms: int, bytes_sent: int, total_bytes: int, line_number: int = 0) -> ProgressSnapshot:
    """Linear completion estimate from elapsed time and bytes sent.

    Minutes are whole numbers, rounded half to even. Below 1% the total and
    remaining times are left as None.
    """
    if total_bytes <= 0:
        raise ValueError(f"total_bytes must be positive, got {total_bytes}")
    percent = 100 * bytes_sent // total_bytes
    elapsed_min = round(elapsed_ms / 60000)
    total_min = remaining_min = None
    if percent > 0:
        total_min = round(elapsed_min * 100 / percent)
        remaining_min = total_min - elapsed_min
    return ProgressSnapshot(
        elapsed_ms=elapsed_ms,
        line_number=line_number,
        bytes_sent=bytes_sent,
        total_bytes=total_bytes,
        percent=percent,
        elapsed_min=elapsed_min,
        total_min=total_min,
        remaining_min=remaining_min,
    )
