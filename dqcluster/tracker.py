"""Thread-safe collection of benchmark timings and failures."""

from __future__ import annotations

import enum
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

_NS_PER_MS = 1_000_000
MAX_DURATION = 2**63 - 1
"""Largest representable duration, used as the initial minimum."""


class Work(enum.IntEnum):
    """Kind of statement a worker executed."""

    NONE = 0
    EXEC = 1
    QUERY = 2

    def __str__(self) -> str:
        return self.name.lower()


def dur_to_ms(duration_ns: int) -> str:
    """Format a nanosecond duration as milliseconds with six decimals."""
    ms, rest = divmod(abs(duration_ns), _NS_PER_MS)
    if duration_ns < 0:
        ms, rest = -ms, -rest
    return f"{ms}.{rest:06d}"


@dataclass(frozen=True)
class Measurement:
    """A successful operation: start timestamp and duration, in nanoseconds."""

    start: int
    duration: int

    def __str__(self) -> str:
        return f"{self.start} {dur_to_ms(self.duration)}"


@dataclass(frozen=True)
class MeasurementError:
    """A failed operation: start timestamp in nanoseconds and the failure."""

    start: int
    error: object

    def __str__(self) -> str:
        return f"{self.start} {self.error}"


@dataclass
class Report:
    """Summary of the measurements recorded for one kind of work."""

    n: int = 0
    n_err: int = 0
    total_duration: int = 0
    avg_duration: int = 0
    max_duration: int = 0
    min_duration: int = MAX_DURATION
    measurements: list[Measurement] = field(default_factory=list)
    errors: list[MeasurementError] = field(default_factory=list)

    def __str__(self) -> str:
        measurements = "".join(f"{m}\n" for m in self.measurements)
        errors = "".join(f"{e}\n" for e in self.errors)
        return (
            f"n {self.n}\n"
            f"n_err {self.n_err}\n"
            f"avg [ms] {dur_to_ms(self.avg_duration)}\n"
            f"max [ms] {dur_to_ms(self.max_duration)}\n"
            f"min [ms] {dur_to_ms(self.min_duration)}\n"
            f"measurements [timestamp in ns] [ms]\n{measurements}\n"
            f"errors\n{errors}\n"
        )


class Tracker:
    """Record how long each operation took, grouped by kind of work."""

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self.clock = clock
        self.measurements: dict[Work, list[Measurement]] = {}
        self.errors: dict[Work, list[MeasurementError]] = {}
        self._lock = threading.Lock()

    def measure(self, start: int, work: Work, error: object = None) -> None:
        """Record an operation that started at ``start`` and ends now."""
        with self._lock:
            duration = self.clock() - start
            if error is None:
                self.measurements.setdefault(work, []).append(Measurement(start, duration))
            else:
                self.errors.setdefault(work, []).append(MeasurementError(start, error))

    def report(self) -> dict[Work, Report]:
        """Summarize every kind of work that has successful measurements."""
        with self._lock:
            reports = {}
            for work, measurements in self.measurements.items():
                errors = list(self.errors.get(work, []))
                report = Report(
                    n=len(measurements),
                    n_err=len(errors),
                    measurements=list(measurements),
                    errors=errors,
                )
                for m in measurements:
                    report.total_duration += m.duration
                    report.min_duration = min(report.min_duration, m.duration)
                    report.max_duration = max(report.max_duration, m.duration)
                if report.n > 0:
                    report.avg_duration = report.total_duration // report.n
                reports[work] = report
            return reports