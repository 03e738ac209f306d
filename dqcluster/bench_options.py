"""Settings of a benchmark run."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class Workload(enum.IntEnum):
    """Kind of load the benchmark workers generate."""

    KV_WRITE = 0
    KV_READ_WRITE = 1


_WORKLOADS = {
    "kvwrite": Workload.KV_WRITE,
    "kvreadwrite": Workload.KV_READ_WRITE,
}


def parse_workload(name: str) -> Workload:
    """Return the workload with the given case-insensitive name.

    Unknown names fall back to the write-only workload.
    """
    return _WORKLOADS.get(name.lower(), Workload.KV_WRITE)


@dataclass
class BenchmarkOptions:
    """Parameters of a benchmark. Durations are in seconds.

    ``workload`` may also be given by name, as accepted by :func:`parse_workload`.
    """

    cluster: list[str] = field(default_factory=list)
    cluster_timeout: float = 60.0
    workload: Workload = Workload.KV_WRITE
    duration: float = 60.0
    workers: int = 1
    kv_key_size: int = 32
    kv_value_size: int = 1024

    def __post_init__(self) -> None:
        if isinstance(self.workload, str):
            self.workload = parse_workload(self.workload)
        else:
            self.workload = Workload(self.workload)
        self.cluster = list(self.cluster or [])