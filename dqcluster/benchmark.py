"""Run a key/value workload against a cluster database and report timings."""

from __future__ import annotations

import os
import socket
import threading
import time
from typing import Any

from dqcluster.bench_options import BenchmarkOptions, Workload
from dqcluster.tracker import Work
from dqcluster.worker import Worker, WorkerType

KV_SCHEMA = "CREATE TABLE IF NOT EXISTS model (key TEXT, value TEXT, UNIQUE(key))"
RESULTS_DIR = "results"
NODE_PROBE_TIMEOUT = 2.0
_RETRY_INTERVAL = 0.1

_WORKER_TYPES = {
    Workload.KV_WRITE: WorkerType.KV_WRITER,
    Workload.KV_READ_WRITE: WorkerType.KV_READER_WRITER,
}


def create_workers(options: BenchmarkOptions) -> list[Worker]:
    """Create the workers the options ask for."""
    worker_type = _WORKER_TYPES[options.workload]
    return [
        Worker(worker_type, options.kv_key_size, options.kv_value_size)
        for _ in range(options.workers)
    ]


def report_name(index: int, work: Work) -> str:
    """Name of the report file of a worker for one kind of work."""
    return f"{index}-{work}-{int(time.time())}"


def _host_port(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def _node_online(address: str) -> bool:
    try:
        conn = socket.create_connection(_host_port(address), timeout=NODE_PROBE_TIMEOUT)
    except (OSError, ValueError):
        return False
    conn.close()
    return True


class Benchmark:
    """A benchmark over the DB-API connection ``db``.

    ``app`` must provide a ``cluster()`` method returning the current cluster
    members, each with an ``address`` attribute. Results are written under
    ``directory``.
    """

    def __init__(
        self,
        app: Any,
        db: Any,
        directory: str | os.PathLike[str],
        options: BenchmarkOptions | None = None,
    ) -> None:
        self.app = app
        self.db = db
        self.directory = os.fspath(directory)
        self.options = options if options is not None else BenchmarkOptions()
        self.workers = create_workers(self.options)

    @property
    def results_dir(self) -> str:
        """Directory the report files are written to."""
        return os.path.join(self.directory, RESULTS_DIR)

    def setup(self) -> None:
        """Create the schema the workload needs."""
        cursor = self.db.cursor()
        try:
            cursor.execute(KV_SCHEMA)
        finally:
            cursor.close()
        self.db.commit()

    def report_files(self) -> dict[str, str]:
        """Return a mapping of report file name to file content."""
        files = {}
        for index, worker in enumerate(self.workers):
            for work, report in worker.report().items():
                files[report_name(index, work)] = str(report)
        return files

    def report_results(self) -> None:
        """Write every report file into the results directory."""
        directory = self.results_dir
        try:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise OSError(f"failed to create {directory}: {exc}") from exc
        for name, content in self.report_files().items():
            try:
                with open(os.path.join(directory, name), "w", encoding="utf-8") as handle:
                    handle.write(content)
                    handle.flush()
                    os.fsync(handle.fileno())
            except OSError as exc:
                raise OSError(f"failed to write {name} in {directory}: {exc}") from exc

    def _all_nodes_online(self) -> bool:
        try:
            nodes = list(self.app.cluster())
        except Exception:  # the cluster may not answer yet; retry later
            return False
        online = sum(
            1
            for needed in self.options.cluster
            for present in nodes
            if needed == present.address and _node_online(present.address)
        )
        return online == len(self.options.cluster)

    def _wait_for_cluster(self, stop: threading.Event) -> None:
        deadline = time.monotonic() + self.options.cluster_timeout
        while True:
            if stop.is_set():
                raise InterruptedError(
                    "benchmark stopped, signal received while waiting for cluster"
                )
            if time.monotonic() >= deadline:
                raise TimeoutError("timed out waiting for cluster: context deadline exceeded")
            if self._all_nodes_online():
                return
            stop.wait(_RETRY_INTERVAL)

    def run(self, stop: threading.Event | None = None) -> None:
        """Run the workload for the configured duration, or until ``stop`` is set."""
        if stop is None:
            stop = threading.Event()
        self.setup()
        self._wait_for_cluster(stop)

        done = threading.Event()
        threads = [
            threading.Thread(target=worker.run, args=(self.db, done), daemon=True)
            for worker in self.workers
        ]
        for thread in threads:
            thread.start()
        stop.wait(self.options.duration)
        done.set()
        for thread in threads:
            thread.join()

        self.report_results()
        print(f"Benchmark done. Results available here:\n{self.results_dir}")