"""Benchmark workers issuing key/value statements against a database."""

from __future__ import annotations

import enum
import random
import string
import threading
from dataclasses import dataclass, field
from typing import Any

from dqcluster.tracker import Report, Tracker, Work

KV_READ_SQL = "SELECT value FROM model WHERE key = ?"
KV_WRITE_SQL = "INSERT OR REPLACE INTO model(key, value) VALUES(?, ?)"

LETTERS = string.ascii_lowercase + string.ascii_uppercase


class WorkerType(enum.IntEnum):
    """Kind of statements a worker issues."""

    KV_WRITER = 0
    KV_READER = 1
    KV_READER_WRITER = 2


def _rand_seq(n: int, rng: random.Random | Any) -> str:
    return "".join(rng.choices(LETTERS, k=n))


def rand_seq(n: int) -> str:
    """Return a random string of ``n`` ASCII letters."""
    return _rand_seq(n, random)


class _NoRowsError(LookupError):
    """A query returned no row."""


@dataclass
class Worker:
    """Issue statements against a database and track their timings.

    ``kv_keys`` holds the keys this worker has inserted; ``last_work`` and
    ``last_args`` describe the most recent operation.
    """

    worker_type: WorkerType
    kv_key_size: int = 32
    kv_value_size: int = 1024
    tracker: Tracker = field(default_factory=Tracker)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    kv_keys: list[str] = field(default_factory=list)
    last_work: Work = Work.NONE
    last_args: tuple = ()

    def _new_key(self) -> str:
        return _rand_seq(self.kv_key_size, self.rng)

    def _existing_key(self) -> str:
        if not self.kv_keys:
            raise LookupError("no keys")
        return self.rng.choice(self.kv_keys)

    def _value(self) -> str:
        # Half easily compressible, half random.
        half = self.kv_value_size // 2
        return _rand_seq(1, self.rng) * half + _rand_seq(half, self.rng)

    def get_work(self) -> tuple[Work, str, tuple]:
        """Return the kind of work, the SQL statement and its arguments."""
        if self.worker_type == WorkerType.KV_WRITER:
            return Work.EXEC, KV_WRITE_SQL, (self._new_key(), self._value())
        if self.worker_type == WorkerType.KV_READER_WRITER:
            read = self.rng.randrange(2) == 0
            if read and self.kv_keys:
                return Work.QUERY, KV_READ_SQL, (self._existing_key(),)
            return Work.EXEC, KV_WRITE_SQL, (self._new_key(), self._value())
        return Work.NONE, "", ()

    def do_work(self, db: Any) -> None:
        """Run one statement on the DB-API connection ``db`` and record it."""
        work, sql, args = self.get_work()
        self.last_work = work
        self.last_args = args

        if work == Work.EXEC:
            self.kv_keys.append(str(args[0]))
            start = self.tracker.clock()
            error = None
            try:
                cursor = db.cursor()
                try:
                    cursor.execute(sql, args)
                finally:
                    cursor.close()
                db.commit()
            except Exception as exc:  # any database failure is a measured error
                error = exc
                self.kv_keys.pop()
            self.tracker.measure(start, work, error)
        elif work == Work.QUERY:
            start = self.tracker.clock()
            error = None
            try:
                cursor = db.cursor()
                try:
                    cursor.execute(sql, args)
                    row = cursor.fetchone()
                finally:
                    cursor.close()
                if row is None:
                    raise _NoRowsError("sql: no rows in result set")
            except Exception as exc:  # any database failure is a measured error
                error = exc
            self.tracker.measure(start, work, error)

    def run(self, db: Any, stop: threading.Event) -> None:
        """Keep doing work until ``stop`` is set."""
        while not stop.is_set():
            self.do_work(db)

    def report(self) -> dict[Work, Report]:
        """Summaries of the work done so far."""
        return self.tracker.report()