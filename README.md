# dqcluster

Building blocks for running a cluster of replicated SQLite nodes.

- **Role management** (`dqcluster.roles`): `RolesChanges` decides which node
  should be a voter, a stand-by or a spare, taking failure domains and weights
  into account. Use `assume()` at node startup, `handover()` before a graceful
  shutdown and `adjust()` periodically on the leader.
- **Node files** (`dqcluster.files`): `file_exists`, `file_write` (atomic,
  owner-only permissions), `file_marshal` / `file_unmarshal` for YAML, and
  `file_remove`. The conventional names are `INFO_FILE` (`info.yaml`),
  `STORE_FILE` (`cluster.yaml`) and `JOIN_FILE` (`join`). Failures raise
  `FileError`.
- **Options** (`dqcluster.options`): `AppOptions` with the usual defaults
  (3 voters, 3 stand-bys, roles adjusted every 30 seconds, auto-recovery on,
  at most 10 concurrent leader connections). An even number of voters, or
  fewer than 3, raises `ValueError`. `default_address()` returns the first
  non-loopback interface address on port 9000 (IPv6 addresses in brackets)
  and raises `OSError` if there is none. `default_log_func` logs only
  `LogLevel.ERROR` messages.
- **TLS** (`dqcluster.tls`): `simple_tls_config(cert_file, key_file, ca_file)`
  returns a `(listen, dial)` pair of `ssl.SSLContext` objects with TLS 1.2 as
  the minimum and mutual authentication. The dial context carries the
  certificate's first DNS name as `server_name`; a certificate without a DNS
  name raises `ValueError`.
- **Proxying** (`dqcluster.proxy`): `proxy(remote, local, ssl_context, stop)`
  copies bytes between a remote connection (optionally wrapped in TLS) and a
  local socket until either side closes or `stop` is set; copy failures raise
  `ProxyError`. TCP connections get aggressive keepalive settings through
  `set_keepalive()`. `make_node_dial_func()` and `ext_dial_func_with_proxy()`
  return dial functions that hand back the local end of a `socketpair()` and
  forward traffic in the background.
- **Benchmark** (`dqcluster.benchmark`, `dqcluster.worker`,
  `dqcluster.tracker`, `dqcluster.bench_options`): a key/value write
  (`kvwrite`) or read/write (`kvreadwrite`) workload that records
  per-operation latencies with `Tracker` and writes one report file per
  worker and kind of work.

## Installing

    pip install .

## Deciding roles

```python
from dqcluster.roles import NodeInfo, NodeMetadata, NodeRole, RolesChanges, RolesConfig

nodes = {
    NodeInfo(1, "10.0.0.1:9000", NodeRole.VOTER): NodeMetadata(failure_domain=0, weight=0),
    NodeInfo(2, "10.0.0.2:9000", NodeRole.VOTER): NodeMetadata(failure_domain=1, weight=0),
    NodeInfo(3, "10.0.0.3:9000", NodeRole.SPARE): NodeMetadata(failure_domain=2, weight=0),
}
changes = RolesChanges(RolesConfig(voters=3, standbys=3), nodes)
print(changes.assume(3))  # "voter": the cluster is short of voters
```

A node mapped to `None` is considered offline. `assume()` returns `None` and
`handover()` / `adjust()` return `(None, [])` when no change is needed;
otherwise they return the role to assign and the candidates in order of
preference.

## Running a benchmark

`Benchmark(app, db, directory, options)` takes any DB-API connection as `db`
and an `app` object whose `cluster()` method returns the current members,
each with an `address` attribute:

```python
import threading
from dqcluster.bench_options import BenchmarkOptions
from dqcluster.benchmark import Benchmark

options = BenchmarkOptions(cluster=["127.0.0.1:9001"], duration=10, workload="kvreadwrite")
bench = Benchmark(app, db, "/tmp/bench", options)
bench.run(threading.Event())
```

`run()` creates the `model` table, waits until every address in
`options.cluster` is listed by `app.cluster()` and accepts TCP connections
(raising `TimeoutError` after `cluster_timeout` seconds, or
`InterruptedError` if the event is set first), runs the workers for
`duration` seconds or until the event is set, and writes the reports to
`<directory>/results`.

## What this package does not do

It does not contain the database node itself, a client or driver for talking
to a running cluster, or a high-level application object that starts a node,
joins a cluster and applies role changes. It provides the decisions, files,
settings, TLS contexts and socket forwarding such a program needs, and the
benchmark expects you to supply the database connection and cluster view.
There is no command-line tool.

## Running tests

    pip install .[test]
    pytest