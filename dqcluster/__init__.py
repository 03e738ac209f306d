"""Role decisions, node state files, options, TLS contexts, socket proxying and a key/value benchmark for replicated SQLite clusters."""

__version__ = "0.1.0"
__all__ = [
    "bench_options",
    "benchmark",
    "files",
    "options",
    "proxy",
    "roles",
    "tls",
    "tracker",
    "worker",
]