"""Small helpers to persist node state files in a data directory."""

from __future__ import annotations

import os
import tempfile
from typing import Any

import yaml

INFO_FILE = "info.yaml"
"""Stores the node ID and address."""

STORE_FILE = "cluster.yaml"
"""The node store file."""

JOIN_FILE = "join"
"""Flag file present while a brand new node still has to join the cluster."""


class FileError(Exception):
    """A node state file could not be checked, read or written."""


def _path(directory: str | os.PathLike[str], name: str) -> str:
    return os.path.join(os.fspath(directory), name)


def file_exists(directory: str | os.PathLike[str], name: str) -> bool:
    """Return True if the given file exists in the given directory."""
    try:
        os.stat(_path(directory, name))
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FileError(f"check if {name} exists: {exc}") from exc
    return True


def file_write(directory: str | os.PathLike[str], name: str, data: bytes) -> None:
    """Atomically write a file with owner-only permissions."""
    path = _path(directory, name)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path) or ".", prefix=f".{name}.")
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as exc:
        raise FileError(f"write {name}: {exc}") from exc
    finally:
        if tmp_path is not None:
            try:
                os.remove(tmp_path)
            except OSError:
                pass


def file_marshal(directory: str | os.PathLike[str], name: str, obj: Any) -> None:
    """Serialize the given object as YAML into the given file."""
    try:
        data = yaml.safe_dump(obj, default_flow_style=False).encode("utf-8")
    except yaml.YAMLError as exc:
        raise FileError(f"marshall {name}: {exc}") from exc
    file_write(directory, name, data)


def file_unmarshal(directory: str | os.PathLike[str], name: str) -> Any:
    """Load and return the YAML content of the given file."""
    try:
        with open(_path(directory, name), "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise FileError(f"read {name}: {exc}") from exc
    try:
        return yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise FileError(f"unmarshall {name}: {exc}") from exc


def file_remove(directory: str | os.PathLike[str], name: str) -> None:
    """Remove a file in the given directory."""
    os.remove(_path(directory, name))