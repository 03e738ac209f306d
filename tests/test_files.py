import os
import stat

import pytest

from dqcluster.files import (
    INFO_FILE,
    JOIN_FILE,
    STORE_FILE,
    FileError,
    file_exists,
    file_marshal,
    file_remove,
    file_unmarshal,
    file_write,
)


def test_file_names(tmp_path):
    file_marshal(tmp_path, INFO_FILE, {"ID": 1})
    file_marshal(tmp_path, STORE_FILE, [])
    file_write(tmp_path, JOIN_FILE, b"")
    assert sorted(os.listdir(tmp_path)) == ["cluster.yaml", "info.yaml", "join"]


def test_exists_false_then_true(tmp_path):
    assert file_exists(tmp_path, JOIN_FILE) is False
    file_write(tmp_path, JOIN_FILE, b"")
    assert file_exists(tmp_path, JOIN_FILE) is True


def test_exists_error_when_parent_is_file(tmp_path):
    blocker = tmp_path / "plain"
    blocker.write_bytes(b"x")
    with pytest.raises(FileError):
        file_exists(blocker, "child")


def test_write_content_and_mode(tmp_path):
    file_write(tmp_path, "data", b"hello")
    path = tmp_path / "data"
    assert path.read_bytes() == b"hello"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_write_replaces_existing(tmp_path):
    file_write(tmp_path, "data", b"first")
    file_write(tmp_path, "data", b"second")
    assert (tmp_path / "data").read_bytes() == b"second"
    assert sorted(os.listdir(tmp_path)) == ["data"]


def test_write_missing_directory(tmp_path):
    with pytest.raises(FileError, match="write data"):
        file_write(tmp_path / "missing", "data", b"x")


def test_marshal_round_trip(tmp_path):
    info = {"ID": 1, "Address": "127.0.0.1:9001", "Role": 0}
    file_marshal(tmp_path, INFO_FILE, info)
    assert file_unmarshal(tmp_path, INFO_FILE) == info


def test_marshal_list_round_trip(tmp_path):
    nodes = [{"Address": "127.0.0.1:9001"}, {"Address": "127.0.0.1:9002"}]
    file_marshal(tmp_path, STORE_FILE, nodes)
    assert file_unmarshal(tmp_path, STORE_FILE) == nodes


def test_marshal_unrepresentable(tmp_path):
    with pytest.raises(FileError, match="marshall"):
        file_marshal(tmp_path, INFO_FILE, object())
    assert file_exists(tmp_path, INFO_FILE) is False


def test_unmarshal_missing(tmp_path):
    with pytest.raises(FileError, match="read info.yaml"):
        file_unmarshal(tmp_path, INFO_FILE)


def test_unmarshal_invalid_yaml(tmp_path):
    file_write(tmp_path, INFO_FILE, b"key: [unclosed")
    with pytest.raises(FileError, match="unmarshall info.yaml"):
        file_unmarshal(tmp_path, INFO_FILE)


def test_remove(tmp_path):
    file_write(tmp_path, JOIN_FILE, b"")
    file_remove(tmp_path, JOIN_FILE)
    assert file_exists(tmp_path, JOIN_FILE) is False


def test_remove_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        file_remove(tmp_path, JOIN_FILE)