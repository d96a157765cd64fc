import os
import stat
import tempfile

import pytest

from solvejudge.utils import copy_file, copy_file_rec, make_temp_dir, read_file


def test_make_temp_dir_creates_empty_directory():
    path = make_temp_dir()
    try:
        assert os.path.isdir(path)
        assert os.listdir(path) == []
        assert os.path.dirname(path) == tempfile.gettempdir()
        name = os.path.basename(path)
        assert len(name) == 32
        assert all(ch in "0123456789abcdef" for ch in name)
    finally:
        os.rmdir(path)


def test_make_temp_dir_returns_distinct_paths():
    first = make_temp_dir()
    second = make_temp_dir()
    try:
        assert first != second
        assert os.path.isdir(first) and os.path.isdir(second)
    finally:
        os.rmdir(first)
        os.rmdir(second)


def test_copy_file_copies_content_and_mode(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(b"\x00\x01binary data")
    os.chmod(source, 0o640)
    target = tmp_path / "target.bin"
    copy_file(str(source), str(target))
    assert target.read_bytes() == b"\x00\x01binary data"
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o640


def test_copy_file_overwrites_existing_target(tmp_path):
    source = tmp_path / "source.txt"
    source.write_text("new")
    target = tmp_path / "target.txt"
    target.write_text("old content that is longer")
    copy_file(str(source), str(target))
    assert target.read_text() == "new"


def test_copy_file_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        copy_file(str(tmp_path / "missing"), str(tmp_path / "target"))


def test_copy_file_rec_creates_parents(tmp_path):
    source = tmp_path / "source.txt"
    source.write_text("payload")
    target = tmp_path / "a" / "b" / "c" / "target.txt"
    copy_file_rec(str(source), str(target))
    assert target.read_text() == "payload"


def test_copy_file_rec_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        copy_file_rec(str(tmp_path / "missing"), str(tmp_path / "x" / "y"))


def test_read_file_short_content(tmp_path):
    path = tmp_path / "short.txt"
    path.write_text("hello world")
    assert read_file(str(path), 128) == "hello world"


def test_read_file_exactly_limit_has_no_ellipsis(tmp_path):
    path = tmp_path / "exact.txt"
    path.write_text("x" * 128)
    assert read_file(str(path), 128) == "x" * 128


def test_read_file_truncates_long_content(tmp_path):
    path = tmp_path / "long.txt"
    path.write_text("a" * 200)
    result = read_file(str(path), 128)
    assert result == "a" * 128 + "..."


def test_read_file_drops_invalid_utf8(tmp_path):
    path = tmp_path / "bad.txt"
    path.write_bytes(b"ab\xffcd")
    assert read_file(str(path), 128) == "abcd"


def test_read_file_drops_split_multibyte_character(tmp_path):
    path = tmp_path / "split.txt"
    path.write_bytes("aé".encode("utf-8"))
    assert read_file(str(path), 2) == "a..."


def test_read_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_file(str(tmp_path / "missing.txt"), 10)