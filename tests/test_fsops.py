"""Tests for the local filesystem backend."""

import pytest

from rootforge.errors import PathResolutionError
from rootforge.fsops import LocalFilesystem


def test_ensure_dir_is_idempotent(tmp_path):
    fs = LocalFilesystem()
    target = tmp_path / "a" / "b"
    assert fs.ensure_dir(target) == target
    fs.ensure_dir(target)
    assert target.is_dir()


def test_ensure_dir_over_a_plain_file(tmp_path):
    blocker = tmp_path / "pkgs"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(PathResolutionError) as exc:
        LocalFilesystem().ensure_dir(blocker / "hello")
    assert exc.value.path == str(blocker / "hello")


def test_remove_file(tmp_path):
    fs = LocalFilesystem()
    f = tmp_path / "x.tar.gz"
    f.write_bytes(b"x")
    assert fs.remove_file(f) is True
    assert fs.remove_file(f) is False


def test_remove_file_that_cannot_be_unlinked(tmp_path):
    d = tmp_path / "dir"
    d.mkdir()
    with pytest.raises(PathResolutionError) as exc:
        LocalFilesystem().remove_file(d)
    assert exc.value.path == str(d)
    assert d.is_dir()


def test_canonicalize_missing_path(tmp_path):
    with pytest.raises(PathResolutionError):
        LocalFilesystem().canonicalize(tmp_path / "nope")
