"""Tests for the subprocess-backed command runner."""

import shutil

import pytest

from rootforge.executor import RC_NOT_FOUND, RC_TIMEOUT, SubprocessRunner, render_template

needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="no /bin/sh")


def test_render_template():
    argv = render_template(["tar", "-xzf", "{archive}", "-C", "{dest}"], archive="/w/a.tar.gz", dest="/w")
    assert argv == ["tar", "-xzf", "/w/a.tar.gz", "-C", "/w"]


def test_render_template_keeps_spaces_inside_one_argument():
    assert render_template(["sh", "-c", "{command}"], command="make && make check") == ["sh", "-c", "make && make check"]


def test_render_template_unknown_field():
    with pytest.raises(ValueError):
        render_template(["wget", "{mirror}"], url="http://x")
    with pytest.raises(ValueError):
        render_template(["wget", "{}"], url="http://x")


@needs_sh
def test_runs_in_cwd_and_captures_output(tmp_path):
    runner = SubprocessRunner(stream=False)
    result = runner.run(["sh", "-c", "pwd; echo oops >&2"], cwd=tmp_path)
    assert result.ok
    assert str(tmp_path.resolve()) in result.output
    assert "oops" in result.output
    assert runner.history == [result]


@needs_sh
def test_nonzero_exit():
    result = SubprocessRunner(stream=False).run(["sh", "-c", "exit 3"])
    assert not result.ok
    assert result.returncode == 3


def test_program_not_found():
    result = SubprocessRunner().run(["rootforge-no-such-program-xyz"])
    assert result.returncode == RC_NOT_FOUND
    assert result.error


@needs_sh
def test_timeout_kills_the_process():
    result = SubprocessRunner(timeout=1, stream=False).run(["sleep", "30"])
    assert result.returncode == RC_TIMEOUT
    assert "timed out" in result.error


@needs_sh
def test_streams_lines_to_the_log(caplog):
    caplog.set_level("INFO", logger="rootforge")
    SubprocessRunner(stream=True).run(["sh", "-c", "echo first; echo second"])
    messages = [r.getMessage() for r in caplog.records]
    assert "first" in messages
    assert "second" in messages
