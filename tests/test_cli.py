"""CLI smoke tests; the command runner is replaced so nothing is downloaded."""

import json

import pytest

from conftest import FakeRunner
from rootforge import cli


@pytest.fixture
def fake_runner(monkeypatch):
    runner = FakeRunner()
    monkeypatch.setattr(cli, "SubprocessRunner", lambda **kw: runner)
    monkeypatch.delenv("ROOTFORGE_CONFIG", raising=False)
    return runner


@pytest.fixture
def pkg_list(tree, tmp_path):
    path = tmp_path / "pkgs.list"
    path.write_text("hello\n", encoding="utf-8")
    return path


def args(tree, pkg_list, *extra):
    return ["-i", str(pkg_list), "-o", str(tree.out), "-p", str(tree.packages), "--no-color", *extra]


def test_build_writes_rootfs_and_report(tree, pkg_list, fake_runner, tmp_path, capsys):
    tree.add("hello")
    report = tmp_path / "report.json"
    rc = cli.main(args(tree, pkg_list, "--report", str(report)))
    assert rc == 0
    assert (tree.rootfs / "hello").exists()
    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["ok"] is True
    assert data["packages"][0]["name"] == "hello"
    assert "hello" in capsys.readouterr().out


def test_failed_package_gives_exit_status_1(tree, pkg_list, fake_runner):
    tree.add("hello", text="garbage\n")
    assert cli.main(args(tree, pkg_list)) == 1


def test_fail_fast_gives_exit_status_1(tree, pkg_list, fake_runner):
    tree.add("hello", text="garbage\n")
    assert cli.main(args(tree, pkg_list, "--fail-fast")) == 1


def test_missing_output_dir_is_fatal(tree, pkg_list, fake_runner, tmp_path):
    tree.add("hello")
    argv = ["-i", str(pkg_list), "-o", str(tmp_path / "nope"), "-p", str(tree.packages)]
    assert cli.main(argv) == 2
    assert fake_runner.calls == []


def test_dry_run_flag(tree, pkg_list, fake_runner):
    tree.add("hello")
    assert cli.main(args(tree, pkg_list, "--dry-run")) == 0
    assert fake_runner.calls == []
    assert not tree.pkgs.exists()


def test_config_file_supplies_tool_templates(tree, pkg_list, fake_runner, tmp_path):
    tree.add("hello")
    conf = tmp_path / "conf.yaml"
    conf.write_text("tools:\n  shell: [sh, -c, 'exec {command}']\n", encoding="utf-8")
    assert cli.main(args(tree, pkg_list, "--config", str(conf))) == 0
    assert ["sh", "-c", "exec make"] in [argv for argv, _ in fake_runner.calls]


def test_bad_explicit_config_is_fatal(tree, pkg_list, fake_runner, tmp_path):
    assert cli.main(args(tree, pkg_list, "--config", str(tmp_path / "absent.yaml"))) == 2


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--version"])
    assert exc.value.code == 0
    assert "rootforge" in capsys.readouterr().out


def test_missing_package_with_fail_fast_gives_exit_status_1(tree, pkg_list, fake_runner):
    # pkg_list names "hello", which was never added
    assert cli.main(args(tree, pkg_list, "--fail-fast")) == 1
    assert cli.main(args(tree, pkg_list)) == 1
