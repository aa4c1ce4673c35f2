"""Shared fixtures: a fake command runner and on-disk package trees."""

from pathlib import Path

import pytest

from rootforge.executor import CommandResult


HELLO = {
    "PACKAGE_NAME": "hello",
    "PACKAGE_SRC": "http://example/hello.tar.gz",
    "PACKAGE_DL_FILENAME": "hello.tar.gz",
    "PACKAGE_BUILD_ROOT": "hello-1.0",
    "PACKAGE_BUILD_CMD": "make",
    "TARGET_PROG": "hello",
}


class FakeRunner:
    """Records every call and mimics what wget/tar/unzip/sh would leave on disk.

    fail maps a program name to the return code it should report; side effects
    still happen first so a failing download can leave a partial file behind.
    """

    def __init__(self, build_root="hello-1.0", prog="hello", fail=None, produce=True):
        self.build_root = build_root
        self.prog = prog
        self.fail = fail or {}
        self.produce = produce
        self.calls = []

    @property
    def programs(self):
        return [argv[0] for argv, _ in self.calls]

    def run(self, argv, cwd=None):
        argv = [str(a) for a in argv]
        self.calls.append((argv, str(cwd) if cwd is not None else None))
        prog = argv[0]
        if prog == "wget" and self.produce:
            dest, url = Path(argv[2]), argv[3]
            (dest / url.rsplit("/", 1)[-1]).write_bytes(b"archive")
        elif prog in ("tar", "unzip") and self.produce:
            dest = Path(argv[-1])
            (dest / self.build_root).mkdir(parents=True, exist_ok=True)
        elif prog == "sh" and self.produce:
            target = Path(cwd) / self.prog
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text("#!/bin/sh\necho hello\n")
        return CommandResult(argv, str(cwd) if cwd is not None else None, self.fail.get(prog, 0))


def descriptor_text(entries):
    return "\n".join(f"{k} ::= {v}" for k, v in entries.items()) + "\n"


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def tree(tmp_path):
    """packages/ and out/ under tmp_path plus a helper to add packages."""
    packages = tmp_path / "packages"
    out = tmp_path / "out"
    packages.mkdir()
    out.mkdir()

    def add(name, entries=None, text=None):
        pkg_dir = packages / name
        pkg_dir.mkdir(parents=True, exist_ok=True)
        if text is None:
            text = descriptor_text(entries if entries is not None else HELLO)
        (pkg_dir / "pkginfo").write_text(text, encoding="utf-8")
        return pkg_dir

    class Tree:
        pass

    t = Tree()
    t.packages = packages
    t.out = out
    t.rootfs = out / "rootfs"
    t.pkgs = out / "pkgs"
    t.add = add
    return t
