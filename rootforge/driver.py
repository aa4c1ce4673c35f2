# rootforge/driver.py
# -*- coding: utf-8 -*-
"""
driver.py - runs the stage pipeline over an ordered package list

API:
  driver = BuildDriver(BuildSettings(packages_root, output_root), runner)
  report = driver.run(["hello", "busybox"])
  sys.exit(report.exit_code)

Packages are built one after the other, in input order. On-disk layout:
  <packages_root>/<name>/pkginfo         descriptor
  <output_root>/pkgs/<PACKAGE_NAME>/     per-package workspace
  <output_root>/rootfs/<artifact>        shared artifact directory

With isolate_failures (the default) a failing package is recorded and the run
moves on; the report's exit code is non-zero if any package failed. Without
it the first error aborts the run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from rootforge import descriptor as descriptor_store
from rootforge.config import LOOKUP_MODES
from rootforge.errors import MissingRequiredKey, PathResolutionError, RootforgeError
from rootforge.fsops import LocalFilesystem
from rootforge.logging import get_logger
from rootforge.pipeline import StagePipeline, StageRecord
from rootforge.resolver import resolve

logger = get_logger("driver")


@dataclass
class BuildSettings:
    packages_root: Path
    output_root: Path
    descriptor_name: str = "pkginfo"
    isolate_failures: bool = True
    dry_run: bool = False
    lookup: str = "resolved"
    skip_installed: bool = False

    @classmethod
    def from_config(cls, cfg, packages_root: Union[str, Path], output_root: Union[str, Path], **overrides) -> "BuildSettings":
        values = dict(
            descriptor_name=cfg.get("build.descriptor_name", "pkginfo"),
            isolate_failures=cfg.get("build.isolate_failures", True),
            lookup=cfg.get("resolver.lookup", "resolved"),
            skip_installed=cfg.get("install.skip_existing", False),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        if values["lookup"] not in LOOKUP_MODES:
            # already reported by config validation
            values["lookup"] = "resolved"
        return cls(Path(packages_root), Path(output_root), **values)


@dataclass
class PackageOutcome:
    name: str
    ok: bool
    stage: Optional[str] = None
    error: Optional[str] = None
    stages: List[StageRecord] = field(default_factory=list)
    elapsed: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "stage": self.stage,
            "error": self.error,
            "elapsed": round(self.elapsed, 3),
            "stages": [s.as_dict() for s in self.stages],
        }


@dataclass
class RunReport:
    outcomes: List[PackageOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def failed(self) -> List[PackageOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def as_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "packages": [o.as_dict() for o in self.outcomes]}


def read_package_list(path: Union[str, Path]) -> List[str]:
    """One package name per line; surrounding whitespace and blank lines are dropped."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PathResolutionError(f"cannot read package list: {e}", path=str(path)) from e
    return [line.strip() for line in text.splitlines() if line.strip()]


class BuildDriver:
    def __init__(self, settings: BuildSettings, runner, fs: Optional[LocalFilesystem] = None,
                 tools: Optional[Dict[str, Sequence[str]]] = None):
        self.settings = settings
        self.fs = fs or LocalFilesystem()
        self.pipeline = StagePipeline(runner, self.fs, tools, dry_run=settings.dry_run,
                                      skip_installed=settings.skip_installed)

    def _prepare_roots(self):
        packages_root = self.fs.canonicalize(self.settings.packages_root)
        output_root = self.fs.canonicalize(self.settings.output_root)
        pkgs_dir = output_root / "pkgs"
        rootfs = output_root / "rootfs"
        if not self.settings.dry_run:
            self.fs.ensure_dir(pkgs_dir)
            self.fs.ensure_dir(rootfs)
        logger.info("packages_root: %s", packages_root)
        logger.info("output_root: %s", output_root)
        return packages_root, pkgs_dir, rootfs

    def build_one(self, name: str, packages_root: Path, pkgs_dir: Path, rootfs: Path) -> PackageOutcome:
        started = time.monotonic()
        outcome = PackageOutcome(name=name, ok=False, stage="load")
        try:
            pkg_path = self.fs.canonicalize(packages_root / name / self.settings.descriptor_name)
            logger.info("[%s] descriptor: %s", name, pkg_path)
            desc = descriptor_store.load(pkg_path)

            outcome.stage = "resolve"
            resolved = resolve(desc, lookup=self.settings.lookup)
            missing = resolved.missing_keys()
            if missing:
                raise MissingRequiredKey(missing[0], path=str(pkg_path))

            outcome.stage = "pipeline"
            workspace = pkgs_dir / resolved["PACKAGE_NAME"]
            outcome.stages = self.pipeline.run(resolved, workspace, rootfs)
            outcome.ok = True
            outcome.stage = "complete"
            logger.info("[%s] build finished", name)
        except RootforgeError as e:
            e.with_context(package=name, stage=outcome.stage)
            outcome.stage = e.stage
            outcome.error = str(e)
            logger.error("[%s] failed at %s: %s", name, e.stage, e)
            if not self.settings.isolate_failures:
                raise
        finally:
            outcome.elapsed = time.monotonic() - started
        return outcome

    def run(self, package_names: Iterable[str]) -> RunReport:
        names = list(package_names)
        logger.info("pkgs: %s", names)
        packages_root, pkgs_dir, rootfs = self._prepare_roots()
        report = RunReport()
        for name in names:
            report.outcomes.append(self.build_one(name, packages_root, pkgs_dir, rootfs))
        if report.failed:
            logger.error("%d of %d packages failed: %s", len(report.failed), len(names),
                         ", ".join(o.name for o in report.failed))
        else:
            logger.info("done")
        return report
