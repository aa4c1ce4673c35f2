# rootforge/pipeline.py
# -*- coding: utf-8 -*-
"""
pipeline.py - per-package stage pipeline

API:
  pipe = StagePipeline(runner, fs, tools)
  records = pipe.run(resolved_descriptor, workspace, rootfs)

Stages (fixed order, a skipped stage never aborts the later ones):
  fetch    skipped when <workspace>/<PACKAGE_DL_FILENAME> exists
  extract  only runs right after a fetch that did work; extractor picked by suffix
  build    skipped when <workspace>/<PACKAGE_BUILD_ROOT>/<TARGET_PROG> exists
  install  copies TARGET_PROG to <rootfs>/<basename>, every run (overwrite)

Re-running after an interruption never repeats a finished stage. Fetch and
extract form one unit: if either fails the archive is discarded, so a partial
download is never mistaken for a finished one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rootforge.config import DEFAULTS
from rootforge.descriptor import ResolvedDescriptor
from rootforge.errors import CommandExecutionError, CopyError, RootforgeError
from rootforge.executor import CommandResult, render_template
from rootforge.fsops import LocalFilesystem
from rootforge.logging import get_logger

logger = get_logger("pipeline")

STAGES = ("fetch", "extract", "build", "install")

# suffix -> tool template name
EXTRACTORS = (
    (".zip", "unzip"),
    (".tar.gz", "tar_gz"),
    (".tar.xz", "tar_xz"),
)

DONE = "done"
SKIPPED = "skipped"
NOTHING = "none"
DRY_RUN = "dry-run"


def select_extractor(filename: str) -> Optional[str]:
    """Tool name for an archive filename, or None for "no extraction"."""
    for suffix, tool in EXTRACTORS:
        if filename.endswith(suffix):
            return tool
    return None


@dataclass
class StageRecord:
    stage: str
    status: str
    detail: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage, "status": self.status, "detail": self.detail}


class StagePipeline:
    def __init__(self, runner, fs: Optional[LocalFilesystem] = None,
                 tools: Optional[Dict[str, Sequence[str]]] = None,
                 dry_run: bool = False, skip_installed: bool = False):
        self.runner = runner
        self.fs = fs or LocalFilesystem()
        self.tools = dict(DEFAULTS["tools"])
        self.tools.update(tools or {})
        self.dry_run = dry_run
        self.skip_installed = skip_installed

    # --- helpers ---
    def _invoke(self, package: str, stage: str, tool: str, cwd: Optional[Path] = None, **fields) -> CommandResult:
        try:
            argv = render_template(self.tools[tool], **fields)
        except (KeyError, ValueError) as e:
            raise CommandExecutionError(
                f"bad {tool} template: {e}", package=package, stage=stage, path=str(cwd) if cwd else None,
            ) from e
        logger.info("[%s] %s: %s", package, stage, " ".join(argv))
        result = self.runner.run(argv, cwd)
        if not result.ok:
            reason = result.error or f"exit status {result.returncode}"
            raise CommandExecutionError(
                f"{tool} failed: {reason}",
                argv=argv, cwd=str(cwd) if cwd else None, returncode=result.returncode,
                package=package, stage=stage, path=str(cwd) if cwd else None,
            )
        return result

    # --- stages ---
    def fetch_and_extract(self, package: str, url: str, filename: str, workspace: Path) -> List[StageRecord]:
        archive = workspace / filename
        if self.fs.exists(archive):
            logger.info("[%s] %s already downloaded, skipping fetch", package, archive)
            return [StageRecord("fetch", SKIPPED, {"archive": str(archive)})]
        tool = select_extractor(filename)
        if self.dry_run:
            logger.info("[dry-run] would fetch %s -> %s", url, workspace)
            records = [StageRecord("fetch", DRY_RUN, {"url": url, "archive": str(archive)})]
            if tool:
                logger.info("[dry-run] would extract %s with %s", archive, tool)
            records.append(StageRecord("extract", DRY_RUN if tool else NOTHING, {"tool": tool}))
            return records

        try:
            self._invoke(package, "fetch", "fetch", cwd=workspace, dest=workspace, url=url)
            if not self.fs.exists(archive):
                raise CommandExecutionError(
                    f"fetch finished but {filename} is not in the workspace",
                    package=package, stage="fetch", path=str(archive),
                )
            logger.info("[%s] downloaded %s", package, archive)
            records = [StageRecord("fetch", DONE, {"url": url, "archive": str(archive)})]

            if tool is None:
                logger.info("[%s] %s has no known archive suffix, nothing to extract", package, filename)
                records.append(StageRecord("extract", NOTHING, {"tool": None}))
                return records
            self._invoke(package, "extract", tool, cwd=workspace, archive=archive, dest=workspace)
            logger.info("[%s] extracted %s to %s", package, archive, workspace)
            records.append(StageRecord("extract", DONE, {"tool": tool}))
            return records
        except RootforgeError:
            try:
                if self.fs.remove_file(archive):
                    logger.warning("[%s] discarded %s so the next run fetches it again", package, archive)
            except RootforgeError as cleanup:
                logger.error("[%s] %s", package, cleanup)
            raise

    def build(self, package: str, command: str, build_dir: Path, target: Path) -> StageRecord:
        if self.fs.exists(target):
            logger.info("[%s] %s already built, skipping build", package, target)
            return StageRecord("build", SKIPPED, {"target": str(target)})
        if self.dry_run:
            logger.info("[dry-run] would run %r in %s", command, build_dir)
            return StageRecord("build", DRY_RUN, {"command": command, "cwd": str(build_dir)})
        if not self.fs.exists(build_dir):
            raise CommandExecutionError(
                "build root does not exist", package=package, stage="build", path=str(build_dir),
            )
        result = self._invoke(package, "build", "shell", cwd=build_dir, command=command)
        return StageRecord("build", DONE, {"command": command, "cwd": str(build_dir), "returncode": result.returncode})

    def install(self, package: str, target: Path, rootfs: Path) -> StageRecord:
        dest = rootfs / target.name
        if self.skip_installed and self.fs.exists(dest):
            logger.info("[%s] %s already installed, skipping install", package, dest)
            return StageRecord("install", SKIPPED, {"dest": str(dest)})
        if self.dry_run:
            logger.info("[dry-run] would copy %s -> %s", target, dest)
            return StageRecord("install", DRY_RUN, {"source": str(target), "dest": str(dest)})
        if not self.fs.exists(target):
            raise CopyError(f"built program {target.name} not found", package=package, stage="install", path=str(target))
        try:
            self.fs.copy_file(target, dest)
        except OSError as e:
            raise CopyError(f"copy to rootfs failed: {e}", package=package, stage="install", path=str(dest)) from e
        logger.info("[%s] copied %s to %s", package, target, dest)
        return StageRecord("install", DONE, {"source": str(target), "dest": str(dest)})

    # --- main orchestration ---
    def run(self, resolved: ResolvedDescriptor, workspace: Path, rootfs: Path) -> List[StageRecord]:
        package = resolved.require("PACKAGE_NAME")
        url = resolved.require("PACKAGE_SRC")
        filename = resolved.require("PACKAGE_DL_FILENAME")
        build_root = resolved.require("PACKAGE_BUILD_ROOT")
        command = resolved.require("PACKAGE_BUILD_CMD")
        prog = resolved.require("TARGET_PROG")

        workspace = Path(workspace)
        if not self.dry_run:
            self.fs.ensure_dir(workspace)
        build_dir = workspace / build_root
        target = build_dir / prog

        records = self.fetch_and_extract(package, url, filename, workspace)
        records.append(self.build(package, command, build_dir, target))
        records.append(self.install(package, target, Path(rootfs)))
        return records
