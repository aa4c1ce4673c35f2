#!/usr/bin/env python3
# rootforge/cli.py
"""
rootforge CLI - builds a package list into a rootfs

How it works:
- loads config (rootforge.config) and applies the logging section
- reads the package list, builds every package in order (rootforge.driver)
- prints a rich summary table, optionally writes a JSON report
"""

from __future__ import annotations

import sys
import json
import argparse
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from rootforge import __version__
from rootforge import config as config_mod
from rootforge import logging as rf_logging
from rootforge.driver import BuildDriver, BuildSettings, RunReport, read_package_list
from rootforge.errors import RootforgeError
from rootforge.executor import SubprocessRunner

logger = rf_logging.get_logger("cli")

EXIT_FAILED = 1
EXIT_FATAL = 2

console = Console()
err_console = Console(stderr=True)

# -----------------------
# Small pretty helpers
# -----------------------
def print_ok(msg: str):
    console.print(f"[bold green]✔[/] {msg}")

def print_err(msg: str):
    err_console.print(f"[bold red]✖[/] {msg}")

def render_report(report: RunReport) -> Table:
    table = Table(title="rootforge build summary")
    table.add_column("package", style="bold")
    table.add_column("result")
    table.add_column("stages")
    table.add_column("detail", overflow="fold")
    for o in report.outcomes:
        stages = ", ".join(f"{s.stage}:{s.status}" for s in o.stages)
        result = "[green]ok[/]" if o.ok else f"[red]failed ({o.stage})[/]"
        table.add_row(o.name, result, stages, o.error or "")
    return table

# -----------------------
# Argparse wiring
# -----------------------
def make_parser():
    ap = argparse.ArgumentParser(prog="rootforge", description="Build packages from pkginfo descriptors into a rootfs")
    ap.add_argument("-i", "--input-pkg-path", required=True, help="Path to the package list (one name per line)")
    ap.add_argument("-o", "--output-path", required=True, help="Output directory (receives pkgs/ and rootfs/)")
    ap.add_argument("-p", "--packages-path", required=True, help="Directory holding <name>/pkginfo descriptors")
    ap.add_argument("--config", help="explicit config file (YAML or JSON)")
    ap.add_argument("--dry-run", action="store_true", help="log what would run without running it")
    ap.add_argument("--fail-fast", action="store_true", help="abort the run at the first failing package")
    ap.add_argument("--lookup", choices=config_mod.LOOKUP_MODES, help="placeholder lookup mode")
    ap.add_argument("--skip-installed", action="store_true", help="do not re-copy artifacts already in the rootfs")
    ap.add_argument("--report", help="write a JSON report of per-package outcomes to this file")
    ap.add_argument("--log-level", help="override logging.level")
    ap.add_argument("--no-color", action="store_true", help="disable colored log output")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap

def _setup(args) -> config_mod.Config:
    cfg = config_mod.load(args.config, fatal=bool(args.config))
    log_cfg = cfg.get("logging", {})
    log_cfg = dict(log_cfg) if isinstance(log_cfg, dict) else {}
    if args.log_level:
        log_cfg["level"] = args.log_level
    if args.no_color:
        log_cfg["color"] = False
    rf_logging.configure(log_cfg)
    return cfg

def main(argv: Optional[List[str]] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    args = make_parser().parse_args(argv)

    try:
        cfg = _setup(args)
    except ValueError as e:
        print_err(str(e))
        return EXIT_FATAL

    logger.info("welcome to rootforge %s", __version__)
    settings = BuildSettings.from_config(
        cfg, args.packages_path, args.output_path,
        dry_run=args.dry_run or None,
        isolate_failures=False if args.fail_fast else None,
        lookup=args.lookup,
        skip_installed=args.skip_installed or None,
    )
    runner = SubprocessRunner(timeout=cfg.get("build.timeout"), stream=cfg.get("build.stream_output", True))
    driver = BuildDriver(settings, runner, tools=config_mod.get_tools_config(cfg))

    try:
        names = read_package_list(args.input_pkg_path)
        report = driver.run(names)
    except RootforgeError as e:
        if e.package is None:
            # root directories or the package list itself
            print_err(f"Fatal: {e}")
            return EXIT_FATAL
        # --fail-fast re-raises the first package error
        logger.debug("run aborted", exc_info=True)
        print_err(f"Build aborted: {e}")
        return EXIT_FAILED

    console.print(render_report(report))
    if args.report:
        Path(args.report).write_text(json.dumps(report.as_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("report written to %s", args.report)
    if report.ok:
        print_ok(f"{len(report.outcomes)} package(s) built")
    else:
        print_err(f"{len(report.failed)} package(s) failed: {', '.join(o.name for o in report.failed)}")
    return report.exit_code

if __name__ == "__main__":
    sys.exit(main())
