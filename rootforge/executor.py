# rootforge/executor.py
"""
executor.py - command backend used by the stage pipeline

The pipeline only ever calls `runner.run(argv, cwd)` and inspects the returned
CommandResult, so tests can swap in a fake runner and nothing gets spawned.
"""

from __future__ import annotations

import os
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from rootforge.logging import get_logger, stream_build_output

logger = get_logger("executor")

RC_NOT_FOUND = 127
RC_TIMEOUT = 124


@dataclass
class CommandResult:
    argv: List[str]
    cwd: Optional[str]
    returncode: int
    output: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def render_template(template: Sequence[str], **values: Union[str, Path]) -> List[str]:
    """Fill `{name}` fields of a tool template, one argv element at a time."""
    ctx = {k: str(v) for k, v in values.items()}
    try:
        return [arg.format(**ctx) for arg in template]
    except (KeyError, IndexError) as e:
        raise ValueError(f"tool template {list(template)!r} uses unknown field {e}") from e


@dataclass
class SubprocessRunner:
    """Run a program to completion, merging stdout/stderr.

    timeout=None blocks until the process exits. With stream=True every output
    line is logged as it arrives.
    """
    timeout: Optional[int] = None
    stream: bool = True
    env: Optional[Dict[str, str]] = None
    module: str = "build"
    history: List[CommandResult] = field(default_factory=list, repr=False)

    def run(self, argv: Sequence[str], cwd: Optional[Union[str, Path]] = None) -> CommandResult:
        argv = [str(a) for a in argv]
        cwd_s = str(cwd) if cwd is not None else None
        logger.debug("RUN: %s (cwd=%s)", " ".join(argv), cwd_s)
        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd_s,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=(self.env or os.environ),
                text=True,
                errors="replace",
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            result = CommandResult(argv, cwd_s, RC_NOT_FOUND, error=str(e))
            self.history.append(result)
            return result

        lines: List[str] = []
        # reader thread keeps the pipe drained while we wait with a timeout
        reader = threading.Thread(target=self._pump, args=(proc, lines), daemon=True)
        reader.start()
        try:
            rc = proc.wait(timeout=self.timeout)
            error = None
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            rc = RC_TIMEOUT
            error = f"timed out after {self.timeout}s"
            logger.error("command timed out after %ss: %s", self.timeout, " ".join(argv))
        reader.join()
        result = CommandResult(argv, cwd_s, rc, output="".join(lines), error=error)
        self.history.append(result)
        return result

    def _pump(self, proc: subprocess.Popen, lines: List[str]) -> None:
        for line in proc.stdout:
            lines.append(line)
            if self.stream:
                stream_build_output(self.module, line)
        proc.stdout.close()
