# rootforge/fsops.py
"""Filesystem backend: the handful of operations the pipeline and driver need."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Union

from rootforge.errors import PathResolutionError
from rootforge.logging import get_logger

logger = get_logger("fsops")

PathLike = Union[str, Path]


class LocalFilesystem:
    def ensure_dir(self, path: PathLike) -> Path:
        p = Path(path)
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # also covers an existing plain file at `path`
            raise PathResolutionError(f"cannot create directory: {e}", path=str(p)) from e
        return p

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def copy_file(self, src: PathLike, dst: PathLike) -> Path:
        # copy2 keeps the executable bit of built programs
        return Path(shutil.copy2(str(src), str(dst)))

    def remove_file(self, path: PathLike) -> bool:
        p = Path(path)
        try:
            p.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PathResolutionError(f"cannot remove file: {e}", path=str(p)) from e
        logger.info("removed %s", p)
        return True

    def canonicalize(self, path: PathLike) -> Path:
        try:
            return Path(path).resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise PathResolutionError(f"cannot resolve path: {e}", path=str(path)) from e
