# rootforge/logging.py
# -*- coding: utf-8 -*-
"""
rootforge logging

Features:
 - Console color formatter
 - Rotating file handler
 - JSONL transparency log
 - Module-level configurable log levels (module_levels)
 - Build output streaming helper for subprocess lines
 - Thread-safe reconfiguration and metrics
"""

from __future__ import annotations
import sys
import json
import time
import logging
import logging.handlers
import threading
from pathlib import Path
from typing import Dict, Any, Optional, List

from rootforge.config import DEFAULTS, _human_size_to_bytes

_logger = logging.getLogger("rootforge.logging")

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(rootforge_module)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(rootforge_module)s] %(message)s"

# ----------------------
# Color formatter
# ----------------------
class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[37m",    # light gray
        logging.INFO: "\033[36m",     # cyan
        logging.WARNING: "\033[33m",  # yellow
        logging.ERROR: "\033[31m",    # red
        logging.CRITICAL: "\033[41;37m", # white on red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = None, datefmt: str = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        msg = super().format(record)
        if self.color:
            color = self.COLORS.get(record.levelno, "")
            return f"{color}{msg}{self.RESET}"
        return msg

# ----------------------
# JSONL formatter for transparency log
# ----------------------
class JSONLineFormatter(logging.Formatter):
    def format(self, record):
        obj = {
            "timestamp": time.time(),
            "level": record.levelname,
            "module": getattr(record, "rootforge_module", record.name),
            "message": record.getMessage(),
        }
        if record.exc_info:
            obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False)

# ----------------------
# Module-level filter for per-module levels
# ----------------------
class ModuleLevelFilter(logging.Filter):
    """
    Attached to every handler. Records coming from plain stdlib loggers under
    "rootforge.*" get their logger name as rootforge_module so the formats work.
    """
    def __init__(self, module_levels: Dict[str, str]):
        super().__init__()
        self.module_levels = {m: getattr(logging, str(lvl).upper(), logging.INFO) for m, lvl in (module_levels or {}).items()}

    def filter(self, record):
        mod = getattr(record, "rootforge_module", None)
        if mod is None:
            mod = record.name
            record.rootforge_module = mod
        if mod in self.module_levels:
            return record.levelno >= self.module_levels[mod]
        return True

# ----------------------
# Per-level record counter
# ----------------------
class _LevelCounter(logging.Handler):
    def __init__(self, metrics: Dict[str, int]):
        super().__init__(logging.DEBUG)
        self.metrics = metrics

    def emit(self, record):
        if record.levelname in self.metrics:
            self.metrics[record.levelname] += 1

# ----------------------
# RootforgeLogger (singleton)
# ----------------------
class RootforgeLogger:
    _instance = None
    _singleton_lock = threading.Lock()

    def __new__(cls):
        with cls._singleton_lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._inited = False
        return cls._instance

    def __init__(self):
        if self._inited:
            return
        self._lock = threading.RLock()

        self._root = logging.getLogger("rootforge")
        self._root.setLevel(logging.DEBUG)

        self._handlers: List[logging.Handler] = []
        self._metrics: Dict[str, int] = {lvl: 0 for lvl in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")}
        self._jsonl_path: Optional[Path] = None

        # defaults only; the CLI re-applies the loaded file config
        self._apply_config(DEFAULTS["logging"])
        # counts records propagated from rootforge.* child loggers too
        self._root.addHandler(_LevelCounter(self._metrics))
        self._inited = True

    # ----------------------
    # Configuration (apply/re-apply)
    # ----------------------
    def _apply_config(self, cfg: Dict[str, Any]):
        with self._lock:
            for h in list(self._handlers):
                self._root.removeHandler(h)
                h.close()
            self._handlers.clear()

            module_filter = ModuleLevelFilter(cfg.get("module_levels", {}) or {})
            level = getattr(logging, str(cfg.get("level", "INFO")).upper(), logging.INFO)
            datefmt = cfg.get("datefmt", "%H:%M:%S")

            # console handler
            console_cfg = cfg.get("console", {"enabled": True})
            if console_cfg.get("enabled", True):
                ch = logging.StreamHandler(sys.stderr)
                ch.setLevel(level)
                fmt = cfg.get("format") or DEFAULT_FORMAT
                ch.setFormatter(ColorFormatter(fmt, datefmt=datefmt, color=bool(cfg.get("color", True))))
                ch.addFilter(module_filter)
                self._root.addHandler(ch)
                self._handlers.append(ch)

            # rotating file handler
            if cfg.get("file"):
                file_path = Path(cfg["file"]).expanduser()
                file_path.parent.mkdir(parents=True, exist_ok=True)
                max_bytes = _human_size_to_bytes(cfg.get("max_size", "10M")) or 10 * 1024 * 1024
                fh = logging.handlers.RotatingFileHandler(str(file_path), maxBytes=max_bytes, backupCount=int(cfg.get("backups", 5)), encoding="utf-8")
                fh.setLevel(getattr(logging, str(cfg.get("file_level", "DEBUG")).upper(), logging.DEBUG))
                fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=datefmt))
                fh.addFilter(module_filter)
                self._root.addHandler(fh)
                self._handlers.append(fh)

            # jsonl transparency log
            jsonl_cfg = cfg.get("jsonl", {}) or {}
            if jsonl_cfg.get("enabled"):
                path = Path(jsonl_cfg.get("path", "~/.rootforge/transparency.jsonl")).expanduser()
                path.parent.mkdir(parents=True, exist_ok=True)
                self._jsonl_path = path
                jh = logging.FileHandler(str(path), encoding="utf-8")
                jh.setLevel(getattr(logging, str(jsonl_cfg.get("level", "INFO")).upper(), logging.INFO))
                jh.setFormatter(JSONLineFormatter())
                jh.addFilter(module_filter)
                self._root.addHandler(jh)
                self._handlers.append(jh)
            else:
                self._jsonl_path = None

            _logger.debug("logging: configuration applied")

    def configure(self, cfg: Optional[Dict[str, Any]] = None):
        """Re-apply handlers from a `logging:` config section (missing keys use DEFAULTS)."""
        merged = dict(DEFAULTS["logging"])
        merged.update(cfg or {})
        self._apply_config(merged)

    # ----------------------
    # Public API
    # ----------------------
    def get_logger(self, module_name: str) -> logging.LoggerAdapter:
        """Return a LoggerAdapter that injects 'rootforge_module' into records."""
        return logging.LoggerAdapter(self._root, {"rootforge_module": module_name})

    def stream_build_output(self, module: str, line: str):
        self.get_logger(module).info("%s", line.rstrip("\n"))

    def get_metrics(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._metrics)

# ----------------------
# Public factory
# ----------------------
_GLOBAL_LOGGER = RootforgeLogger()

def get_logger(module: str):
    return _GLOBAL_LOGGER.get_logger(module)

def configure(cfg: Optional[Dict[str, Any]] = None):
    return _GLOBAL_LOGGER.configure(cfg)

def stream_build_output(module: str, line: str):
    return _GLOBAL_LOGGER.stream_build_output(module, line)

def get_metrics():
    return _GLOBAL_LOGGER.get_metrics()
