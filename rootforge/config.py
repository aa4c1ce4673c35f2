# rootforge/config.py
# -*- coding: utf-8 -*-
"""
rootforge central configuration loader

Features:
- Read YAML/JSON config from multiple locations (explicit, env override, cwd, user, system)
- Merge with authoritative DEFAULTS, normalize/coerce types (human sizes to bytes)
- Validate structure and types, warn or error (fatal optional)
- Typed access via Config dataclass (get_config(), Config.get("a.b"), helpers)
- Thread-safe load/reload
"""

from __future__ import annotations
import os
import json
import string
import logging
import threading
from pathlib import Path
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, List, Tuple, Union

import yaml

logger = logging.getLogger("rootforge.config")

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "file": None,
        "file_level": "DEBUG",
        "color": True,
        "max_size": "10M",  # human readable
        "backups": 5,
        "format": None,
        "datefmt": "%H:%M:%S",
        "jsonl": {"enabled": False, "path": "~/.rootforge/transparency.jsonl", "level": "INFO"},
        "module_levels": {},
    },
    "tools": {
        "fetch": ["wget", "-P", "{dest}", "{url}"],
        "unzip": ["unzip", "-o", "{archive}", "-d", "{dest}"],
        "tar_gz": ["tar", "-xzf", "{archive}", "-C", "{dest}"],
        "tar_xz": ["tar", "-xJf", "{archive}", "-C", "{dest}"],
        "shell": ["sh", "-c", "{command}"],
    },
    "build": {
        "descriptor_name": "pkginfo",
        "isolate_failures": True,
        "timeout": None,  # seconds; None blocks until the command exits
        "stream_output": True,
    },
    "resolver": {
        "lookup": "resolved",
    },
    "install": {
        "skip_existing": False,
    },
}

LOOKUP_MODES = ("resolved", "raw")

# fields each tool template may reference
TOOL_FIELDS: Dict[str, Tuple[str, ...]] = {
    "fetch": ("dest", "url"),
    "unzip": ("archive", "dest"),
    "tar_gz": ("archive", "dest"),
    "tar_xz": ("archive", "dest"),
    "shell": ("command",),
}

# ----------------------------
# Dataclass to hold config
# ----------------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # values loaded from file (if any)
    merged: Dict[str, Any] = field(default_factory=dict)  # merged with DEFAULTS
    path: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """Dot-separated getter for merged config."""
        parts = path.split(".") if path else []
        cur: Any = self.merged
        for p in parts:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur

    def as_dict(self) -> Dict[str, Any]:
        return deepcopy(self.merged)

# ----------------------------
# Module state
# ----------------------------
_CONFIG: Optional[Config] = None
_CONFIG_LOCK = threading.RLock()

# ----------------------------
# Utilities
# ----------------------------
def _human_size_to_bytes(val: Union[str, int, None]) -> Optional[int]:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    s = str(val).strip().upper()
    units = [("KB", 1024), ("MB", 1024**2), ("GB", 1024**3), ("K", 1024), ("M", 1024**2), ("G", 1024**3), ("T", 1024**4)]
    try:
        for suffix, mul in units:
            if s.endswith(suffix):
                num = float(s[: -len(suffix)].strip())
                return int(num * mul)
        return int(float(s))
    except ValueError:
        logger.warning("config: cannot parse human size '%s'", val)
        return None

def _expand_path(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    return os.path.abspath(os.path.expanduser(os.path.expandvars(val)))

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    res = deepcopy(a)
    for k, v in b.items():
        if k in res and isinstance(res[k], dict) and isinstance(v, dict):
            res[k] = _deep_merge(res[k], v)
        else:
            res[k] = deepcopy(v)
    return res

def _find_candidates(explicit: Optional[str] = None) -> List[Path]:
    candidates: List[Path] = []
    env = os.environ.get("ROOTFORGE_CONFIG")
    if explicit:
        candidates.append(Path(explicit))
    if env:
        candidates.append(Path(env))
    candidates.extend([
        Path.cwd() / "rootforge.yaml",
        Path.cwd() / "rootforge.yml",
        Path.cwd() / "rootforge.json",
        Path.home() / ".config" / "rootforge" / "config.yaml",
        Path("/etc") / "rootforge" / "config.yaml",
    ])
    return candidates

def _load_file(path: Path) -> Dict[str, Any]:
    """Parse a YAML or JSON config file. Raises ValueError on unreadable content."""
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"config: failed reading {path}: {e}") from e

    if path.suffix.lower() == ".json":
        try:
            data = json.loads(txt)
        except json.JSONDecodeError as e:
            raise ValueError(f"config: invalid JSON in {path}: {e}") from e
    else:
        # YAML is a superset of JSON, so anything else goes through PyYAML
        try:
            data = yaml.safe_load(txt)
        except yaml.YAMLError as e:
            raise ValueError(f"config: invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config: top level of {path} must be a mapping")
    return data

def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize path fields, convert human sizes and coerce basic types."""
    out = deepcopy(cfg)
    log = out.get("logging")
    if isinstance(log, dict):
        if isinstance(log.get("file"), str) and log["file"]:
            log["file"] = _expand_path(log["file"])
        jsonl = log.get("jsonl")
        if isinstance(jsonl, dict) and isinstance(jsonl.get("path"), str):
            jsonl["path"] = _expand_path(jsonl["path"])
        if "max_size" in log:
            ms = _human_size_to_bytes(log["max_size"])
            if ms is not None:
                log["max_size_bytes"] = ms

    build = out.get("build")
    if isinstance(build, dict):
        if build.get("timeout") is not None:
            try:
                build["timeout"] = int(build["timeout"])
            except (TypeError, ValueError):
                logger.debug("config: failed to coerce build.timeout", exc_info=True)
        for flag in ("isolate_failures", "stream_output"):
            if flag in build:
                build[flag] = bool(build[flag])

    install = out.get("install")
    if isinstance(install, dict) and "skip_existing" in install:
        install["skip_existing"] = bool(install["skip_existing"])

    resolver = out.get("resolver")
    if isinstance(resolver, dict) and isinstance(resolver.get("lookup"), str):
        resolver["lookup"] = resolver["lookup"].strip().lower()
    return out

def _template_fields(template: List[str]) -> set:
    names = set()
    for arg in template:
        try:
            names.update(f for _, f, _, _ in string.Formatter().parse(arg) if f is not None)
        except ValueError:
            names.add(arg)
    return names

def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Return (ok, issues_list). Non-fatal warnings unless called with fatal=True in load."""
    warnings: List[str] = []
    for k in cfg.keys():
        if k not in DEFAULTS:
            warnings.append(f"Unknown top-level config key: {k}")
    tools = cfg.get("tools", {})
    if not isinstance(tools, dict):
        warnings.append("tools must be a mapping")
    else:
        for name in DEFAULTS["tools"]:
            tpl = tools.get(name)
            if not isinstance(tpl, list) or not tpl or not all(isinstance(a, str) for a in tpl):
                warnings.append(f"tools.{name} must be a non-empty list of strings")
            else:
                unknown = sorted(_template_fields(tpl) - set(TOOL_FIELDS[name]))
                if unknown:
                    warnings.append(f"tools.{name} uses unknown field(s) {unknown}; allowed: {list(TOOL_FIELDS[name])}")
    build = cfg.get("build", {})
    if not isinstance(build, dict):
        warnings.append("build must be a mapping")
    else:
        timeout = build.get("timeout")
        if timeout is not None and (not isinstance(timeout, int) or timeout <= 0):
            warnings.append("build.timeout must be a positive integer or null")
        name = build.get("descriptor_name")
        if not isinstance(name, str) or not name:
            warnings.append("build.descriptor_name must be a non-empty string")
    resolver = cfg.get("resolver", {})
    if not isinstance(resolver, dict):
        warnings.append("resolver must be a mapping")
    elif resolver.get("lookup") not in LOOKUP_MODES:
        warnings.append(f"resolver.lookup must be one of {', '.join(LOOKUP_MODES)}")
    return (len(warnings) == 0, warnings)

# ----------------------------
# Loading / reloading
# ----------------------------
def _find_path(explicit: Optional[str] = None) -> Optional[Path]:
    if explicit:
        # an explicitly requested file must exist, no silent fallback to defaults
        p = Path(explicit)
        if not p.exists():
            raise ValueError(f"config: file not found: {p}")
        return p
    for p in _find_candidates():
        if p.exists():
            return p
    return None

def load(explicit_path: Optional[str] = None, fatal: bool = False) -> Config:
    """
    Load and merge config. If fatal=True then structural validation failures raise.
    Returns Config object.
    """
    global _CONFIG
    with _CONFIG_LOCK:
        cfg_path = _find_path(explicit_path)
        raw: Dict[str, Any] = {}
        if cfg_path:
            raw = _load_file(cfg_path)
        merged = _deep_merge(DEFAULTS, raw)
        normalized = _normalize_and_coerce(merged)
        ok, issues = _validate_structure(normalized)
        if not ok:
            msg = f"config: validation issues: {issues}"
            if fatal:
                logger.error(msg)
                raise ValueError(msg)
            logger.warning(msg)
        cfg_obj = Config(raw=raw, merged=normalized, path=cfg_path)
        _CONFIG = cfg_obj
        logger.debug("config: loaded merged config (from=%s)", str(cfg_path) if cfg_path else "<defaults>")
        return cfg_obj

def get_config() -> Config:
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None:
            _CONFIG = load()
        return _CONFIG

def reload(explicit_path: Optional[str] = None) -> Config:
    return load(explicit_path)

# ----------------------------
# Convenience helpers for modules
# ----------------------------
def get_tools_config(cfg: Optional[Config] = None) -> Dict[str, List[str]]:
    cfg = cfg or get_config()
    tools = cfg.merged.get("tools", {})
    return deepcopy(tools) if isinstance(tools, dict) else {}
