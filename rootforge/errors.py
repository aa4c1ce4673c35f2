# rootforge/errors.py
"""
Error taxonomy for rootforge.

Every error raised while building a package derives from RootforgeError and may
carry the package name, the stage and the path it concerns, so the driver can
report "what failed, where" before moving on to the next package.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RootforgeError(Exception):
    def __init__(self, message: str, *, package: Optional[str] = None,
                 stage: Optional[str] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.package = package
        self.stage = stage
        self.path = str(path) if path is not None else None

    def with_context(self, *, package: Optional[str] = None, stage: Optional[str] = None,
                     path: Optional[str] = None) -> "RootforgeError":
        """Fill in context fields that are still unset; returns self for re-raise."""
        if package and not self.package:
            self.package = package
        if stage and not self.stage:
            self.stage = stage
        if path is not None and not self.path:
            self.path = str(path)
        return self

    def context(self) -> Dict[str, Any]:
        return {"package": self.package, "stage": self.stage, "path": self.path}

    def __str__(self) -> str:
        parts = [f"{k}={v}" for k, v in self.context().items() if v]
        if parts:
            return f"{self.message} ({', '.join(parts)})"
        return self.message


class PathResolutionError(RootforgeError):
    pass


class ParseError(RootforgeError):
    pass


class MalformedLine(ParseError):
    def __init__(self, line: str, lineno: int, path: Optional[str] = None):
        super().__init__(f"line {lineno}: missing '::=' delimiter in {line!r}", path=path, stage="parse")
        self.line = line
        self.lineno = lineno


class ResolutionError(RootforgeError):
    pass


class UnknownPlaceholderKey(ResolutionError):
    def __init__(self, key: str, referenced_by: str):
        super().__init__(f"{referenced_by}: unknown placeholder key {{{{{key}}}}}", stage="resolve")
        self.key = key
        self.referenced_by = referenced_by


class UnterminatedPlaceholder(ResolutionError):
    def __init__(self, key: str, value: str):
        super().__init__(f"{key}: unterminated placeholder in {value!r}", stage="resolve")
        self.key = key
        self.value = value


class LeftoverPlaceholder(ResolutionError):
    def __init__(self, key: str, value: str):
        super().__init__(f"{key}: value still holds a placeholder after resolution: {value!r}", stage="resolve")
        self.key = key
        self.value = value


class MissingRequiredKey(RootforgeError):
    def __init__(self, key: str, path: Optional[str] = None):
        super().__init__(f"required key {key} missing from descriptor", path=path)
        self.key = key


class CommandExecutionError(RootforgeError):
    def __init__(self, message: str, *, argv=None, cwd: Optional[str] = None,
                 returncode: Optional[int] = None, **kw):
        super().__init__(message, **kw)
        self.argv = list(argv or [])
        self.cwd = cwd
        self.returncode = returncode


class CopyError(RootforgeError):
    pass
