# rootforge/descriptor.py
"""
descriptor.py - loader for `pkginfo` package descriptors

A descriptor is a UTF-8 text file with one `key ::= value` entry per line.
Lines are split on the first `::=` and both sides are trimmed. There is no
comment syntax and blank lines are rejected.

Entries are kept in file-declaration order: placeholder resolution walks them
in that order, so "declared earlier" keeps its textual meaning no matter how
keys would sort.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from rootforge.errors import MalformedLine, MissingRequiredKey, ParseError
from rootforge.logging import get_logger

logger = get_logger("descriptor")

DELIMITER = "::="
PLACEHOLDER_OPEN = "{{"
PLACEHOLDER_CLOSE = "}}"

REQUIRED_KEYS = (
    "PACKAGE_NAME",
    "PACKAGE_SRC",
    "PACKAGE_DL_FILENAME",
    "PACKAGE_BUILD_ROOT",
    "PACKAGE_BUILD_CMD",
    "TARGET_PROG",
)


@dataclass(frozen=True)
class DescriptorEntry:
    key: str
    value: str

    def has_placeholder(self) -> bool:
        return PLACEHOLDER_OPEN in self.value

    def replace_value(self, value: str) -> "DescriptorEntry":
        return DescriptorEntry(self.key, value)


class Descriptor:
    """Ordered key -> DescriptorEntry mapping."""

    def __init__(self, entries: Optional[List[DescriptorEntry]] = None, source: Optional[str] = None):
        self.source = source
        self._entries: List[DescriptorEntry] = []
        self._index: Dict[str, DescriptorEntry] = {}
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: DescriptorEntry) -> None:
        if entry.key in self._index:
            # later line wins and takes the later position
            logger.warning("descriptor %s: duplicate key %s overrides earlier value", self.source or "<memory>", entry.key)
            self._entries = [e for e in self._entries if e.key != entry.key]
        self._entries.append(entry)
        self._index[entry.key] = entry

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __getitem__(self, key: str) -> str:
        return self._index[key].value

    def __iter__(self) -> Iterator[DescriptorEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.as_dict()!r})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._index.get(key)
        return entry.value if entry is not None else default

    def entry(self, key: str) -> Optional[DescriptorEntry]:
        return self._index.get(key)

    def keys(self) -> List[str]:
        return [e.key for e in self._entries]

    def items(self) -> List[Tuple[str, str]]:
        return [(e.key, e.value) for e in self._entries]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def require(self, key: str) -> str:
        entry = self._index.get(key)
        if entry is None:
            raise MissingRequiredKey(key, path=self.source)
        return entry.value

    def missing_keys(self, keys=REQUIRED_KEYS) -> List[str]:
        return [k for k in keys if k not in self._index]


class ResolvedDescriptor(Descriptor):
    """A Descriptor whose values hold no `{{...}}` markers; built only by the resolver."""


def parse_line(line: str, lineno: int, source: Optional[str] = None) -> DescriptorEntry:
    key, sep, value = line.partition(DELIMITER)
    if not sep:
        raise MalformedLine(line, lineno, path=source)
    return DescriptorEntry(key.strip(), value.strip())


def parse_text(text: str, source: Optional[str] = None) -> Descriptor:
    desc = Descriptor(source=source)
    for lineno, line in enumerate(text.splitlines(), start=1):
        desc.add(parse_line(line, lineno, source))
    logger.debug("parsed %d entries from %s", len(desc), source or "<text>")
    return desc


def load(path: Union[str, Path]) -> Descriptor:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"cannot read descriptor: {e}", path=str(path), stage="parse") from e
    return parse_text(text, source=str(path))
