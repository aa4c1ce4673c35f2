# rootforge/resolver.py
"""
resolver.py - `{{key}}` placeholder expansion for descriptors

Single pass over the entries in declaration order, no fixed-point iteration.
A placeholder is `{{` followed by everything up to the next `}}`; the text in
between is the referenced key, taken verbatim.

Lookup modes:
  resolved  a reference to a key declared earlier sees that key's resolved
            value; a forward reference sees the raw value
  raw       every reference sees the raw value of the original descriptor

Either way a value that still holds `{{` after the pass fails the whole
descriptor, so the pipeline never sees a half-resolved package.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from rootforge.config import LOOKUP_MODES
from rootforge.descriptor import (
    PLACEHOLDER_CLOSE,
    PLACEHOLDER_OPEN,
    Descriptor,
    ResolvedDescriptor,
)
from rootforge.errors import (
    LeftoverPlaceholder,
    UnknownPlaceholderKey,
    UnterminatedPlaceholder,
)
from rootforge.logging import get_logger

logger = get_logger("resolver")


def find_placeholders(value: str) -> Tuple[List[str], bool]:
    """Return (keys in left-to-right order, terminated).

    terminated is False when a `{{` has no closing `}}`; scanning stops there.
    """
    keys: List[str] = []
    pos = 0
    while True:
        start = value.find(PLACEHOLDER_OPEN, pos)
        if start < 0:
            return keys, True
        start += len(PLACEHOLDER_OPEN)
        end = value.find(PLACEHOLDER_CLOSE, start)
        if end < 0:
            return keys, False
        keys.append(value[start:end])
        pos = end


def resolve_value(key: str, value: str, lookup: Dict[str, str]) -> str:
    placeholders, terminated = find_placeholders(value)
    for ref in placeholders:
        if ref not in lookup:
            raise UnknownPlaceholderKey(ref, key)
        logger.debug("placeholder %r in %s", ref, key)
        value = value.replace(f"{PLACEHOLDER_OPEN}{ref}{PLACEHOLDER_CLOSE}", lookup[ref])
    if not terminated:
        raise UnterminatedPlaceholder(key, value)
    return value


def resolve(descriptor: Descriptor, lookup: str = "resolved") -> ResolvedDescriptor:
    if lookup not in LOOKUP_MODES:
        raise ValueError(f"unknown lookup mode {lookup!r}")
    raw = descriptor.as_dict()
    # in "resolved" mode entries overwrite their raw value as the pass advances
    table = dict(raw)
    resolved = ResolvedDescriptor(source=descriptor.source)
    try:
        for entry in descriptor:
            if entry.has_placeholder():
                value = resolve_value(entry.key, entry.value, raw if lookup == "raw" else table)
                entry = entry.replace_value(value)
                table[entry.key] = value
            resolved.add(entry)
        for entry in resolved:
            if entry.has_placeholder():
                raise LeftoverPlaceholder(entry.key, entry.value)
    except (UnknownPlaceholderKey, UnterminatedPlaceholder, LeftoverPlaceholder) as e:
        e.with_context(path=descriptor.source)
        raise
    return resolved
