"""
Stable, collision-free identifiers for channel headers.

The key ignores the trailing unit bracket, so "Boost [psi]" and "Boost [bar]"
share a key and a selection survives a unit preference change.
"""

import re
from typing import Dict, Iterable, Optional, Set

TIME_KEY = 'Time'

_UNIT_SUFFIX = re.compile(r'\s*\[[^\]]*\]$')
_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9]')


def strip_unit(header: str) -> str:
    """Remove a trailing "[unit]" from a header."""
    return _UNIT_SUFFIX.sub('', header)


class KeySanitizer:
    """Assigns safe keys to the headers of one table."""

    def __init__(self):
        self._used: Set[str] = {TIME_KEY}

    def sanitize(self, header: str, position: Optional[int] = None) -> str:
        """
        Get the safe key for a header and register it.

        Args:
            header: Header text, with or without a unit bracket
            position: Column position, used as the suffix on collisions

        Returns:
            Safe key unique within this sanitizer
        """
        if header == TIME_KEY:
            return TIME_KEY

        key = _UNSAFE_CHARS.sub('_', strip_unit(header))
        if key in self._used:
            suffix = position if position is not None else len(self._used)
            candidate = f"{key}_{suffix}"
            while candidate in self._used:
                candidate = f"{candidate}_{suffix}"
            key = candidate

        self._used.add(key)
        return key


def build_key_map(headers: Iterable[str]) -> Dict[str, str]:
    """Map each header (in order) to its safe key."""
    sanitizer = KeySanitizer()
    return {header: sanitizer.sanitize(header, index) for index, header in enumerate(headers)}
