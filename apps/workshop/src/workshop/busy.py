"""Busy flags.

A flag is a resource URL or an operation name ("findRepositories", ...).
While it is set, a second mutating operation on the same key must back off
and return None instead of touching the remote side.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class BusyFlags:
    """Set of keys with an operation in flight."""

    def __init__(self) -> None:
        self._flags: set[str] = set()

    def __contains__(self, key: str) -> bool:
        return key in self._flags

    def __len__(self) -> int:
        return len(self._flags)

    def is_busy(self, key: str) -> bool:
        return key in self._flags

    def set_busy(self, key: str, value: bool) -> None:
        if value:
            self._flags.add(key)
        else:
            self._flags.discard(key)

    @contextmanager
    def guard(self, key: str) -> Iterator[bool]:
        """
        Hold ``key`` for the duration of the block.

        Yields False (without touching the flag) when the key is already
        held, so only the holder ever releases it.
        """
        if key in self._flags:
            logger.debug("Busy, skipping: %s", key)
            yield False
            return

        self._flags.add(key)
        try:
            yield True
        finally:
            self._flags.discard(key)
