"""
Identifier allocation for components and connections.

Identifiers combine a millisecond timestamp, a per-allocator counter and a
random suffix, so they stay unique within one allocator's lifetime and are
collision resistant across processes.
"""

import threading
import time
import uuid
from typing import Dict, Optional


DEFAULT_PREFIXES: Dict[str, str] = {
    'component': 'comp',
    'connection': 'conn',
}


class IdAllocator:
    """Hands out unique identifiers for one project."""

    def __init__(self, prefixes: Optional[Dict[str, str]] = None):
        self.prefixes = dict(prefixes or DEFAULT_PREFIXES)
        self._counter = 0
        self._lock = threading.Lock()

    def new_id(self, kind: str) -> str:
        """Return a fresh identifier for ``kind`` ('component' or 'connection')."""
        if kind not in self.prefixes:
            raise ValueError(f"Unknown identifier kind: {kind!r}")

        with self._lock:
            self._counter += 1
            counter = self._counter

        millis = int(time.time() * 1000)
        suffix = uuid.uuid4().hex[:9]
        return f"{self.prefixes[kind]}-{millis}-{counter}-{suffix}"

    @property
    def issued(self) -> int:
        """Number of identifiers handed out so far."""
        return self._counter
