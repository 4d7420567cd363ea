"""In-memory staging store for handing payloads across a navigation boundary.

The navigation mechanism between wizard stages only carries short strings, so large
payloads (dataset previews, validation results, the raw upload) travel out of band:
the writer stores the payload and passes an opaque key, the reader takes it once.

Contract:
- Every write gets a fresh key; keys are never reused.
- `take()` / `take_raw()` remove the entry before returning it. A reader that fails
  after taking has lost the payload, so consume it synchronously.
- Entries that are never read stay until `clear()` (workflow teardown).
- Structured payloads and raw bytes live in separate channels with separate keys.
"""

import logging
import secrets
from typing import Any

from .exceptions import StagingEntryNotFoundError

logger = logging.getLogger(__name__)


def _new_key(prefix: str) -> str:
    return f"{prefix}_{secrets.token_urlsafe(12)}"


class StagingStore:
    """Single-read key/value handoff scoped to one process lifetime.

    Usage:
        store = StagingStore()
        key = store.put({"prompt": "..."})
        payload = store.take(key)   # a second take(key) raises
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}
        self._raw_entries: dict[str, bytes] = {}

    def put(self, payload: Any) -> str:
        """Stage a structured payload and return its key."""
        key = _new_key("data")
        while key in self._entries:
            key = _new_key("data")
        self._entries[key] = payload
        logger.debug(f"Staged payload under {key}")
        return key

    def take(self, key: str) -> Any:
        """Remove and return a staged payload.

        Raises:
            StagingEntryNotFoundError: The key was never written or was already taken.
        """
        try:
            payload = self._entries.pop(key)
        except KeyError:
            raise StagingEntryNotFoundError(key) from None
        logger.debug(f"Consumed staged payload {key}")
        return payload

    def put_raw(self, data: bytes) -> str:
        """Stage binary data on the side channel and return its handle."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Raw payload must be bytes, got {type(data).__name__}")
        handle = _new_key("raw")
        while handle in self._raw_entries:
            handle = _new_key("raw")
        self._raw_entries[handle] = bytes(data)
        logger.debug(f"Staged {len(data)} raw bytes under {handle}")
        return handle

    def take_raw(self, handle: str) -> bytes:
        """Remove and return staged binary data.

        Raises:
            StagingEntryNotFoundError: The handle was never written or was already taken.
        """
        try:
            data = self._raw_entries.pop(handle)
        except KeyError:
            raise StagingEntryNotFoundError(handle) from None
        logger.debug(f"Consumed {len(data)} raw bytes from {handle}")
        return data

    def clear(self) -> int:
        """Drop every unread entry and return how many were dropped."""
        dropped = len(self._entries) + len(self._raw_entries)
        if dropped:
            logger.info(f"Dropping {dropped} unread staging entries")
        self._entries.clear()
        self._raw_entries.clear()
        return dropped

    def __contains__(self, key: object) -> bool:
        return key in self._entries or key in self._raw_entries

    def __len__(self) -> int:
        return len(self._entries) + len(self._raw_entries)
