"""In-process object URLs for stored media.

A URL minted here is a handle to bytes held in memory by this process. It
is never persisted and stops resolving once revoked or once the process
exits.
"""

import threading
import uuid

URL_PREFIX = "blob:chronos/"


class ObjectUrlRegistry:
    """Mint, resolve and revoke blob: URLs."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def create(self, data: bytes, content_type: str) -> str:
        url = f"{URL_PREFIX}{uuid.uuid4()}"
        with self._lock:
            self._entries[url] = (data, content_type)
        return url

    def resolve(self, url: str) -> tuple[bytes, str]:
        """Return (data, content_type) for a live URL.

        Raises:
            KeyError: If the URL was revoked or never minted here
        """
        with self._lock:
            if url not in self._entries:
                raise KeyError(f"Unknown or revoked media URL: {url}")
            return self._entries[url]

    def revoke(self, url: str) -> None:
        with self._lock:
            self._entries.pop(url, None)

    def revoke_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def is_live(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._entries)
