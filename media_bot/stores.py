"""Short-lived in-memory stores.

Telegram limits callback payloads to 64 bytes, so buttons carry a short
token instead of the submitted link. Search results are kept per chat so a
"details" button only needs the item index.

Entries expire after a fixed TTL. Expiry is checked lazily on lookup and
swept before every insert; there is no background timer. Everything here is
process-local and lost on restart. ``ExpiringStore`` is the seam for a
shared backend if the bot ever runs as more than one process.
"""

import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

DEFAULT_TTL_SECONDS = 10 * 60


class ExpiringStore(ABC):
    @abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        ...

    @abstractmethod
    def get(self, key: Hashable) -> Optional[Any]:
        ...

    @abstractmethod
    def sweep(self) -> int:
        """Drop expired entries, return how many were removed."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class MemoryStore(ExpiringStore):
    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._data: Dict[Hashable, Tuple[Any, float]] = {}

    def _expired(self, created_at: float, now: float) -> bool:
        return now - created_at >= self.ttl

    def set(self, key: Hashable, value: Any) -> None:
        self.sweep()
        self._data[key] = (value, self._clock())

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, created_at = entry
        if self._expired(created_at, self._clock()):
            del self._data[key]
            return None
        return value

    def sweep(self) -> int:
        now = self._clock()
        stale = [k for k, (_, created_at) in self._data.items() if self._expired(created_at, now)]
        for k in stale:
            del self._data[k]
        return len(stale)

    def __contains__(self, key: Hashable) -> bool:
        entry = self._data.get(key)
        return entry is not None and not self._expired(entry[1], self._clock())

    def __len__(self) -> int:
        return len(self._data)


def new_token() -> str:
    # millisecond timestamp + random suffix; collisions are not detected
    return f"{int(time.time() * 1000):x}{secrets.token_hex(4)}"


class LinkTokenStore:
    """Maps short opaque tokens to the links users submitted."""

    def __init__(self, backend: Optional[ExpiringStore] = None, ttl: float = DEFAULT_TTL_SECONDS):
        self.backend = backend if backend is not None else MemoryStore(ttl)

    def put(self, url: str) -> str:
        token = new_token()
        self.backend.set(token, url)
        return token

    def get(self, token: str) -> Optional[str]:
        return self.backend.get(token)

    def sweep(self) -> int:
        return self.backend.sweep()


@dataclass
class SearchEntry:
    chat_id: int
    query: str
    items: List[Any]


class SearchResultStore:
    """Latest search result list per chat; a new search replaces the old one."""

    def __init__(self, backend: Optional[ExpiringStore] = None, ttl: float = DEFAULT_TTL_SECONDS):
        self.backend = backend if backend is not None else MemoryStore(ttl)

    def put(self, chat_id: int, query: str, items: List[Any]) -> SearchEntry:
        entry = SearchEntry(chat_id=chat_id, query=query, items=list(items))
        self.backend.set(chat_id, entry)
        return entry

    def get(self, chat_id: int) -> Optional[SearchEntry]:
        return self.backend.get(chat_id)

    def item(self, chat_id: int, index: int) -> Optional[Any]:
        """Return the 1-indexed item of the chat's last search.

        ``None`` when there is no live entry for the chat; ``IndexError``
        when ``index`` is outside ``1..len(items)``.
        """
        entry = self.get(chat_id)
        if entry is None:
            return None
        if index < 1 or index > len(entry.items):
            raise IndexError(f"index {index} out of range 1..{len(entry.items)}")
        return entry.items[index - 1]

    def sweep(self) -> int:
        return self.backend.sweep()
