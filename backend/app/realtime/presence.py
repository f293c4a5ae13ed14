# app/realtime/presence.py

"""
Presence table: username -> the one connection currently routed to.

Last-connect-wins. A newer announce for the same username replaces the
older handle; the older connection stays open but stops receiving routed
events. Removal compares handle identity, so a slow close of an old socket
can never evict the mapping a fast reconnect just created.
"""

import threading
from typing import Dict, Generic, List, Optional, Set, TypeVar

H = TypeVar("H")


class PresenceTable(Generic[H]):
    def __init__(self):
        self._by_username: Dict[str, H] = {}
        self._lock = threading.Lock()

    def announce(self, username: str, handle: H) -> Optional[H]:
        """Map username to handle, returning the handle it replaced (if any)."""
        with self._lock:
            previous = self._by_username.get(username)
            self._by_username[username] = handle
        return previous

    def resolve(self, username: str) -> Optional[H]:
        with self._lock:
            return self._by_username.get(username)

    def remove(self, handle: H) -> List[str]:
        """Drop every username still mapped to this exact handle."""
        with self._lock:
            removed = [u for u, h in self._by_username.items() if h is handle]
            for username in removed:
                del self._by_username[username]
        return removed

    def list_online(self) -> Set[str]:
        with self._lock:
            return set(self._by_username)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_username)
