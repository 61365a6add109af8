"""In-memory session store."""
from typing import Dict, Optional

from app.services.session.base import SessionStore, SessionStoreError


class InMemorySessionStore(SessionStore):
    """Process-local session store for development and tests.

    Values never expire. ``increment`` has no await between its read and
    write, so it is atomic with respect to other coroutines on the loop.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def increment(self, key: str) -> int:
        raw = self.data.get(key) or "0"
        try:
            count = int(raw) + 1
        except ValueError as e:
            raise SessionStoreError(f"Value at {key} is not an integer") from e
        self.data[key] = str(count)
        return count
