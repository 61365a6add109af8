"""Session store interface."""
from abc import ABC, abstractmethod
from typing import Optional


class SessionStoreError(Exception):
    """Raised when the session store cannot be reached or rejects a command."""


class SessionStore(ABC):
    """Abstract key/value store holding per-call state across webhook turns."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get a value, or None if the key is not set (or has expired)."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Set a value."""
        pass

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically add one to a counter and return the new value.

        A missing key counts as 0. The read-modify-write must happen inside
        the store, never as a get followed by a set.
        """
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        pass
