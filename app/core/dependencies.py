"""FastAPI dependencies."""
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.database import get_db
from app.services.directory.base import DirectoryProvider
from app.services.directory.in_memory_directory import InMemoryDirectoryProvider
from app.services.directory.sql_directory import SqlDirectoryProvider
from app.services.ivr.call_flow import CallFlow
from app.services.session.base import SessionStore
from app.services.session.in_memory_store import InMemorySessionStore
from app.services.session.redis_store import RedisSessionStore

# One store per process; connections are pooled inside it
_session_store: Optional[SessionStore] = None
_yaml_directory: Optional[InMemoryDirectoryProvider] = None


def get_session_store() -> SessionStore:
    """Get the process-wide session store."""
    global _session_store
    if _session_store is None:
        if settings.session_backend == "memory":
            _session_store = InMemorySessionStore()
        else:
            _session_store = RedisSessionStore(
                settings.redis_url, ttl_seconds=settings.session_ttl_seconds
            )
    return _session_store


def get_directory(db: AsyncSession = Depends(get_db)) -> DirectoryProvider:
    """Get the account directory for this request."""
    global _yaml_directory
    if settings.directory_backend == "yaml":
        if _yaml_directory is None:
            _yaml_directory = InMemoryDirectoryProvider(settings.directory_file)
        return _yaml_directory
    return SqlDirectoryProvider(db)


def get_call_flow(
    store: SessionStore = Depends(get_session_store),
    directory: DirectoryProvider = Depends(get_directory),
) -> CallFlow:
    """Get the call flow for this request."""
    return CallFlow(store, directory, settings=settings)


async def close_session_store() -> None:
    """Close the process-wide session store, if one was created."""
    global _session_store
    if _session_store is not None:
        await _session_store.close()
        _session_store = None
