from __future__ import annotations

from datetime import UTC, datetime
from threading import Lock, RLock
from typing import Dict, Optional, Protocol, Tuple
import logging

from ..config import Settings
from ..domain.errors import StoreError
from ..domain.models import DEFAULT_SESSION_ID, ProjectState

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def save(self, state: ProjectState, session_id: str = DEFAULT_SESSION_ID) -> None: ...

    def load(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[ProjectState]: ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


def decode_state(blob: str, session_id: str) -> ProjectState:
    try:
        return ProjectState.model_validate_json(blob)
    except ValueError as exc:
        raise StoreError(f"Stored state for session '{session_id}' is unreadable") from exc


class InMemorySessionStore:
    """Process-local store for tests and throwaway dev runs.

    Keeps the serialised blob rather than the model so a load never aliases
    the object that was saved.
    """

    def __init__(self) -> None:
        self._rows: Dict[str, Tuple[str, datetime]] = {}
        self._lock = RLock()

    def save(self, state: ProjectState, session_id: str = DEFAULT_SESSION_ID) -> None:
        with self._lock:
            self._rows[session_id] = (state.to_json(), _utc_now())

    def load(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[ProjectState]:
        with self._lock:
            row = self._rows.get(session_id)
        if row is None:
            return None
        return decode_state(row[0], session_id)

    def updated_at(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[datetime]:
        with self._lock:
            row = self._rows.get(session_id)
            return row[1] if row else None


_store: SessionStore | None = None
_store_lock = Lock()


def build_session_store(settings: Settings) -> SessionStore:
    impl = settings.session_store_impl
    if impl == "memory":
        return InMemorySessionStore()
    if impl == "mongo":
        from .session_store_mongo import MongoSessionStore

        return MongoSessionStore(settings.mongo_url, settings.mongo_db)
    if impl != "sql":
        logger.warning("Unknown NEXUS_SESSION_STORE_IMPL=%s; using sql", impl)
    from .session_store_sql import SqlSessionStore

    return SqlSessionStore(settings.database_url)


def get_session_store() -> SessionStore:
    global _store
    if _store is not None:
        return _store
    with _store_lock:
        if _store is None:
            _store = build_session_store(Settings.from_env())
    return _store
