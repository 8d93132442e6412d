from __future__ import annotations

from datetime import UTC, datetime
from threading import Lock
from typing import Callable, Optional
import logging

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..domain.errors import StoreError
from ..domain.models import DEFAULT_SESSION_ID, ProjectState
from .session_store import decode_state

logger = logging.getLogger(__name__)

Base = declarative_base()


class ProjectRecord(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    state = Column(Text, nullable=False)  # serialised ProjectState
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))


class SqlSessionStore:
    """Relational session store, one row per session id.

    The engine and schema are created on first use and memoised; concurrent
    first calls initialise exactly once.
    """

    def __init__(self, database_url: str) -> None:
        self._database_url = database_url
        self._sessionmaker: Optional[Callable[[], Session]] = None
        self._init_lock = Lock()

    def _session_factory(self) -> Callable[[], Session]:
        if self._sessionmaker is not None:
            return self._sessionmaker
        with self._init_lock:
            if self._sessionmaker is None:
                try:
                    engine = create_engine(self._database_url, future=True, pool_pre_ping=True)
                    Base.metadata.create_all(engine)
                except SQLAlchemyError as exc:
                    logger.error("Failed to initialise session schema url=%s", self._database_url)
                    raise StoreError("Failed to initialise session store schema") from exc
                logger.info("Session store schema verified url=%s", self._database_url)
                self._sessionmaker = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
        return self._sessionmaker

    def save(self, state: ProjectState, session_id: str = DEFAULT_SESSION_ID) -> None:
        factory = self._session_factory()
        try:
            with factory() as db:
                db.merge(ProjectRecord(id=session_id, state=state.to_json(), updated_at=datetime.now(UTC)))
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to save session '{session_id}'") from exc

    def load(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[ProjectState]:
        factory = self._session_factory()
        try:
            with factory() as db:
                record = db.get(ProjectRecord, session_id)
                blob = record.state if record is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load session '{session_id}'") from exc
        if blob is None:
            return None
        return decode_state(blob, session_id)
