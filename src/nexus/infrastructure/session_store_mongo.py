from __future__ import annotations

from datetime import UTC, datetime
from threading import Lock
from typing import Any, Optional
import logging

from ..domain.errors import StoreError
from ..domain.models import DEFAULT_SESSION_ID, ProjectState
from .session_store import decode_state

logger = logging.getLogger(__name__)


class MongoSessionStore:
    """Mongo-backed session store: one document per session id in ``projects``."""

    def __init__(self, mongo_url: str, mongo_db: str, client_factory: Any = None) -> None:
        self._mongo_url = mongo_url
        self._mongo_db = mongo_db
        self._client_factory = client_factory
        self._collection = None
        self._init_lock = Lock()

    def _get_collection(self):
        if self._collection is not None:
            return self._collection
        with self._init_lock:
            if self._collection is None:
                from pymongo import MongoClient
                from pymongo.errors import PyMongoError

                factory = self._client_factory or MongoClient
                try:
                    client = factory(self._mongo_url, serverSelectionTimeoutMS=2000)
                    # Trigger server selection
                    client.server_info()
                    collection = client[self._mongo_db]["projects"]
                    collection.create_index("updated_at")
                except PyMongoError as exc:
                    logger.error("Failed to initialise Mongo session store url=%s", self._mongo_url)
                    raise StoreError("Failed to initialise session store") from exc
                self._collection = collection
        return self._collection

    def save(self, state: ProjectState, session_id: str = DEFAULT_SESSION_ID) -> None:
        from pymongo.errors import PyMongoError

        collection = self._get_collection()
        doc = {"_id": session_id, "state": state.to_json(), "updated_at": datetime.now(UTC)}
        try:
            collection.replace_one({"_id": session_id}, doc, upsert=True)
        except PyMongoError as exc:
            raise StoreError(f"Failed to save session '{session_id}'") from exc

    def load(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[ProjectState]:
        from pymongo.errors import PyMongoError

        collection = self._get_collection()
        try:
            doc = collection.find_one({"_id": session_id})
        except PyMongoError as exc:
            raise StoreError(f"Failed to load session '{session_id}'") from exc
        if not doc:
            return None
        return decode_state(doc["state"], session_id)
