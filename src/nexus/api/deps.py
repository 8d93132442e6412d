from __future__ import annotations

from threading import Lock
import logging

from ..config import Settings
from ..infrastructure.session_store import get_session_store
from ..services.model_client import build_model_client
from ..services.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

_orchestrator: Orchestrator | None = None
_lock = Lock()


def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is not None:
        return _orchestrator
    with _lock:
        if _orchestrator is None:
            settings = Settings.from_env()
            model = build_model_client(settings.model)
            if not model.ok:
                # Boot and history recovery still work; generation reports the error.
                logger.warning("Model client unavailable: %s", model.error)
            _orchestrator = Orchestrator(get_session_store(), model)
    return _orchestrator
