"""Turn orchestration: prompt composition, model call, merge and persist.

A turn either completes fully (merged state persisted, delta returned) or
leaves the stored session untouched.
"""

from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, List, Mapping, Optional
import json
import logging
import re

from ..domain.errors import ConfigurationError, ModelResponseError, StoreError
from ..domain.merge import build_next_state
from ..domain.models import DEFAULT_SESSION_ID, ChatMessage, ProjectFile, ProjectState
from ..domain.validation import validate_model_files
from ..infrastructure.session_store import SessionStore
from ..observability.metrics import record_turn
from .model_client import GenerationRequest, ModelClientResult

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """
ROLE: You are "Nexus", a Principal Software Architect.
MANDATE: Produce production-grade, secure, and clean code.

DESIGN SYSTEM:
- Use Tailwind CSS for styling.
- Use a dark, professional aesthetic (Obsidian/Zinc palette).
- Ensure strict TypeScript typing.

TASK:
- Analyze the user request.
- Update existing files or create new ones to satisfy the requirement.
- Return only the files you created or changed.
- RETURN ONLY A JSON ARRAY of file objects.
- NO explanatory text outside the JSON. NO markdown code fences.
""".strip()

OUTPUT_FORMAT = '[{"path": "index.html", "content": "...", "language": "html"}]'
NO_HISTORY_MARKER = "No prior history."
EMPTY_PROJECT_MARKER = "Current project files: none. The project is empty."

_FENCE_OPEN = re.compile(r"^```[a-zA-Z0-9_-]*[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?```$")


def render_history(history: Iterable[ChatMessage]) -> str:
    lines = [f"{msg.role.upper()}: {msg.text}" for msg in history]
    if not lines:
        return NO_HISTORY_MARKER
    return "Previous conversation:\n" + "\n".join(lines)


def render_files(files: Mapping[str, ProjectFile]) -> str:
    if not files:
        return EMPTY_PROJECT_MARKER
    parts = ["Current project files:"]
    for path, f in files.items():
        parts.append(f"--- FILE: {path} ({f.language}) ---\n{f.content}\n")
    return "\n".join(parts)


def compose_request(state: ProjectState) -> GenerationRequest:
    prompt = "\n\n".join(
        [
            SYSTEM_INSTRUCTION,
            "CONTEXT:\n" + render_history(state.history),
            render_files(state.files),
            f'USER REQUEST:\n"{state.prompt}"',
            "OUTPUT FORMAT:\n" + OUTPUT_FORMAT,
        ]
    )
    return GenerationRequest(prompt=prompt, image_base64=state.image_base64 or None)


def strip_code_fence(text: str) -> str:
    cleaned = (text or "").strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_model_files(raw: str) -> List[ProjectFile]:
    cleaned = strip_code_fence(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse model JSON response: %s", (raw or "")[:500])
        raise ModelResponseError("The architect returned an invalid response.") from exc
    files = validate_model_files(data)
    # One entry per path; a later duplicate replaces an earlier one.
    by_path: Dict[str, ProjectFile] = {}
    for f in files:
        by_path[f.path] = f
    return list(by_path.values())


class Orchestrator:
    def __init__(self, store: SessionStore, model: ModelClientResult) -> None:
        self._store = store
        self._model = model
        self._locks: Dict[str, Lock] = {}
        self._locks_guard = Lock()

    def _session_lock(self, session_id: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = Lock()
            return lock

    def boot_session(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[ProjectState]:
        return self._store.load(session_id)

    def process_request(self, state: ProjectState, session_id: str = DEFAULT_SESSION_ID) -> List[ProjectFile]:
        """Run one turn and return the files the model created or changed."""
        try:
            client = self._model.unwrap()
        except ConfigurationError:
            record_turn("config_error")
            raise
        logger.info("Processing architect request session=%s prompt=%r", session_id, state.prompt[:200])

        with self._session_lock(session_id):
            try:
                raw = client.generate(compose_request(state))
                delta = parse_model_files(raw)
                next_state = build_next_state(state, delta)
                self._store.save(next_state, session_id)
            except ModelResponseError:
                record_turn("model_error")
                raise
            except StoreError:
                logger.exception("Failed to persist session=%s", session_id)
                record_turn("store_error")
                raise
            except Exception:
                logger.exception("Architect turn failed session=%s", session_id)
                record_turn("error")
                raise

        record_turn("ok")
        logger.info("Architect turn complete session=%s files=%d", session_id, len(delta))
        return delta
