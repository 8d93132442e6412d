"""HTTP bridge used by the presentation layer.

``boot`` is a side-effect-free read and is retried with exponential backoff;
``process`` triggers a paid, non-deterministic generation and is attempted
exactly once. Keep the two paths separate.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, List, Optional, Tuple
import logging
import time

import requests
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..domain.errors import ValidationError
from ..domain.models import ProjectFile, ProjectState
from ..domain.validation import validate_project_state
from ..domain.merge import build_next_state

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:3001"
BOOT_ATTEMPTS = 5
BOOT_INITIAL_DELAY = 1.0  # seconds
BOOT_BACKOFF = 1.5

_FILES_ADAPTER = TypeAdapter(List[ProjectFile])


class SyncError(Exception):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class TransportError(SyncError):
    """The server could not be reached."""


class RequestTimeoutError(SyncError):
    pass


class ServerResponseError(SyncError):
    """Non-success HTTP status."""


class InvalidResponseError(SyncError):
    """Body was not JSON or did not have the expected shape."""


class ErrorCategory(str, Enum):
    CONNECTIVITY = "connectivity"
    SERVER_FAULT = "server_fault"
    BAD_REQUEST = "bad_request"
    INVALID_RESPONSE = "invalid_response"
    TIMEOUT = "timeout"
    GENERIC = "generic"


_USER_MESSAGES = {
    ErrorCategory.CONNECTIVITY: "Could not reach the server. Make sure the backend is running (port 3001).",
    ErrorCategory.SERVER_FAULT: "Server error (500). Check the server logs and the model API key.",
    ErrorCategory.BAD_REQUEST: "Invalid request (400). The prompt may be too long or the image unsupported.",
    ErrorCategory.INVALID_RESPONSE: "The server returned an invalid response (JSON parse error).",
    ErrorCategory.TIMEOUT: "The request timed out. The server is taking too long to respond.",
}


def backoff_delays(
    attempts: int = BOOT_ATTEMPTS,
    initial: float = BOOT_INITIAL_DELAY,
    multiplier: float = BOOT_BACKOFF,
) -> List[float]:
    """Wait scheduled after each failed attempt, in seconds."""
    out: List[float] = []
    delay = initial
    for _ in range(attempts):
        out.append(delay)
        delay *= multiplier
    return out


def classify_error(exc: BaseException) -> ErrorCategory:
    """Reduce any failure from ``process`` to a user-facing category."""
    if isinstance(exc, RequestTimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, TransportError):
        return ErrorCategory.CONNECTIVITY
    if isinstance(exc, InvalidResponseError):
        return ErrorCategory.INVALID_RESPONSE
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        if status == 408 or status == 504:
            return ErrorCategory.TIMEOUT
        if status >= 500:
            return ErrorCategory.SERVER_FAULT
        if status >= 400:
            return ErrorCategory.BAD_REQUEST

    msg = str(exc).lower()
    if "fetch" in msg or "network" in msg or "connection refused" in msg:
        return ErrorCategory.CONNECTIVITY
    if "500" in msg or "server error" in msg:
        return ErrorCategory.SERVER_FAULT
    if "400" in msg or "invalid request" in msg:
        return ErrorCategory.BAD_REQUEST
    if "json" in msg:
        return ErrorCategory.INVALID_RESPONSE
    if "timeout" in msg or "timed out" in msg:
        return ErrorCategory.TIMEOUT
    return ErrorCategory.GENERIC


def user_message(exc: BaseException) -> str:
    category = classify_error(exc)
    return _USER_MESSAGES.get(category) or f"System error: {exc}"


class SyncClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = (3.0, 300.0),
        sleep: Callable[[float], Any] = time.sleep,
        boot_attempts: int = BOOT_ATTEMPTS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        self._sleep = sleep
        self._boot_attempts = boot_attempts

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(method, f"{self.base_url}{path}", timeout=self._timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise RequestTimeoutError(f"Request timeout: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"Network error: {exc}") from exc

    def _fetch_boot(self) -> Optional[ProjectState]:
        resp = self._request("GET", "/api/boot")
        if not resp.ok:
            raise ServerResponseError(
                f"HTTP Error: {resp.status_code} {resp.reason} - {resp.text[:100]}",
                status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise InvalidResponseError("Invalid JSON response") from exc
        if data is None:
            return None
        try:
            return validate_project_state(data)
        except ValidationError as exc:
            raise InvalidResponseError("Boot response is not a valid project state") from exc

    def boot(self) -> Optional[ProjectState]:
        """Fetch the persisted session; ``None`` means start fresh. Never raises."""
        delays = backoff_delays(self._boot_attempts)
        for attempt, delay in enumerate(delays, start=1):
            try:
                return self._fetch_boot()
            except Exception as exc:
                remaining = len(delays) - attempt
                if remaining == 0:
                    logger.error("Giving up on loading the initial state from the server: %s", exc)
                    return None
                logger.warning("Server unreachable, retrying in %.2fs (%d attempts left): %s", delay, remaining, exc)
                self._sleep(delay)
        return None

    def process(self, state: ProjectState) -> List[ProjectFile]:
        """Submit one turn. Single attempt; raises a ``SyncError`` on any failure."""
        resp = self._request("POST", "/api/process", json=state.to_wire())
        if not resp.ok:
            text = resp.text
            msg = f"Server Error: {resp.status_code}"
            try:
                data = resp.json()
                if isinstance(data, dict) and data.get("error"):
                    msg = str(data["error"])
            except ValueError:
                msg += f" - {text[:100]}"
            logger.error("Architect API call failed status=%s: %s", resp.status_code, msg)
            raise ServerResponseError(msg, status=resp.status_code)
        try:
            return _FILES_ADAPTER.validate_python(resp.json())
        except (ValueError, PydanticValidationError) as exc:
            raise InvalidResponseError("Invalid JSON response from /api/process") from exc

    def submit_turn(self, state: ProjectState) -> Tuple[ProjectState, List[ProjectFile]]:
        """Process ``state`` and reconcile the local working copy from the delta."""
        delta = self.process(state)
        return build_next_state(state, delta), delta
