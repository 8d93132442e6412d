from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class NexusError(Exception):
    """Base class for all errors raised by the architect backend."""


class ValidationError(NexusError):
    """Incoming payload does not match the ProjectState shape."""

    def __init__(self, issues: List[Dict[str, Any]], message: str = "Invalid Request Format") -> None:
        super().__init__(message)
        self.issues = issues


class ConfigurationError(NexusError):
    """A required setting (usually the model credential) is absent."""


class ModelResponseError(NexusError):
    """Model output could not be parsed or failed the ProjectFile shape check."""

    def __init__(self, message: str, bad_indices: Optional[Sequence[int]] = None) -> None:
        super().__init__(message)
        self.bad_indices = list(bad_indices or [])


class StoreError(NexusError):
    """Session persistence failed."""
