"""Structural gates for untrusted payloads.

Two boundaries exist: the HTTP request body (checked before anything reaches
the orchestrator) and the model's response (checked before anything is
merged). Both reject rather than coerce.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ModelResponseError, ValidationError
from .models import ProjectFile, ProjectState

_FILE_ADAPTER = TypeAdapter(ProjectFile)


def _issues(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for err in exc.errors(include_url=False):
        out.append(
            {
                "path": [str(part) for part in err.get("loc", ())],
                "message": err.get("msg", "Invalid value"),
                "code": err.get("type", "invalid"),
            }
        )
    return out


def validate_project_state(payload: Any) -> ProjectState:
    """Return a trusted ProjectState or raise ValidationError listing field issues."""
    try:
        return ProjectState.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(_issues(exc)) from exc


def validate_model_files(items: Any) -> List[ProjectFile]:
    """Check every element of a decoded model response against ProjectFile.

    All-or-nothing: a single bad element fails the whole response.
    """
    if not isinstance(items, list):
        raise ModelResponseError("Model response is not a JSON array of file objects.")
    files: List[ProjectFile] = []
    bad: List[int] = []
    for idx, item in enumerate(items):
        try:
            files.append(_FILE_ADAPTER.validate_python(item))
        except PydanticValidationError:
            bad.append(idx)
    if bad:
        listed = ", ".join(str(i) for i in bad)
        raise ModelResponseError(f"Model response contains invalid file entries at indices: {listed}", bad)
    return files
