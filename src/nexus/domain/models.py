from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictStr, model_validator

# Strict field types: wrong JSON types are rejected, never coerced.
Language = Literal["typescript", "javascript", "css", "json", "html"]
Role = Literal["user", "model"]

# Single logical session addressed by the HTTP surface.
DEFAULT_SESSION_ID = "current_session"


class ProjectFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: StrictStr
    content: StrictStr
    language: Language
    # Advisory only; never consulted when merging.
    last_modified: Optional[StrictFloat] = Field(default=None, alias="lastModified")


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    text: StrictStr


class ProjectState(BaseModel):
    """Unit of persistence and of exchange at the HTTP boundary.

    ``files`` is keyed by each file's own ``path``; a key that disagrees with
    its entry is rejected.
    """

    model_config = ConfigDict(populate_by_name=True)

    files: Dict[StrictStr, ProjectFile]
    history: List[ChatMessage]
    prompt: StrictStr
    image_base64: Optional[StrictStr] = Field(default=None, alias="imageBase64")

    @model_validator(mode="after")
    def _keys_match_paths(self) -> "ProjectState":
        mismatched = [key for key, f in self.files.items() if key != f.path]
        if mismatched:
            raise ValueError(f"files keys must equal each file's path; mismatched keys: {', '.join(mismatched)}")
        return self

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def files_to_wire(files: List[ProjectFile]) -> List[dict]:
    return [f.model_dump(by_alias=True, exclude_none=True) for f in files]
