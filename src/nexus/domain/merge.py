from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

from .models import ChatMessage, ProjectFile, ProjectState


def merge_files(base: Mapping[str, ProjectFile], delta: Iterable[ProjectFile]) -> Dict[str, ProjectFile]:
    """Overwrite-by-path union; paths absent from ``delta`` are left as they were."""
    merged = dict(base)
    for f in delta:
        merged[f.path] = f
    return merged


def summarize_turn(count: int) -> str:
    return f"Updated {count} file{'s' if count != 1 else ''}."


def build_next_state(state: ProjectState, delta: List[ProjectFile]) -> ProjectState:
    history = list(state.history)
    history.append(ChatMessage(role="user", text=state.prompt))
    history.append(ChatMessage(role="model", text=summarize_turn(len(delta))))
    return ProjectState(files=merge_files(state.files, delta), history=history, prompt="")
