from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional


class FakeModel:
    """Stands in for ModelClient: returns canned text and records requests."""

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.replies = list(replies or ["[]"])
        self.error = error
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]


class FakeLLM:
    """Stands in for ChatOpenAI."""

    def __init__(self, content="[]") -> None:
        self.content = content
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        return SimpleNamespace(content=self.content)
