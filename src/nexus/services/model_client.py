"""Adapter around the external generative model.

The underlying ``ChatOpenAI`` client is built on the first ``generate`` call
and reused afterwards, so the service boots without a credential present.
Gemini is reached through its OpenAI-compatible endpoint by default.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional
import logging

from ..config import ModelSettings
from ..domain.errors import ConfigurationError

LOG = logging.getLogger("nexus.llm")


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    image_base64: Optional[str] = None
    image_mime_type: str = "image/png"

    def to_messages(self) -> List[Dict[str, Any]]:
        if not self.image_base64:
            return [{"role": "user", "content": self.prompt}]
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": self.prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{self.image_mime_type};base64,{self.image_base64}"},
                    },
                ],
            }
        ]


def _default_llm_factory(settings: ModelSettings) -> Any:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        api_key=settings.api_key,
        base_url=settings.base_url,
        model=settings.model,
        temperature=settings.temperature,
    )


def _content_text(res: Any) -> str:
    content = res.content if hasattr(res, "content") else res
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text") or ""))
        return "".join(parts)
    return str(content or "")


class ModelClient:
    def __init__(
        self,
        settings: ModelSettings,
        llm_factory: Optional[Callable[[ModelSettings], Any]] = None,
    ) -> None:
        self._settings = settings
        self._llm_factory = llm_factory or _default_llm_factory
        self._llm: Any = None
        self._lock = Lock()

    @property
    def settings(self) -> ModelSettings:
        return self._settings

    def _get_llm(self) -> Any:
        if self._llm is not None:
            return self._llm
        with self._lock:
            if self._llm is None:
                if not self._settings.api_key:
                    raise ConfigurationError(
                        f"Invalid configuration: model credential missing ({self._settings.api_key_env})."
                    )
                LOG.info(
                    "Using model provider name=%s model=%s base_url=%s",
                    self._settings.provider,
                    self._settings.model,
                    self._settings.base_url,
                )
                self._llm = self._llm_factory(self._settings)
        return self._llm

    def generate(self, request: GenerationRequest) -> str:
        llm = self._get_llm()
        LOG.debug(
            "llm_invoke",
            extra={"model": self._settings.model, "chars": len(request.prompt), "image": bool(request.image_base64)},
        )
        res = llm.invoke(request.to_messages())
        return _content_text(res)


@dataclass(frozen=True)
class ModelClientResult:
    """Outcome of building the model client at startup.

    Exactly one of ``client`` and ``error`` is set.
    """

    client: Optional[ModelClient] = None
    error: Optional[ConfigurationError] = None

    @property
    def ok(self) -> bool:
        return self.client is not None

    def unwrap(self) -> ModelClient:
        if self.client is None:
            raise self.error or ConfigurationError("Model client not configured.")
        return self.client


def build_model_client(
    settings: ModelSettings,
    llm_factory: Optional[Callable[[ModelSettings], Any]] = None,
) -> ModelClientResult:
    if not settings.api_key:
        return ModelClientResult(
            error=ConfigurationError(f"Invalid configuration: model credential missing ({settings.api_key_env}).")
        )
    return ModelClientResult(client=ModelClient(settings, llm_factory=llm_factory))
