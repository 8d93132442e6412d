import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Each test starts without a memoised store/orchestrator or model credentials."""
    from src.nexus.api import deps
    from src.nexus.infrastructure import session_store

    monkeypatch.setattr(session_store, "_store", None, raising=False)
    monkeypatch.setattr(deps, "_orchestrator", None, raising=False)
    for key in ("GEMINI_API_KEY", "OPENAI_API_KEY", "NEXUS_MODEL_PROVIDER", "NEXUS_SESSION_STORE_IMPL"):
        monkeypatch.delenv(key, raising=False)
