import pytest

from feedback_ai.core.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch):
    # Tests must never reach a real classifier: default to gemini with no key
    # (disabled gateway) unless a test injects its own provider.
    monkeypatch.setenv("AI_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("AI_DEBUG_STORE_RAW", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
