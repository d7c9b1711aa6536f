"""Shared fixtures: keep tests off the real environment and the real records store."""
import pytest

from app.core import registry as registry_module
from app.core import supabase_client
from app.core.config import get_settings
from app.core.surfaces import SURFACES

_ENV_KEYS = (
    "AGENT_TRANSPORT",
    "AGENT_ENDPOINT",
    "AGENT_API_KEY",
    "AGENT_TIMEOUT_SECONDS",
    "MAX_SESSIONS",
    "SESSION_IDLE_SECONDS",
    "AGENT_ID",
    "AGENT_ALIAS_ID",
    "AWS_REGION",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_KEY",
    "NVIDIA_MODEL",
    "NVIDIA_STREAM",
    "CORS_ORIGINS",
    "RELOAD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    for name in SURFACES:
        monkeypatch.delenv(f"{name.upper()}_AGENT_ID", raising=False)
        monkeypatch.delenv(f"{name.upper()}_AGENT_ALIAS_ID", raising=False)
    get_settings.cache_clear()
    monkeypatch.setattr(supabase_client, "_supabase", None)
    monkeypatch.setattr(registry_module, "_registry", None)
    yield
    get_settings.cache_clear()
