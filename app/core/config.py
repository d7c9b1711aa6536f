"""Application settings from environment."""
import os
from functools import lru_cache

from app.core.request_builder import AgentConfig


@lru_cache
def get_settings() -> "Settings":
    return Settings()


def _clamped_float(name: str, default: float, low: float, high: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        return max(low, min(high, float(raw)))
    except ValueError:
        return default


class Settings:
    """Central config. Load .env in main/run_api before using. Key settings are @property so they read env at access time."""

    # Agent transport: "bedrock" (boto3 agent runtime), "http" (AGENT_ENDPOINT) or "nvidia" (LangChain ChatNVIDIA)
    @property
    def agent_transport(self) -> str:
        return os.getenv("AGENT_TRANSPORT", "bedrock").strip().lower() or "bedrock"

    @property
    def aws_region(self) -> str:
        return os.getenv("AWS_REGION", "us-east-1").strip() or "us-east-1"

    # http transport only: invoke URL template; may use {region}, {agent_id}, {agent_alias_id}, {session_id}
    @property
    def agent_endpoint(self) -> str:
        return os.getenv("AGENT_ENDPOINT", "").strip()

    @property
    def agent_api_key(self) -> str:
        return os.getenv("AGENT_API_KEY", "").strip()

    @property
    def agent_timeout_seconds(self) -> float:
        return _clamped_float("AGENT_TIMEOUT_SECONDS", 60.0, 1.0, 300.0)

    @property
    def agent_id(self) -> str:
        return os.getenv("AGENT_ID", "").strip()

    @property
    def agent_alias_id(self) -> str:
        return os.getenv("AGENT_ALIAS_ID", "").strip()

    def agent_config(self, surface: str) -> AgentConfig:
        """Agent ids for one chat surface: <SURFACE>_AGENT_ID / <SURFACE>_AGENT_ALIAS_ID, else the defaults."""
        prefix = surface.upper()
        return AgentConfig(
            agent_id=os.getenv(f"{prefix}_AGENT_ID", "").strip() or self.agent_id,
            agent_alias_id=os.getenv(f"{prefix}_AGENT_ALIAS_ID", "").strip() or self.agent_alias_id,
            region=self.aws_region,
            endpoint=self.agent_endpoint,
        )

    # Live conversation views kept in memory; idle ones expire, the oldest go first past the cap
    @property
    def max_sessions(self) -> int:
        return int(_clamped_float("MAX_SESSIONS", 1000, 1, 100000))

    @property
    def session_idle_seconds(self) -> float:
        return _clamped_float("SESSION_IDLE_SECONDS", 3600.0, 30.0, 7 * 24 * 3600.0)

    # NVIDIA LLM (properties so they read after .env is loaded)
    @property
    def nvidia_api_key(self) -> str:
        return os.getenv("NVIDIA_API_KEY", "").strip()

    @property
    def nvidia_model(self) -> str:
        return (os.getenv("NVIDIA_MODEL", "") or "").strip()

    @property
    def nvidia_stream(self) -> bool:
        return os.getenv("NVIDIA_STREAM", "1").strip().lower() not in ("0", "false", "no")

    # Supabase (optional): use SERVICE ROLE key (Settings → API), not the anon/publishable key
    @property
    def supabase_url(self) -> str:
        return os.getenv("SUPABASE_URL", "").strip()

    @property
    def supabase_key(self) -> str:
        return (os.getenv("SUPABASE_SERVICE_ROLE_KEY", "") or os.getenv("SUPABASE_KEY", "")).strip()

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    # API
    @property
    def api_title(self) -> str:
        return os.getenv("API_TITLE", "Health Companion API").strip()

    @property
    def api_version(self) -> str:
        return os.getenv("API_VERSION", "0.1.0").strip()

    # CORS: comma-separated origins (e.g. http://localhost:5173) or * for all
    @property
    def cors_origins(self) -> list[str]:
        raw = os.getenv("CORS_ORIGINS", "*").strip()
        if not raw or raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]

    # Dev server auto-reload (python -m app.main, run_api.py); RELOAD=0 in production
    @property
    def reload(self) -> bool:
        return os.getenv("RELOAD", "1").strip().lower() not in ("0", "false", "no")
