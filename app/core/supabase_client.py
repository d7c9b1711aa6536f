"""Supabase client and the dashboard's records (patients, visits, health data). Requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."""
import logging
from datetime import datetime, timezone
from typing import Any

from app.core.config import get_settings

logger = logging.getLogger(__name__)

PATIENTS_TABLE = "patients"
VISITS_TABLE = "visits"
HEALTH_DATA_TABLE = "health_data"

_supabase = None


class RecordsUnavailable(RuntimeError):
    """Supabase is not configured or could not be reached."""


class RecordsError(RuntimeError):
    """The records service rejected or failed a request."""


def get_supabase_client():
    """Return the Supabase client or None if disabled."""
    global _supabase
    if _supabase is not None:
        return _supabase
    settings = get_settings()
    if not settings.supabase_enabled:
        logger.info(
            "Supabase disabled: SUPABASE_URL and/or SUPABASE_SERVICE_ROLE_KEY not set or empty. "
            "Records endpoints will not be available."
        )
        return None
    try:
        from supabase import create_client
        _supabase = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client connected (records enabled).")
        return _supabase
    except Exception as e:
        logger.warning("Supabase client failed to connect: %s. Records disabled.", e)
        return None


def _require_client():
    client = get_supabase_client()
    if client is None:
        raise RecordsUnavailable("Records store is not configured.")
    return client


def _execute(query, action: str) -> list[dict[str, Any]]:
    try:
        r = query.execute()
    except Exception as e:
        logger.error("Supabase %s failed: %s", action, e)
        raise RecordsError(f"{action} failed") from e
    return list(r.data or [])


def _first(rows: list[dict[str, Any]], action: str) -> dict[str, Any]:
    if not rows:
        raise RecordsError(f"{action} returned no row")
    return rows[0]


def create_patient(patient: dict[str, Any]) -> dict[str, Any]:
    client = _require_client()
    rows = _execute(client.table(PATIENTS_TABLE).insert(patient), "create_patient")
    return _first(rows, "create_patient")


def list_visits(limit: int = 100) -> list[dict[str, Any]]:
    """Visits newest first."""
    client = _require_client()
    query = (
        client.table(VISITS_TABLE)
        .select("*")
        .order("date", desc=True)
        .order("time", desc=True)
        .limit(limit)
    )
    return _execute(query, "list_visits")


def create_visit(visit: dict[str, Any]) -> dict[str, Any]:
    client = _require_client()
    rows = _execute(client.table(VISITS_TABLE).insert(visit), "create_visit")
    return _first(rows, "create_visit")


def log_health_data(entry: dict[str, Any]) -> dict[str, Any]:
    """Insert or replace the entry for (user_id, date); one log per user per day."""
    client = _require_client()
    payload = dict(entry)
    payload.setdefault("created_at", datetime.now(timezone.utc).isoformat())
    rows = _execute(
        client.table(HEALTH_DATA_TABLE).upsert(payload, on_conflict="user_id,date"),
        "log_health_data",
    )
    return _first(rows, "log_health_data")


def list_health_data(user_id: str, limit: int = 30) -> list[dict[str, Any]]:
    """A user's health entries, newest date first."""
    client = _require_client()
    query = (
        client.table(HEALTH_DATA_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("date", desc=True)
        .limit(limit)
    )
    return _execute(query, "list_health_data")
