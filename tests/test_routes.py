"""HTTP surface: chat sessions end to end with an in-process agent, records with a mocked Supabase."""
import asyncio
from unittest.mock import MagicMock

import httpx

import pytest
from fastapi.testclient import TestClient

from app.core import registry as registry_module
from app.core import supabase_client
from app.core.config import Settings
from app.core.errors import TransportFailure
from app.core.registry import ConversationRegistry
from app.core.transport import AgentTransport
from app.main import create_app


class ScriptedTransport(AgentTransport):
    def __init__(self, config):
        self.config = config

    async def invoke(self, request):
        if request.input_text == "fail":
            raise TransportFailure("agent unreachable")
        if request.input_text == "stream":
            async def deltas():
                for piece in ("str", "eamed"):
                    yield {"textDelta": piece}
            return {"deltas": deltas()}
        return {"outputText": f"echo: {request.input_text}"}


@pytest.fixture
def client(monkeypatch):
    registry = ConversationRegistry(Settings(), transport_factory=lambda settings, config: ScriptedTransport(config))
    monkeypatch.setattr(registry_module, "_registry", registry)
    return TestClient(create_app())


def _open(client, surface="patient"):
    resp = client.post("/api/sessions", json={"surface": surface})
    assert resp.status_code == 201
    return resp.json()


class TestChatSessions:
    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_list_surfaces(self, client):
        names = [s["name"] for s in client.get("/api/surfaces").json()]
        assert names == ["patient", "provider", "learner", "quiz", "visits"]

    def test_open_session_returns_greeting_and_empty_transcript(self, client):
        body = _open(client, "learner")
        assert body["session_id"].startswith("learner-session-")
        assert body["surface"] == "learner"
        assert "Learner Assistant" in body["greeting"]
        assert body["messages"] == []
        assert body["loading"] is False

    def test_open_unknown_surface(self, client):
        assert client.post("/api/sessions", json={"surface": "billing"}).status_code == 404

    def test_turn_adds_two_messages(self, client):
        session_id = _open(client)["session_id"]
        resp = client.post(f"/api/sessions/{session_id}/messages", json={"message": " hi "})
        assert resp.status_code == 200
        body = resp.json()
        assert body["reply"]["text"] == "echo: hi"
        assert [(m["sender"], m["text"]) for m in body["messages"]] == [("user", "hi"), ("assistant", "echo: hi")]

        state = client.get(f"/api/sessions/{session_id}").json()
        assert len(state["messages"]) == 2
        assert state["surface"] == "patient"
        assert state["loading"] is False

    def test_streamed_reply(self, client):
        session_id = _open(client)["session_id"]
        resp = client.post(f"/api/sessions/{session_id}/messages", json={"message": "stream"})
        assert resp.json()["reply"]["text"] == "streamed"

    def test_transport_failure_gives_fallback_not_error(self, client):
        session_id = _open(client, "learner")["session_id"]
        resp = client.post(f"/api/sessions/{session_id}/messages", json={"message": "fail"})
        assert resp.status_code == 200
        assert resp.json()["reply"]["text"] == "Sorry, the Learner Agent failed to respond. Try again later."

    def test_blank_message_rejected(self, client):
        session_id = _open(client)["session_id"]
        resp = client.post(f"/api/sessions/{session_id}/messages", json={"message": "   "})
        assert resp.status_code == 422
        assert client.get(f"/api/sessions/{session_id}").json()["messages"] == []

    def test_close_session(self, client):
        session_id = _open(client)["session_id"]
        assert client.delete(f"/api/sessions/{session_id}").status_code == 204
        assert client.get(f"/api/sessions/{session_id}").status_code == 404
        assert client.post(f"/api/sessions/{session_id}/messages", json={"message": "hi"}).status_code == 404
        assert client.delete(f"/api/sessions/{session_id}").status_code == 404


class GatedTransport(AgentTransport):
    """Holds every turn until ``release`` is set."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def invoke(self, request):
        self.entered.set()
        await self.release.wait()
        return {"outputText": f"echo: {request.input_text}"}


class TestConcurrentTurns:
    """Two requests on one session at once, served in-process over ASGI."""

    @staticmethod
    def _scenario(monkeypatch, steps):
        async def run():
            transport = GatedTransport()
            registry = ConversationRegistry(Settings(), transport_factory=lambda settings, config: transport)
            monkeypatch.setattr(registry_module, "_registry", registry)
            async with httpx.AsyncClient(
                transport=httpx.ASGITransport(app=create_app()), base_url="http://test"
            ) as http:
                session_id = (await http.post("/api/sessions", json={"surface": "patient"})).json()["session_id"]
                first = asyncio.create_task(
                    http.post(f"/api/sessions/{session_id}/messages", json={"message": "first"})
                )
                await transport.entered.wait()
                return await steps(http, transport, session_id, first)

        return asyncio.run(run())

    def test_second_message_while_busy_is_409(self, monkeypatch):
        async def steps(http, transport, session_id, first):
            busy = await http.post(f"/api/sessions/{session_id}/messages", json={"message": "second"})
            state = (await http.get(f"/api/sessions/{session_id}")).json()
            transport.release.set()
            done = await first
            return busy, state, done

        busy, state, done = self._scenario(monkeypatch, steps)
        assert busy.status_code == 409
        assert state["loading"] is True
        assert [m["text"] for m in state["messages"]] == ["first"]
        assert done.status_code == 200
        assert [m["text"] for m in done.json()["messages"]] == ["first", "echo: first"]

    def test_close_mid_turn_is_410(self, monkeypatch):
        async def steps(http, transport, session_id, first):
            closed = await http.delete(f"/api/sessions/{session_id}")
            transport.release.set()
            done = await first
            after = await http.get(f"/api/sessions/{session_id}")
            return closed, done, after

        closed, done, after = self._scenario(monkeypatch, steps)
        assert closed.status_code == 204
        assert done.status_code == 410
        assert after.status_code == 404


class TestRecords:
    def test_records_disabled_without_supabase(self, client):
        assert client.get("/api/visits").status_code == 503

    def test_create_patient(self, client, monkeypatch):
        supabase = MagicMock()
        supabase.table.return_value.insert.return_value.execute.return_value.data = [{"id": 7, "first_name": "Ada"}]
        monkeypatch.setattr(supabase_client, "_supabase", supabase)

        resp = client.post(
            "/api/patients",
            json={"first_name": "Ada", "last_name": "Lovelace", "age": 36, "gender": "female"},
        )
        assert resp.status_code == 201
        assert resp.json() == {"id": 7, "first_name": "Ada"}
        supabase.table.assert_called_with("patients")
        payload = supabase.table.return_value.insert.call_args.args[0]
        assert payload["last_name"] == "Lovelace"
        assert payload["blood_group"] is None

    def test_patient_validation(self, client):
        resp = client.post("/api/patients", json={"first_name": "Ada", "last_name": "", "age": 36, "gender": "f"})
        assert resp.status_code == 422

    def test_list_visits(self, client, monkeypatch):
        supabase = MagicMock()
        ordered = supabase.table.return_value.select.return_value.order.return_value.order.return_value
        ordered.limit.return_value.execute.return_value.data = [{"id": 1, "patient_name": "Ada"}]
        monkeypatch.setattr(supabase_client, "_supabase", supabase)

        resp = client.get("/api/visits")
        assert resp.status_code == 200
        assert resp.json() == [{"id": 1, "patient_name": "Ada"}]
        supabase.table.return_value.select.return_value.order.assert_called_with("date", desc=True)

    def test_create_visit_serializes_date(self, client, monkeypatch):
        supabase = MagicMock()
        supabase.table.return_value.insert.return_value.execute.return_value.data = [{"id": 3}]
        monkeypatch.setattr(supabase_client, "_supabase", supabase)

        resp = client.post(
            "/api/visits",
            json={"patient_name": "Ada", "date": "2026-10-20", "time": "09:30", "reason": "follow-up"},
        )
        assert resp.status_code == 201
        payload = supabase.table.return_value.insert.call_args.args[0]
        assert payload["date"] == "2026-10-20"
        assert payload["location"] == ""

    def test_log_health_data_upserts_per_day(self, client, monkeypatch):
        supabase = MagicMock()
        supabase.table.return_value.upsert.return_value.execute.return_value.data = [{"id": 9}]
        monkeypatch.setattr(supabase_client, "_supabase", supabase)

        resp = client.post(
            "/api/health-data",
            json={"user_id": "u1", "date": "2026-10-19", "mood_score": 7, "sleep_hours": 6.5},
        )
        assert resp.status_code == 201
        args, kwargs = supabase.table.return_value.upsert.call_args
        assert kwargs["on_conflict"] == "user_id,date"
        assert args[0]["mood_score"] == 7
        assert "stress_level" not in args[0]
        assert "created_at" in args[0]

    def test_health_score_out_of_range(self, client):
        resp = client.post("/api/health-data", json={"user_id": "u1", "date": "2026-10-19", "mood_score": 11})
        assert resp.status_code == 422

    def test_store_error_is_bad_gateway(self, client, monkeypatch):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value.eq.return_value.order.return_value.limit.return_value
        query.execute.side_effect = RuntimeError("connection reset")
        monkeypatch.setattr(supabase_client, "_supabase", supabase)

        resp = client.get("/api/health-data/u1")
        assert resp.status_code == 502
