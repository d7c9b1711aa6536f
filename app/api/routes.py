"""FastAPI routes: chat sessions and dashboard records."""
from fastapi import APIRouter, HTTPException

from app.core import supabase_client as records
from app.core.conversation import ConversationController
from app.core.registry import UnknownSurface, get_registry
from app.core.surfaces import SURFACES, get_surface
from app.core.transcript import Message
from app.models.schemas import (
    ChatRequest,
    ChatResponse,
    HealthDataIn,
    MessageOut,
    OpenSessionRequest,
    PatientIn,
    SessionOut,
    SurfaceOut,
    VisitIn,
)

router = APIRouter(prefix="/api", tags=["agent"])


def _message_out(m: Message) -> MessageOut:
    return MessageOut(id=m.id, sender=m.sender, text=m.text, created_at=m.created_at)


def _session_out(surface: str, controller: ConversationController) -> SessionOut:
    return SessionOut(
        session_id=controller.session_id,
        surface=surface,
        greeting=controller.greeting,
        loading=controller.loading,
        messages=[_message_out(m) for m in controller.messages()],
    )


def _controller_or_404(session_id: str) -> ConversationController:
    controller = get_registry().get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Unknown or closed session")
    return controller


@router.get("/surfaces", response_model=list[SurfaceOut])
def list_surfaces() -> list[SurfaceOut]:
    return [SurfaceOut(name=s.name, title=s.title, greeting=s.greeting) for s in SURFACES.values()]


@router.post("/sessions", response_model=SessionOut, status_code=201)
def open_session(req: OpenSessionRequest) -> SessionOut:
    """Open a conversation view on one chat surface. The session lives until closed, idle-expired, or evicted past the session cap."""
    surface = get_surface(req.surface)
    if surface is None:
        raise HTTPException(status_code=404, detail=f"Unknown chat surface: {req.surface}")
    try:
        controller = get_registry().open(surface.name)
    except UnknownSurface:
        raise HTTPException(status_code=404, detail=f"Unknown chat surface: {req.surface}")
    return _session_out(surface.name, controller)


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str) -> SessionOut:
    controller = _controller_or_404(session_id)
    return _session_out(get_registry().surface_of(session_id), controller)


@router.post("/sessions/{session_id}/messages", response_model=ChatResponse)
async def send_message(session_id: str, req: ChatRequest) -> ChatResponse:
    """Send a message and wait for the agent reply (or the fallback notice if the agent is unreachable)."""
    controller = _controller_or_404(session_id)
    if controller.loading:
        raise HTTPException(status_code=409, detail="A reply is still in progress for this session")
    reply = await controller.submit(req.message)
    if reply is None:
        if get_registry().get(session_id) is None:
            raise HTTPException(status_code=410, detail="Session was closed before the reply arrived")
        raise HTTPException(status_code=409, detail="Message was not accepted")
    return ChatResponse(
        session_id=controller.session_id,
        reply=_message_out(reply),
        messages=[_message_out(m) for m in controller.messages()],
    )


@router.delete("/sessions/{session_id}", status_code=204)
def close_session(session_id: str) -> None:
    if not get_registry().close(session_id):
        raise HTTPException(status_code=404, detail="Unknown or closed session")


def _records_call(fn, *args):
    try:
        return fn(*args)
    except records.RecordsUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except records.RecordsError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/patients", status_code=201)
def create_patient(patient: PatientIn) -> dict:
    return _records_call(records.create_patient, patient.model_dump(mode="json"))


@router.get("/visits")
def list_visits() -> list[dict]:
    return _records_call(records.list_visits)


@router.post("/visits", status_code=201)
def create_visit(visit: VisitIn) -> dict:
    return _records_call(records.create_visit, visit.model_dump(mode="json"))


@router.get("/health-data/{user_id}")
def list_health_data(user_id: str) -> list[dict]:
    return _records_call(records.list_health_data, user_id)


@router.post("/health-data", status_code=201)
def log_health_data(entry: HealthDataIn) -> dict:
    return _records_call(records.log_health_data, entry.model_dump(mode="json", exclude_none=True))


@router.get("/health")
def health() -> dict:
    """Health check."""
    return {"status": "ok"}
