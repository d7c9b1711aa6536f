"""Live conversation views for this process. Nothing here is persisted; memory is bounded by idle expiry and a session cap."""
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from app.core.config import Settings, get_settings
from app.core.conversation import ConversationController
from app.core.request_builder import AgentConfig, AgentRequestBuilder
from app.core.surfaces import ChatSurface, get_surface
from app.core.transport import AgentTransport, build_transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[Settings, AgentConfig], AgentTransport]


class UnknownSurface(KeyError):
    pass


@dataclass
class _Entry:
    controller: ConversationController
    surface: str
    last_seen: float


class ConversationRegistry:
    def __init__(
        self,
        settings: Settings | None = None,
        transport_factory: TransportFactory | None = None,
        *,
        max_sessions: int | None = None,
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.transport_factory = transport_factory or build_transport
        self.max_sessions = max_sessions or self.settings.max_sessions
        self.idle_seconds = idle_seconds or self.settings.session_idle_seconds
        self.clock = clock
        # Least recently used first
        self._sessions: OrderedDict[str, _Entry] = OrderedDict()
        # One transport per surface, shared by that surface's sessions
        self._transports: dict[str, AgentTransport] = {}

    def _transport_for(self, surface: ChatSurface, config: AgentConfig) -> AgentTransport:
        transport = self._transports.get(surface.name)
        if transport is None:
            transport = self.transport_factory(self.settings, config)
            self._transports[surface.name] = transport
        return transport

    def _is_open(self, session_id: str, controller: ConversationController) -> bool:
        entry = self._sessions.get(session_id)
        return entry is not None and entry.controller is controller

    def _evict(self) -> None:
        now = self.clock()
        expired = [
            sid for sid, entry in self._sessions.items()
            if now - entry.last_seen >= self.idle_seconds and not entry.controller.loading
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Expired %d idle conversation(s)", len(expired))
        while len(self._sessions) >= self.max_sessions:
            sid, _ = self._sessions.popitem(last=False)
            logger.info("Session cap reached; evicted conversation %s", sid)

    def open(self, surface_name: str) -> ConversationController:
        surface = get_surface(surface_name)
        if surface is None:
            raise UnknownSurface(surface_name)
        config = self.settings.agent_config(surface.name)
        if not config.agent_id:
            logger.warning("No agent id configured for surface %r (set %s_AGENT_ID or AGENT_ID)",
                           surface.name, surface.name.upper())
        self._evict()
        builder = AgentRequestBuilder(config)
        session = builder.new_session(f"{surface.name}-session")
        session_id = session.session_id
        controller = ConversationController(
            builder,
            self._transport_for(surface, config),
            greeting=surface.greeting,
            fallback_text=surface.fallback_text,
            session=session,
            is_alive=lambda: self._is_open(session_id, controller),
        )
        self._sessions[session_id] = _Entry(controller, surface.name, self.clock())
        logger.info("Opened %s conversation %s", surface.name, session_id)
        return controller

    def get(self, session_id: str) -> ConversationController | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        if self.clock() - entry.last_seen >= self.idle_seconds and not entry.controller.loading:
            del self._sessions[session_id]
            logger.info("Conversation %s expired", session_id)
            return None
        entry.last_seen = self.clock()
        self._sessions.move_to_end(session_id)
        return entry.controller

    def surface_of(self, session_id: str) -> str | None:
        entry = self._sessions.get(session_id)
        return entry.surface if entry is not None else None

    def close(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        logger.info("Closed conversation %s", session_id)
        return True

    def __len__(self) -> int:
        return len(self._sessions)

    async def aclose(self) -> None:
        # Drop sessions first so turns still in flight discard their replies
        self._sessions.clear()
        for transport in self._transports.values():
            await transport.aclose()
        self._transports.clear()


_registry: ConversationRegistry | None = None


def get_registry() -> ConversationRegistry:
    global _registry
    if _registry is None:
        _registry = ConversationRegistry()
    return _registry
