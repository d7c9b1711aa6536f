"""
ConversationController: one turn at a time, transcript kept consistent with what the user sent.

Idle -> (non-blank text) -> Busy: the user message is appended at once, the request is built
and dispatched, the reply normalized. Busy -> Idle always ends in exactly one assistant
message: the reply, the empty-reply sentinel, or the fallback notice when the transport fails.
Submissions while Busy are dropped.
"""
import logging
from collections.abc import Callable

from app.core.errors import TransportFailure
from app.core.normalizer import normalize
from app.core.request_builder import AgentRequestBuilder
from app.core.session import ConversationSession
from app.core.transcript import Message, TranscriptStore
from app.core.transport import AgentTransport

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_TEXT = "Sorry, I couldn't reach the assistant just now. Please try again in a moment."


class ConversationController:
    def __init__(
        self,
        builder: AgentRequestBuilder,
        transport: AgentTransport,
        *,
        greeting: str = "",
        fallback_text: str = DEFAULT_FALLBACK_TEXT,
        session: ConversationSession | None = None,
        session_prefix: str = "session",
        is_alive: Callable[[], bool] | None = None,
    ):
        self.builder = builder
        self.transport = transport
        self.greeting = greeting
        self.fallback_text = fallback_text or DEFAULT_FALLBACK_TEXT
        self.session = session or builder.new_session(session_prefix)
        self.transcript = TranscriptStore()
        # Owned by the hosting view; a False here means the view is gone and late replies are dropped.
        self.is_alive = is_alive or (lambda: True)
        self._loading = False

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def loading(self) -> bool:
        return self._loading

    def messages(self) -> tuple[Message, ...]:
        return self.transcript.all()

    def can_submit(self, text: str) -> bool:
        return bool((text or "").strip()) and not self._loading

    async def submit(self, text: str) -> Message | None:
        """Run one turn. Returns the assistant message, or None if the submission was rejected.

        Never raises for transport problems; those become the fallback message.
        """
        if not self.can_submit(text):
            if self._loading:
                logger.debug("Session %s busy; submission dropped", self.session_id)
            return None

        # No await between the gate check above and this point.
        self._loading = True
        try:
            request = self.builder.build(self.session, text)
            self.transcript.append(self.transcript.new_message("user", request.input_text))
            try:
                raw = await self.transport.invoke(request)
                reply_text = await normalize(raw)
            except TransportFailure:
                logger.warning("Agent turn failed for session %s", self.session_id, exc_info=True)
                reply_text = self.fallback_text
            except Exception:
                logger.exception("Unexpected error during agent turn for session %s", self.session_id)
                reply_text = self.fallback_text

            if not self.is_alive():
                logger.info("Session %s closed mid-turn; discarding reply", self.session_id)
                return None
            reply = self.transcript.new_message("assistant", reply_text)
            self.transcript.append(reply)
            return reply
        finally:
            self._loading = False
