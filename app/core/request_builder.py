"""Turn a user utterance plus the session into a transport-ready agent request."""
from dataclasses import dataclass

from app.core.errors import InvalidInput
from app.core.session import ConversationSession, create_session_id


@dataclass(frozen=True)
class AgentConfig:
    """Where a chat surface's agent lives. Built from settings, injected, never mutated."""

    agent_id: str
    agent_alias_id: str
    region: str = "us-east-1"
    endpoint: str = ""


@dataclass(frozen=True)
class AgentRequest:
    agent_id: str
    agent_alias_id: str
    session_id: str
    input_text: str

    def to_payload(self) -> dict:
        """Wire form (camelCase keys, as the agent runtime expects)."""
        return {
            "agentId": self.agent_id,
            "agentAliasId": self.agent_alias_id,
            "sessionId": self.session_id,
            "inputText": self.input_text,
        }


class AgentRequestBuilder:
    def __init__(self, config: AgentConfig):
        self.config = config

    def new_session(self, prefix: str = "session") -> ConversationSession:
        return ConversationSession(
            session_id=create_session_id(prefix),
            agent_id=self.config.agent_id,
            agent_alias_id=self.config.agent_alias_id,
        )

    def build(self, session: ConversationSession, user_text: str) -> AgentRequest:
        text = (user_text or "").strip()
        if not text:
            raise InvalidInput("Message is empty.")
        return AgentRequest(
            agent_id=session.agent_id,
            agent_alias_id=session.agent_alias_id,
            session_id=session.session_id,
            input_text=text,
        )
