"""Conversation session identity. Ids live for one conversation view and are never persisted."""
import secrets
import string
from dataclasses import dataclass

_ALPHABET = string.ascii_lowercase + string.digits
SESSION_SUFFIX_LENGTH = 16


def create_session_id(prefix: str = "session") -> str:
    """Return a fresh id such as ``provider-session-k3j9...``; 16 random base36 chars."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(SESSION_SUFFIX_LENGTH))
    return f"{prefix}-{suffix}" if prefix else suffix


@dataclass(frozen=True)
class ConversationSession:
    session_id: str
    agent_id: str
    agent_alias_id: str
