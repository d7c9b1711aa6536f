"""Messages and the append-only transcript of one conversation view."""
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

Sender = Literal["user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    id: str
    sender: Sender
    text: str
    created_at: datetime = field(default_factory=_utcnow)


class TranscriptStore:
    """Ordered, append-only. Owned by exactly one ConversationController; not shared."""

    def __init__(self):
        self._messages: list[Message] = []
        self._ids = itertools.count(1)

    def new_message(self, sender: Sender, text: str) -> Message:
        """Create a message with an id unique within this transcript (not yet appended)."""
        return Message(id=f"{sender}-{next(self._ids)}", sender=sender, text=text)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def all(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
