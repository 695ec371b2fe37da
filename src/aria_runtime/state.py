"""In-memory conversation history shared by every entry point of the process."""

from dataclasses import dataclass, field
import datetime
from typing import Dict, List, Optional

import pytz


ROLES = ("user", "agent")


def utc_timestamp() -> str:
    return datetime.datetime.now(pytz.utc).isoformat()


@dataclass
class HistoryItem:
    role: str
    content: str
    timestamp: str


@dataclass
class ConversationContext:
    history: List[HistoryItem] = field(default_factory=list)


class ConversationHistory:
    """Timestamped user/agent history, keyed by conversation id."""

    def __init__(self):
        self._store: Dict[str, ConversationContext] = {}

    def context(self, conversation_id: str) -> ConversationContext:
        if conversation_id not in self._store:
            self._store[conversation_id] = ConversationContext()
        return self._store[conversation_id]

    def append(
        self,
        conversation_id: str,
        role: str,
        content: str,
        timestamp: Optional[str] = None,
    ) -> HistoryItem:
        if role not in ROLES:
            raise ValueError(f"Unknown history role: {role}")
        item = HistoryItem(role=role, content=content, timestamp=timestamp or utc_timestamp())
        self.context(conversation_id).history.append(item)
        return item

    def get(self, conversation_id: str) -> List[HistoryItem]:
        context = self._store.get(conversation_id)
        return list(context.history) if context else []

    def clear(self, conversation_id: str) -> None:
        self._store.pop(conversation_id, None)
