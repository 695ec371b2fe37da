"""
Short-term interaction memory for intent parsing.

Keeps the most recent interactions (transcript, parsed action, result summary, URL)
and renders them as a compact context block for the intent prompt.
"""

from collections import deque
from dataclasses import dataclass
import json
import time
from typing import Any, Deque, Dict, List, Optional


@dataclass
class MemoryEntry:
    """
    One remembered interaction.

    Attributes:
        transcript: What the user said (or a synthetic description of an action)
        parsed_action: The action that was executed, in wire shape
        result_summary: Human-readable result of the action
        url: Page URL after the action, when known
        timestamp: Unix timestamp when the entry was recorded
    """
    transcript: str
    parsed_action: Optional[Dict[str, Any]] = None
    result_summary: Optional[str] = None
    url: Optional[str] = None
    timestamp: float = 0.0


class AgentMemory:
    """
    Bounded store of recent interactions.

    Once ``limit`` entries are stored, adding a new entry evicts the oldest one.
    """

    def __init__(self, limit: int = 15):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self._items: Deque[MemoryEntry] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, entry: MemoryEntry) -> None:
        if not entry.timestamp:
            entry.timestamp = time.time()
        self._items.append(entry)

    def get_recent(self, count: Optional[int] = None) -> List[MemoryEntry]:
        count = self.limit if count is None else count
        if count <= 0:
            return []
        return list(self._items)[-count:]

    def clear(self) -> None:
        self._items.clear()


def summarize_for_prompt(entries: List[MemoryEntry], max_chars: int = 800) -> str:
    """
    Render entries one per line, keeping the most recent lines that fit in ``max_chars``.

    Args:
        entries: Entries oldest first
        max_chars: Maximum length of the returned block

    Returns:
        Newline separated summary, oldest kept line first (empty if nothing fits)
    """
    lines = []
    for index, entry in enumerate(entries):
        parts = [f"#{index + 1}", f'said: "{entry.transcript}"']
        if entry.parsed_action:
            parts.append(f"action: {json.dumps(entry.parsed_action)}")
        if entry.result_summary:
            parts.append(f"result: {entry.result_summary}")
        if entry.url:
            parts.append(f"url: {entry.url}")
        lines.append(" | ".join(parts))

    out = ""
    for line in reversed(lines):
        candidate = f"{line}\n{out}" if out else line
        if len(candidate) > max_chars:
            break
        out = candidate
    return out
