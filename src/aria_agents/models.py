"""
Data models for the Aria resilience layer.

This module defines the core data structures shared by the fallback manager,
the action pipeline and the intent parser:
- Model descriptors (ModelDescriptor)
- Caller requests (NormalizedAction)
- Error classification (ErrorKind, ClassifiedError)
- Parsed intents and conversation results (IntentResult, ConverseResult)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from aria_runtime.page import ObservedElement
from aria_runtime.session_cache import PageContext
from aria_runtime.state import HistoryItem


# ============================================================================
# Model Registry Models
# ============================================================================

@dataclass(frozen=True)
class ModelDescriptor:
    """
    One candidate LLM backend. Identity is ``name``.

    Attributes:
        name: Provider-side model identifier (e.g. "deepseek/deepseek-chat-v3.1:free")
        provider: Provider the model is served by (e.g. "openrouter")
        display_name: Human readable name used in logs
        max_retries: Attempts allowed for this model within one fallback sweep (>= 1)
    """
    name: str
    provider: str
    display_name: str
    max_retries: int = 1

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1 for {self.name}")


# ============================================================================
# Action Models
# ============================================================================

ACTION_KINDS = ("navigate", "click", "type", "extract", "press")


@dataclass(frozen=True)
class NormalizedAction:
    """
    A single browser action requested by a caller.

    Attributes:
        kind: One of "navigate", "click", "type", "extract", "press"
        target: URL, search query, element description or key name
        value: Text to type (only for "type")
    """
    kind: str
    target: str
    value: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "NormalizedAction":
        """Build an action from the ``{"action", "target", "value"}`` wire shape."""
        kind = str(payload.get("action") or payload.get("kind") or "").strip().lower()
        target = payload.get("target")
        value = payload.get("value")
        return cls(
            kind=kind,
            target="" if target is None else str(target),
            value=None if value is None else str(value),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"action": self.kind, "target": self.target}
        if self.value is not None:
            payload["value"] = self.value
        return payload


# ============================================================================
# Error Classification Models
# ============================================================================

class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    AUTH_FAILURE = "auth_failure"
    TEMPORARY_INFRA = "temporary_infra"
    BOT_DETECTED = "bot_detected"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class ClassifiedError:
    """
    Derived view of a raised error. Never stored.

    Attributes:
        kind: Primary classification used for retry decisions
        raw: The underlying exception
        bot_detected: Whether the message also carries an automated-traffic signal
    """
    kind: ErrorKind
    raw: BaseException
    bot_detected: bool = False

    @property
    def is_temporary(self) -> bool:
        return self.kind in (ErrorKind.RATE_LIMITED, ErrorKind.TEMPORARY_INFRA)

    @property
    def is_model_related(self) -> bool:
        return self.kind in (ErrorKind.RATE_LIMITED, ErrorKind.AUTH_FAILURE)


# ============================================================================
# Intent / Conversation Models
# ============================================================================

@dataclass
class IntentResult:
    """
    Parsed user intent: either an ordered action plan or a clarifying question.

    Attributes:
        actions: Actions to execute in order (empty for clarifications)
        question: Clarifying question to ask the user, if any
        model_name: Model that produced the intent
        raw: Raw JSON text returned by the model
    """
    actions: List[NormalizedAction] = field(default_factory=list)
    question: Optional[str] = None
    model_name: Optional[str] = None
    raw: str = ""

    @property
    def is_clarification(self) -> bool:
        return self.question is not None


@dataclass
class ConverseResult:
    type: str
    result: Optional[str] = None
    question: Optional[str] = None
    history: List[HistoryItem] = field(default_factory=list)


__all__ = [
    "ModelDescriptor",
    "ACTION_KINDS",
    "NormalizedAction",
    "ObservedElement",
    "PageContext",
    "ErrorKind",
    "ClassifiedError",
    "IntentResult",
    "ConverseResult",
]
