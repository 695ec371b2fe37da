"""
Runtime layer for the Aria browser agent.

Configuration, logging, the remote browser provider and the process-wide
session cache live here; agent logic lives in ``aria_agents``.
"""

from aria_runtime.artifacts import Artifact, ArtifactStore
from aria_runtime.browser import BrowserbaseProvider, RemoteBrowserSession, SessionInfo, SessionOptions
from aria_runtime.config import BrowserSettings
from aria_runtime.errors import (
    ActionError,
    AllModelsFailedError,
    AriaError,
    ConfigurationError,
    IntentParseError,
    PlanFeatureUnavailableError,
    SessionError,
    SessionUnavailableError,
)
from aria_runtime.logging_config import configure_logging
from aria_runtime.page import AutomationPage, ObservedElement
from aria_runtime.session_cache import PageContext, SessionLifecycleCache, SessionState
from aria_runtime.state import ConversationHistory, HistoryItem

__all__ = [
    "Artifact",
    "ArtifactStore",
    "BrowserbaseProvider",
    "RemoteBrowserSession",
    "SessionInfo",
    "SessionOptions",
    "BrowserSettings",
    "ActionError",
    "AllModelsFailedError",
    "AriaError",
    "ConfigurationError",
    "IntentParseError",
    "PlanFeatureUnavailableError",
    "SessionError",
    "SessionUnavailableError",
    "configure_logging",
    "AutomationPage",
    "ObservedElement",
    "PageContext",
    "SessionLifecycleCache",
    "SessionState",
    "ConversationHistory",
    "HistoryItem",
]
