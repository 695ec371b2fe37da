"""
Aria agents package: resilient model fallback and browser action execution.

This package provides the domain components of the voice browser agent:
model registry and fallback sweeps, error classification, humanized pacing,
the observe-then-act action pipeline and intent parsing.
"""

from aria_agents.models import (
    # Model Registry Models
    ModelDescriptor,
    # Action Models
    NormalizedAction,
    # Error Classification Models
    ErrorKind,
    ClassifiedError,
    # Intent / Conversation Models
    IntentResult,
    ConverseResult,
)
from aria_agents.model_registry import FALLBACK_MODELS, ModelRegistry
from aria_agents.error_classifier import ClassificationRule, ErrorClassifier
from aria_agents.fallback_manager import ModelFallbackManager
from aria_agents.pacer import NullPacer, Pacer
from aria_agents.action_pipeline import ActionExecutionPipeline
from aria_agents.llm_client import CompletionClient
from aria_agents.memory import AgentMemory, MemoryEntry
from aria_agents.intent_parser import IntentParser
from aria_agents.agent import AriaAgent, describe_failure

__all__ = [
    # Model Registry Models
    "ModelDescriptor",
    "FALLBACK_MODELS",
    "ModelRegistry",
    # Action Models
    "NormalizedAction",
    # Error Classification
    "ErrorKind",
    "ClassifiedError",
    "ClassificationRule",
    "ErrorClassifier",
    # Intent / Conversation Models
    "IntentResult",
    "ConverseResult",
    # Components
    "ModelFallbackManager",
    "Pacer",
    "NullPacer",
    "ActionExecutionPipeline",
    "CompletionClient",
    "AgentMemory",
    "MemoryEntry",
    "IntentParser",
    # Agent
    "AriaAgent",
    "describe_failure",
]
