"""
AriaAgent: composition root for the voice browser agent.

Owns exactly one fallback manager, one session cache and one action pipeline, and
wires them together for the conversation flow: transcript in, parsed intent, actions
executed against the remote browser, summary out.
"""

import base64
import logging
from typing import Optional, Tuple

from aria_runtime.artifacts import ArtifactStore
from aria_runtime.browser import BrowserbaseProvider
from aria_runtime.config import BrowserSettings
from aria_runtime.errors import AllModelsFailedError
from aria_runtime.session_cache import SessionLifecycleCache
from aria_runtime.state import ConversationHistory

from aria_agents.action_pipeline import ActionExecutionPipeline
from aria_agents.error_classifier import ErrorClassifier
from aria_agents.fallback_manager import ModelFallbackManager
from aria_agents.intent_parser import IntentParser
from aria_agents.llm_client import CompletionClient
from aria_agents.memory import AgentMemory, MemoryEntry
from aria_agents.model_registry import ModelRegistry
from aria_agents.models import ConverseResult, ErrorKind, NormalizedAction
from aria_agents.pacer import Pacer


logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "All AI models are currently rate-limited. Please try again in a few moments."
DEGRADED_MESSAGE = "The service is temporarily degraded: no AI model is available right now. Please try again shortly."
INTERNAL_ERROR_MESSAGE = "An internal error occurred."


def describe_failure(
    error: BaseException,
    classifier: Optional[ErrorClassifier] = None,
) -> Tuple[str, int]:
    """
    Map an error to a user-facing message and HTTP-style status.

    Capacity exhaustion is kept distinguishable from genuine bugs so operators can
    tell them apart.
    """
    if isinstance(error, AllModelsFailedError):
        classifier = classifier or ErrorClassifier()
        last = error.last_error
        if last is not None and classifier.classify(last).kind == ErrorKind.RATE_LIMITED:
            return RATE_LIMITED_MESSAGE, 429
        return DEGRADED_MESSAGE, 503
    return f"{INTERNAL_ERROR_MESSAGE} {error}".strip(), 500


class AriaAgent:
    """
    Voice-driven browser agent.

    Example:
        agent = AriaAgent.from_settings(BrowserSettings.from_env())
        result = await agent.converse("demo", "search for the weather in Paris")
        await agent.aclose()
    """

    def __init__(
        self,
        fallback_manager: ModelFallbackManager,
        session_cache: SessionLifecycleCache,
        pipeline: ActionExecutionPipeline,
        intent_parser: IntentParser,
        memory: AgentMemory,
        history: ConversationHistory,
        artifacts: ArtifactStore,
    ):
        self.fallback_manager = fallback_manager
        self.session_cache = session_cache
        self.pipeline = pipeline
        self.intent_parser = intent_parser
        self.memory = memory
        self.history = history
        self.artifacts = artifacts

    @classmethod
    def from_settings(
        cls,
        settings: BrowserSettings,
        registry: Optional[ModelRegistry] = None,
        completion_client: Optional[CompletionClient] = None,
        provider: Optional[BrowserbaseProvider] = None,
        pacer: Optional[Pacer] = None,
    ) -> "AriaAgent":
        """Build the full object graph. Call once per process."""
        completion_client = completion_client or CompletionClient.from_settings(settings)
        fallback_manager = ModelFallbackManager(registry)
        provider = provider or BrowserbaseProvider(settings)
        session_cache = SessionLifecycleCache(provider, fallback_manager, settings)
        pipeline = ActionExecutionPipeline(
            session_cache,
            fallback_manager,
            pacer=pacer or Pacer(settings.pacing_min_ms, settings.pacing_max_ms),
            settings=settings,
        )
        memory = AgentMemory()
        history = ConversationHistory()
        artifacts = ArtifactStore()
        intent_parser = IntentParser(
            completion_client,
            fallback_manager,
            session_cache=session_cache,
            memory=memory,
            history=history,
            artifacts=artifacts,
        )
        return cls(fallback_manager, session_cache, pipeline, intent_parser, memory, history, artifacts)

    async def get_session_view_url(self) -> str:
        return await self.session_cache.get_session_view_url()

    async def perform(self, action: NormalizedAction, conversation_id: Optional[str] = None) -> str:
        """Execute one action and record it in memory and artifacts."""
        result = await self.pipeline.run(action)

        url = self.session_cache.get_current_context().url
        self.memory.add(
            MemoryEntry(
                transcript=f"Action: {action.kind} -> {action.target}",
                parsed_action=action.to_dict(),
                result_summary=result,
                url=url,
            )
        )
        if conversation_id:
            self.artifacts.add(
                conversation_id,
                "action",
                label=f"Action: {action.kind}",
                data={"action": action.to_dict(), "result": result},
            )
            if action.kind == "extract":
                self.artifacts.add(conversation_id, "extraction", label=action.target, data={"result": result})
            screenshot = await self.session_cache.capture_screenshot()
            if screenshot is not None:
                self.artifacts.add(
                    conversation_id,
                    "screenshot",
                    label=f"After {action.kind}",
                    data=f"data:image/jpeg;base64,{base64.b64encode(screenshot).decode('utf-8')}",
                )
        return result

    async def converse(self, conversation_id: str, transcript: str) -> ConverseResult:
        """
        Handle one user utterance end to end.

        Returns:
            ConverseResult of type "clarify" (with the question) or "action" (with the
            summary of the last executed action and the conversation history)

        Raises:
            AllModelsFailedError: If intent parsing or an action exhausted every model
        """
        if not conversation_id or not transcript:
            raise ValueError("conversation_id and transcript are required")

        self.history.append(conversation_id, "user", transcript)
        self.artifacts.add(conversation_id, "log", label="Transcript", data={"transcript": transcript})

        intent = await self.intent_parser.parse(transcript, conversation_id)

        if intent.is_clarification:
            self.history.append(conversation_id, "agent", f"Clarify: {intent.question}")
            return ConverseResult(
                type="clarify",
                question=intent.question,
                history=list(self.history.get(conversation_id)),
            )

        summary = "Action executed."
        for action in intent.actions:
            summary = await self.perform(action, conversation_id) or summary

        self.history.append(conversation_id, "agent", summary)
        return ConverseResult(type="action", result=summary, history=list(self.history.get(conversation_id)))

    async def aclose(self) -> None:
        await self.session_cache.aclose()
