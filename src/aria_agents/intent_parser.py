"""
IntentParser: turns a voice transcript into normalized browser actions.

The prompt is grounded in recent memory, the current page context and the conversation
history; the completion itself runs inside a model fallback sweep.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from aria_runtime.artifacts import ArtifactStore
from aria_runtime.errors import IntentParseError
from aria_runtime.session_cache import SessionLifecycleCache
from aria_runtime.state import ConversationHistory

from aria_agents.fallback_manager import ModelFallbackManager
from aria_agents.llm_client import CompletionClient
from aria_agents.memory import AgentMemory, summarize_for_prompt
from aria_agents.models import IntentResult, ModelDescriptor, NormalizedAction
from aria_agents.prompts import INTENT_PARSER


logger = logging.getLogger(__name__)


def strip_code_fences(content: str) -> str:
    content = content.strip()
    if "```json" in content:
        start = content.find("```json") + 7
        end = content.find("```", start)
        return content[start:end if end != -1 else None].strip()
    if "```" in content:
        start = content.find("```") + 3
        end = content.find("```", start)
        return content[start:end if end != -1 else None].strip()
    return content


def parse_intent_payload(content: str) -> IntentResult:
    """
    Parse the model's JSON answer into an ``IntentResult``.

    Accepts a single action object, an ``{"actions": [...]}`` plan, or a
    ``{"action": "clarify", "question": ...}`` object.

    Raises:
        IntentParseError: If the content is not one of those shapes
    """
    json_content = strip_code_fences(content)
    try:
        payload = json.loads(json_content)
    except json.JSONDecodeError as e:
        raise IntentParseError(f"Failed to parse intent JSON: {e}") from e

    if not isinstance(payload, dict):
        raise IntentParseError(f"Intent must be a JSON object, got {type(payload).__name__}")

    if payload.get("action") == "clarify":
        question = str(payload.get("question") or "").strip()
        if not question:
            raise IntentParseError("Clarification is missing its question")
        return IntentResult(question=question, raw=json_content)

    steps: List[Dict[str, Any]]
    if isinstance(payload.get("actions"), list):
        steps = payload["actions"]
    elif "action" in payload:
        steps = [payload]
    else:
        raise IntentParseError("Intent has neither 'action' nor 'actions'")

    actions = []
    for step in steps:
        if not isinstance(step, dict):
            raise IntentParseError(f"Plan step must be an object, got {step!r}")
        actions.append(NormalizedAction.from_dict(step))
    if not actions:
        raise IntentParseError("Intent plan is empty")
    return IntentResult(actions=actions, raw=json_content)


class IntentParser:
    """
    Parses transcripts with whichever model is currently healthy.

    Args:
        completion_client: Client used for the completion call
        fallback_manager: Drives the completion across models
        session_cache: Source of the current page context (never creates a session here)
        memory: Recent interaction memory
        history: Conversation history store
        artifacts: Artifact store for parsed intents
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        fallback_manager: ModelFallbackManager,
        session_cache: Optional[SessionLifecycleCache] = None,
        memory: Optional[AgentMemory] = None,
        history: Optional[ConversationHistory] = None,
        artifacts: Optional[ArtifactStore] = None,
    ):
        self.completion_client = completion_client
        self.fallback_manager = fallback_manager
        self.session_cache = session_cache
        self.memory = memory or AgentMemory()
        self.history = history
        self.artifacts = artifacts

    async def build_prompt(self, transcript: str, conversation_id: Optional[str] = None) -> str:
        location = ""
        snapshot = ""
        if self.session_cache is not None:
            # Refresh first so the location is not stale; both calls are best-effort.
            await self.session_cache.update_page_context()
            here = self.session_cache.get_current_context()
            if here.url or here.title:
                location = f"CURRENT LOCATION: {here.title or ''} | {here.url or ''}"
            text = await self.session_cache.get_textual_snapshot()
            if text:
                snapshot = f"PAGE SNAPSHOT:\n{text}"

        history_block = ""
        if self.history is not None and conversation_id:
            recent = self.history.get(conversation_id)[-8:]
            if recent:
                lines = "\n".join(f"[{item.role}] {item.content}" for item in recent)
                history_block = f"SESSION HISTORY (most recent last):\n{lines}"

        memory_block = summarize_for_prompt(self.memory.get_recent(10)) or "(no prior context)"
        return INTENT_PARSER.format(
            memory=memory_block,
            location=location,
            snapshot=snapshot,
            history=history_block,
            transcript=transcript,
        )

    async def parse(self, transcript: str, conversation_id: Optional[str] = None) -> IntentResult:
        """
        Parse a transcript into an intent.

        Raises:
            AllModelsFailedError: If no model produced a usable intent
        """
        prompt = await self.build_prompt(transcript, conversation_id)

        async def attempt(model: ModelDescriptor) -> IntentResult:
            logger.info("Trying intent parsing with %s", model.display_name)
            content = await self.completion_client.complete(model.name, prompt)
            result = parse_intent_payload(content)
            result.model_name = model.name
            logger.info("%s successfully parsed intent", model.display_name)
            return result

        result = await self.fallback_manager.try_with_fallback(attempt)

        if self.artifacts is not None and conversation_id:
            self.artifacts.add(
                conversation_id,
                "intent",
                label="Parsed Intent",
                data={"transcript": transcript, "intent": json.loads(result.raw)},
            )
        return result
