"""
Tests for IntentParser.

These tests verify:
- Payload parsing for single actions, plans and clarifications
- Prompt grounding in memory, page context and history
- Model fallback when a completion fails or returns garbage
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from aria_agents.fallback_manager import ModelFallbackManager
from aria_agents.intent_parser import IntentParser, parse_intent_payload, strip_code_fences
from aria_agents.memory import AgentMemory, MemoryEntry
from aria_agents.models import ModelDescriptor, NormalizedAction
from aria_runtime.artifacts import ArtifactStore
from aria_runtime.errors import AllModelsFailedError, IntentParseError
from aria_runtime.session_cache import PageContext
from aria_runtime.state import ConversationHistory


class StatusError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


@pytest.fixture
def manager():
    return ModelFallbackManager(
        [
            ModelDescriptor(name="m1", provider="openrouter", display_name="M1", max_retries=1),
            ModelDescriptor(name="m2", provider="openrouter", display_name="M2", max_retries=1),
        ]
    )


@pytest.fixture
def completion_client():
    client = Mock()
    client.complete = AsyncMock(return_value='{"action": "navigate", "target": "bbc.com"}')
    return client


@pytest.fixture
def session_cache():
    cache = Mock()
    cache.update_page_context = AsyncMock()
    cache.get_current_context = Mock(return_value=PageContext(url="https://www.bbc.com", title="BBC"))
    cache.get_textual_snapshot = AsyncMock(return_value="Top stories")
    return cache


class TestParseIntentPayload:
    def test_single_action(self):
        result = parse_intent_payload('{"action": "type", "target": "search box", "value": "cats"}')
        assert result.actions == [NormalizedAction("type", "search box", "cats")]
        assert not result.is_clarification

    def test_plan(self):
        payload = {
            "actions": [
                {"action": "navigate", "target": "google weather"},
                {"action": "extract", "target": "temperature"},
            ]
        }
        result = parse_intent_payload(json.dumps(payload))
        assert [a.kind for a in result.actions] == ["navigate", "extract"]

    def test_clarify(self):
        result = parse_intent_payload('{"action": "clarify", "question": "Which site?"}')
        assert result.is_clarification
        assert result.question == "Which site?"
        assert result.actions == []

    def test_code_fences_stripped(self):
        content = '```json\n{"action": "press", "target": "Enter"}\n```'
        assert strip_code_fences(content) == '{"action": "press", "target": "Enter"}'
        assert parse_intent_payload(content).actions[0].kind == "press"

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            "[1, 2]",
            '{"foo": "bar"}',
            '{"actions": []}',
            '{"actions": ["navigate"]}',
            '{"action": "clarify"}',
        ],
    )
    def test_malformed(self, content):
        with pytest.raises(IntentParseError):
            parse_intent_payload(content)


@pytest.mark.asyncio
async def test_prompt_is_grounded_in_context(completion_client, manager, session_cache):
    memory = AgentMemory()
    memory.add(MemoryEntry(transcript="open the bbc", result_summary="Navigated to https://bbc.com"))
    history = ConversationHistory()
    history.append("c1", "user", "open the bbc")
    parser = IntentParser(completion_client, manager, session_cache=session_cache, memory=memory, history=history)

    prompt = await parser.build_prompt("read the top headline", "c1")

    session_cache.update_page_context.assert_awaited_once_with()
    assert "CURRENT LOCATION: BBC | https://www.bbc.com" in prompt
    assert "PAGE SNAPSHOT:\nTop stories" in prompt
    assert "[user] open the bbc" in prompt
    assert 'said: "open the bbc"' in prompt
    assert 'COMMAND TO ANALYZE: "read the top headline"' in prompt


@pytest.mark.asyncio
async def test_prompt_without_session_cache(completion_client, manager):
    parser = IntentParser(completion_client, manager)

    prompt = await parser.build_prompt("open wikipedia")

    assert "(no prior context)" in prompt
    assert "CURRENT LOCATION" not in prompt


@pytest.mark.asyncio
async def test_parse_records_intent_artifact(completion_client, manager):
    artifacts = ArtifactStore()
    parser = IntentParser(completion_client, manager, artifacts=artifacts)

    result = await parser.parse("open the bbc", "c1")

    assert result.actions == [NormalizedAction("navigate", "bbc.com")]
    assert result.model_name == "m1"
    completion_client.complete.assert_awaited_once()
    assert completion_client.complete.await_args.args[0] == "m1"
    [artifact] = artifacts.get("c1")
    assert artifact.type == "intent"
    assert artifact.data["intent"] == {"action": "navigate", "target": "bbc.com"}


@pytest.mark.asyncio
async def test_parse_falls_back_on_rate_limit(completion_client, manager):
    completion_client.complete = AsyncMock(
        side_effect=[StatusError("rate limit", status=429), '{"action": "press", "target": "Enter"}']
    )
    parser = IntentParser(completion_client, manager)

    result = await parser.parse("press enter")

    assert result.model_name == "m2"
    assert [c.args[0] for c in completion_client.complete.await_args_list] == ["m1", "m2"]


@pytest.mark.asyncio
async def test_parse_falls_back_on_unparseable_answer(completion_client, manager):
    completion_client.complete = AsyncMock(
        side_effect=["Sure! I will open it.", '{"action": "navigate", "target": "bbc.com"}']
    )
    parser = IntentParser(completion_client, manager)

    result = await parser.parse("open the bbc")

    assert result.model_name == "m2"


@pytest.mark.asyncio
async def test_parse_raises_when_every_model_fails(completion_client, manager):
    completion_client.complete = AsyncMock(side_effect=StatusError("overloaded", status=503))
    parser = IntentParser(completion_client, manager)

    with pytest.raises(AllModelsFailedError):
        await parser.parse("open the bbc")
