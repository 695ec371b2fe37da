"""
Tests for ActionExecutionPipeline.

These tests verify:
- Navigation to URLs and search queries
- Observe-then-act with natural-language fallback
- Scoped and unscoped extraction
- Self-healing on model-related and bot-detection failures
- Whole-action retries across models
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from aria_agents.action_pipeline import (
    EXTRACT_SCHEMA,
    ActionExecutionPipeline,
    classify_navigation_target,
)
from aria_agents.fallback_manager import ModelFallbackManager
from aria_agents.models import ModelDescriptor, NormalizedAction
from aria_agents.pacer import NullPacer
from aria_runtime.browser import RemoteBrowserSession, SessionInfo
from aria_runtime.config import BrowserSettings
from aria_runtime.errors import ActionError, AllModelsFailedError
from aria_runtime.page import ObservedElement
from aria_runtime.session_cache import SessionLifecycleCache


class StatusError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


def make_page(candidates=None):
    page = Mock()
    page.url = "https://www.google.com"
    page.goto = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.observe = AsyncMock(return_value=candidates or [])
    page.act = AsyncMock()
    page.press = AsyncMock()
    page.scroll = AsyncMock()
    page.extract = AsyncMock(return_value={"value": "42"})
    page.title = AsyncMock(return_value="Results")
    return page


@pytest.fixture
def page():
    return make_page()


@pytest.fixture
def session_cache(page):
    cache = Mock()
    cache.settings = BrowserSettings()
    cache.get_page = AsyncMock(return_value=page)
    cache.update_page_context = AsyncMock()
    cache.invalidate = Mock()
    return cache


@pytest.fixture
def manager():
    return ModelFallbackManager(
        [
            ModelDescriptor(name="m1", provider="openrouter", display_name="M1", max_retries=2),
            ModelDescriptor(name="m2", provider="openrouter", display_name="M2", max_retries=1),
        ]
    )


@pytest.fixture
def pipeline(session_cache, manager):
    return ActionExecutionPipeline(session_cache, manager, pacer=NullPacer())


@pytest.mark.parametrize(
    "target, expected",
    [
        ("https://example.com/a", ("url", "https://example.com/a")),
        ("http://example.com", ("url", "http://example.com")),
        ("wikipedia.org", ("url", "https://wikipedia.org")),
        ("www.bbc.co.uk/news", ("url", "https://www.bbc.co.uk/news")),
        ("google weather in paris", ("search", "weather in paris")),
        ("Search for best pizza", ("search", "best pizza")),
        ("search cats", ("search", "cats")),
        ("weather tomorrow", ("search", "weather tomorrow")),
        ("node.js", ("search", "node.js")),
        ("readme.md", ("search", "readme.md")),
        ("example.io/docs?page=2", ("url", "https://example.io/docs?page=2")),
        ("www.example.local", ("url", "https://www.example.local")),
    ],
)
def test_classify_navigation_target(target, expected):
    assert classify_navigation_target(target) == expected


@pytest.mark.asyncio
async def test_navigate_to_url(pipeline, page, session_cache):
    result = await pipeline.execute(NormalizedAction("navigate", "https://example.com"), page)

    assert result == "Navigated to https://example.com"
    page.goto.assert_awaited_once_with("https://example.com")
    page.scroll.assert_awaited_once_with(200)
    session_cache.update_page_context.assert_awaited_once_with(page)


@pytest.mark.asyncio
async def test_navigate_search_uses_observed_input(pipeline, session_cache):
    search_box = ObservedElement(description="Search", selector='[data-aria-ref="3"]', method="fill")
    page = make_page([search_box])

    result = await pipeline.execute(NormalizedAction("navigate", "search for weather in paris"), page)

    assert result == 'Searched for "weather in paris"'
    page.goto.assert_awaited_once_with("https://www.google.com")
    acted = page.act.await_args.args[0]
    assert acted.selector == '[data-aria-ref="3"]'
    assert acted.method == "fill"
    assert acted.arguments == ["weather in paris"]
    page.press.assert_awaited_once_with("Enter")


@pytest.mark.asyncio
async def test_navigate_search_falls_back_to_instruction(pipeline, page):
    await pipeline.execute(NormalizedAction("navigate", "latest news"), page)

    page.act.assert_awaited_once_with(
        "Type %query% into the search box", variables={"query": "latest news"}
    )
    page.press.assert_awaited_once_with("Enter")


@pytest.mark.asyncio
async def test_navigate_skips_scroll_when_disabled(session_cache, manager, page):
    settings = BrowserSettings(scroll_after_navigation=False)
    pipeline = ActionExecutionPipeline(session_cache, manager, pacer=NullPacer(), settings=settings)

    await pipeline.execute(NormalizedAction("navigate", "https://example.com"), page)

    page.scroll.assert_not_awaited()


@pytest.mark.asyncio
async def test_navigate_survives_scroll_failure(pipeline, page):
    page.scroll = AsyncMock(side_effect=RuntimeError("no scrolling element"))

    result = await pipeline.execute(NormalizedAction("navigate", "https://example.com"), page)

    assert result == "Navigated to https://example.com"


@pytest.mark.asyncio
async def test_click_acts_on_observed_candidate(pipeline):
    link = ObservedElement(description="Sign in", selector='[data-aria-ref="7"]', method="click")
    page = make_page([link])

    result = await pipeline.execute(NormalizedAction("click", "sign in button"), page)

    assert result == 'Clicked on "sign in button"'
    page.observe.assert_awaited_once_with("Find the sign in button to click")
    assert page.act.await_args.args[0].selector == '[data-aria-ref="7"]'


@pytest.mark.asyncio
async def test_click_ignores_non_click_candidates(pipeline):
    field = ObservedElement(description="Email", selector='[data-aria-ref="1"]', method="fill")
    page = make_page([field])

    await pipeline.execute(NormalizedAction("click", "submit"), page)

    page.act.assert_awaited_once_with("Click the submit", variables=None)


@pytest.mark.asyncio
async def test_click_falls_back_when_observe_fails(pipeline, page):
    page.observe = AsyncMock(side_effect=RuntimeError("evaluate failed"))

    await pipeline.execute(NormalizedAction("click", "first result"), page)

    page.act.assert_awaited_once_with("Click the first result", variables=None)


@pytest.mark.asyncio
async def test_type_fills_observed_field_with_value(pipeline):
    field = ObservedElement(description="Email", selector='[data-aria-ref="2"]', method="fill")
    page = make_page([field])

    result = await pipeline.execute(NormalizedAction("type", "email", value="a@b.c"), page)

    assert result == 'Typed "a@b.c" in "email"'
    page.observe.assert_awaited_once_with("Find the email input field")
    acted = page.act.await_args.args[0]
    assert acted.arguments == ["a@b.c"]


@pytest.mark.asyncio
async def test_type_falls_back_with_variables(pipeline, page):
    await pipeline.execute(NormalizedAction("type", "comment box", value="hello"), page)

    page.act.assert_awaited_once_with("Type %value% into the comment box", variables={"value": "hello"})


@pytest.mark.asyncio
async def test_press_key(pipeline, page, session_cache):
    result = await pipeline.execute(NormalizedAction("press", "Enter"), page)

    assert result == "Pressed Enter"
    page.press.assert_awaited_once_with("Enter")
    session_cache.update_page_context.assert_awaited_once_with(page)


@pytest.mark.asyncio
async def test_extract_scoped_to_observed_region(pipeline):
    region = ObservedElement(description="main", selector='[data-aria-ref="0"]', method="read")
    page = make_page([region])

    result = await pipeline.execute(NormalizedAction("extract", "the top headline"), page)

    page.extract.assert_awaited_once_with("the top headline", EXTRACT_SCHEMA, selector='[data-aria-ref="0"]')
    assert result == f"Extracted data: {json.dumps({'value': '42'})}"


@pytest.mark.asyncio
async def test_extract_unscoped_when_nothing_observed(pipeline, page):
    await pipeline.execute(NormalizedAction("extract", "the price"), page)

    page.extract.assert_awaited_once_with("the price", EXTRACT_SCHEMA, selector=None)


@pytest.mark.parametrize(
    "action",
    [
        NormalizedAction("scroll", "down"),
        NormalizedAction("click", "   "),
        NormalizedAction("type", "email"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_actions_are_rejected(pipeline, page, action):
    with pytest.raises(ActionError):
        await pipeline.execute(action, page)
    page.act.assert_not_awaited()


@pytest.mark.asyncio
async def test_model_related_failure_invalidates_session(pipeline, page, session_cache):
    page.goto = AsyncMock(side_effect=StatusError("Unauthorized", status=401))

    with pytest.raises(StatusError):
        await pipeline.execute(NormalizedAction("navigate", "https://example.com"), page)

    session_cache.invalidate.assert_called_once()


@pytest.mark.asyncio
async def test_temporary_failure_keeps_session(pipeline, page, session_cache):
    page.goto = AsyncMock(side_effect=TimeoutError("Navigation timeout of 30000 ms exceeded"))

    with pytest.raises(TimeoutError):
        await pipeline.execute(NormalizedAction("navigate", "https://example.com"), page)

    session_cache.invalidate.assert_not_called()


@pytest.mark.asyncio
async def test_bot_detection_triggers_recovery_gesture(pipeline, page, session_cache):
    page.act = AsyncMock(side_effect=RuntimeError("Please complete the captcha to continue"))

    with pytest.raises(RuntimeError):
        await pipeline.execute(NormalizedAction("click", "next"), page)

    assert [c.args[0] for c in page.scroll.await_args_list] == [-300, 300]
    session_cache.invalidate.assert_not_called()


@pytest.mark.asyncio
async def test_recovery_gesture_failure_does_not_mask_error(pipeline, page):
    page.act = AsyncMock(side_effect=RuntimeError("unusual traffic detected"))
    page.scroll = AsyncMock(side_effect=RuntimeError("page crashed"))

    with pytest.raises(RuntimeError, match="unusual traffic"):
        await pipeline.execute(NormalizedAction("click", "next"), page)


@pytest.mark.asyncio
async def test_run_retries_action_on_next_model(pipeline, page, session_cache, manager):
    page.goto = AsyncMock(side_effect=[StatusError("rate limit exceeded", status=429), None])

    result = await pipeline.run(NormalizedAction("navigate", "https://example.com"))

    assert result == "Navigated to https://example.com"
    assert page.goto.await_count == 2
    assert manager.get_current_model().name == "m2"
    session_cache.invalidate.assert_called_once()
    assert [c.args[0].name for c in session_cache.get_page.await_args_list] == ["m1", "m2"]


@pytest.mark.asyncio
async def test_run_raises_when_every_model_fails(pipeline, page):
    page.goto = AsyncMock(side_effect=StatusError("bad gateway", status=502))

    with pytest.raises(AllModelsFailedError):
        await pipeline.run(NormalizedAction("navigate", "https://example.com"))

    assert page.goto.await_count == 3


@pytest.mark.asyncio
async def test_run_validates_before_touching_session(pipeline, session_cache):
    with pytest.raises(ActionError):
        await pipeline.run(NormalizedAction("hover", "menu"))
    session_cache.get_page.assert_not_awaited()


@pytest.mark.asyncio
async def test_fallback_attempt_runs_on_session_for_its_model():
    model_a = ModelDescriptor(name="model-a", provider="openrouter", display_name="A", max_retries=1)
    model_b = ModelDescriptor(name="model-b", provider="openrouter", display_name="B", max_retries=1)
    manager = ModelFallbackManager([model_a, model_b])

    created_for = []

    async def create_session(options, model):
        created_for.append(model.name)
        page = make_page()
        if model.name == "model-a":
            page.extract = AsyncMock(side_effect=StatusError("401 unauthorized", status=401))
        else:
            page.extract = AsyncMock(return_value={"value": "Top stories"})
        return RemoteBrowserSession(info=SessionInfo(session_id=f"sess-{model.name}"), page=page)

    provider = Mock()
    provider.create_session = AsyncMock(side_effect=create_session)
    cache = SessionLifecycleCache(provider, manager, BrowserSettings())
    pipeline = ActionExecutionPipeline(cache, manager, pacer=NullPacer())

    result = await pipeline.run(NormalizedAction("extract", "the top headline"))

    assert result == f"Extracted data: {json.dumps({'value': 'Top stories'})}"
    assert created_for == ["model-a", "model-b"]
    assert manager.get_current_model().name == "model-b"
    provider.release.assert_called_once()
    assert await cache.get_session_id() == "sess-model-b"
