"""
Action execution pipeline for the Aria browser agent.

This module executes normalized actions against the page handed out by the session
cache, using an observe-then-act strategy: ask the page for ranked candidates and act
on the best structured match, falling back to a single natural-language instruction
when observation finds nothing. Interactions are paced with randomized delays, and
failures are classified so the session can heal itself before the error propagates.
"""

import json
import logging
import re
from dataclasses import replace
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from aria_runtime.config import BrowserSettings
from aria_runtime.errors import ActionError
from aria_runtime.page import AutomationPage, ObservedElement
from aria_runtime.session_cache import SessionLifecycleCache

from aria_agents.error_classifier import ErrorClassifier
from aria_agents.fallback_manager import ModelFallbackManager
from aria_agents.models import ACTION_KINDS, ModelDescriptor, NormalizedAction
from aria_agents.pacer import Pacer


logger = logging.getLogger(__name__)

SEARCH_PREFIXES = ("google ", "search for ", "search ")
_HOST_PATTERN = re.compile(r"^(?P<host>[a-z0-9-]+(?:\.[a-z0-9-]+)+)(?::\d+)?(?:[/?#]\S*)?$", re.IGNORECASE)
# Last host labels accepted for scheme-less targets. File extensions such as "md" or "js"
# are not listed, so "readme.md" stays a search.
COMMON_TLDS = frozenset({
    "com", "org", "net", "edu", "gov", "mil", "int", "io", "co", "ai", "app", "dev",
    "info", "biz", "me", "tv", "news", "blog", "shop", "online", "site", "tech", "xyz",
    "uk", "us", "ca", "au", "de", "fr", "es", "it", "nl", "be", "ch", "at", "se", "no",
    "dk", "fi", "ie", "pl", "pt", "br", "mx", "ar", "in", "jp", "cn", "kr", "tw", "hk",
    "sg", "nz", "za", "ru", "eu", "gg",
})


class ExtractedValue(BaseModel):
    """Shape every extraction is asked to fill."""
    value: str = Field(description="The requested information")
    source: Optional[str] = Field(default=None, description="Where on the page it was found")


EXTRACT_SCHEMA = ExtractedValue

FILL_METHODS = {"fill", "type"}
CLICK_METHODS = {"click"}


def looks_like_domain(text: str) -> bool:
    """True for scheme-less hosts such as ``wikipedia.org`` or ``www.bbc.co.uk/news``."""
    match = _HOST_PATTERN.match(text)
    if match is None:
        return False
    host = match.group("host").lower()
    return host.startswith("www.") or host.rsplit(".", 1)[-1] in COMMON_TLDS


def classify_navigation_target(target: str) -> Tuple[str, str]:
    """
    Decide whether a navigate target is a URL or a search query.

    Returns:
        ("url", absolute_url) or ("search", query)
    """
    text = target.strip()
    lowered = text.lower()
    for prefix in SEARCH_PREFIXES:
        if lowered.startswith(prefix):
            return "search", text[len(prefix):].strip()
    if re.match(r"^https?://", lowered):
        return "url", text
    if " " not in text and looks_like_domain(text):
        return "url", f"https://{text}"
    return "search", text


class ActionExecutionPipeline:
    """
    Executes normalized actions with pacing and self-healing.

    Dispatches on ``NormalizedAction.kind``. Any error raised by the page is classified:
    model-identity errors (auth, rate limit) drop the cached session entirely so the next
    access recreates it, and bot-detection errors trigger a recovery gesture. The error is
    always re-raised so the outer fallback sweep decides what happens next.
    """

    def __init__(
        self,
        session_cache: SessionLifecycleCache,
        fallback_manager: ModelFallbackManager,
        pacer: Optional[Pacer] = None,
        classifier: Optional[ErrorClassifier] = None,
        settings: Optional[BrowserSettings] = None,
    ):
        """
        Initialize the action pipeline.

        Args:
            session_cache: Source of the page handle
            fallback_manager: Used by ``run`` to retry a whole action across models
            pacer: Humanized delay source (configured from settings when omitted)
            classifier: Error classifier (defaults to the fallback manager's)
            settings: Runtime settings (search engine, scrolling)
        """
        self.session_cache = session_cache
        self.fallback_manager = fallback_manager
        self.settings = settings or session_cache.settings
        self.pacer = pacer or Pacer(self.settings.pacing_min_ms, self.settings.pacing_max_ms)
        self.classifier = classifier or fallback_manager.classifier

    async def run(self, action: NormalizedAction) -> str:
        """Execute ``action`` inside a model fallback sweep, each attempt on a session driven by its model."""
        """Execute ``action`` inside a model fallback sweep."""
        self.validate(action)

        async def attempt(model: ModelDescriptor) -> str:
            logger.debug("Executing %s with %s", action.kind, model.display_name)
            page = await self.session_cache.get_page(model)
            return await self.execute(action, page)

        return await self.fallback_manager.try_with_fallback(attempt)

    def validate(self, action: NormalizedAction) -> None:
        if action.kind not in ACTION_KINDS:
            raise ActionError(f"Unsupported action type: {action.kind}")
        if not action.target.strip():
            raise ActionError(f"'{action.kind}' action requires a target")
        if action.kind == "type" and action.value is None:
            raise ActionError("Type action requires a 'value'")

    async def execute(self, action: NormalizedAction, page: Optional[AutomationPage] = None) -> str:
        """
        Execute a single action and return a human-readable summary.

        Args:
            action: Action to execute
            page: Page handle; fetched from the session cache when omitted

        Raises:
            ActionError: If the action is malformed
            Exception: Whatever the page raised, after recovery handling
        """
        self.validate(action)
        if page is None:
            page = await self.session_cache.get_page()

        try:
            if action.kind == "navigate":
                return await self._execute_navigate(page, action)
            elif action.kind == "click":
                return await self._execute_click(page, action)
            elif action.kind == "type":
                return await self._execute_type(page, action)
            elif action.kind == "extract":
                return await self._execute_extract(page, action)
            else:
                return await self._execute_press(page, action)
        except Exception as e:
            await self._handle_failure(page, action, e)
            raise

    async def _execute_navigate(self, page: AutomationPage, action: NormalizedAction) -> str:
        target_type, target = classify_navigation_target(action.target)

        if target_type == "url":
            await page.goto(target)
            summary = f"Navigated to {target}"
        else:
            await page.goto(self.settings.search_engine_url)
            await self._wait_for_settle(page)
            await self.pacer.pause()
            candidate = await self._find_candidate(page, "main search input box", FILL_METHODS)
            if candidate is not None:
                await page.act(replace(candidate, method="fill", arguments=[target]))
            else:
                logger.debug("No search input observed; typing into the search box directly")
                await page.act("Type %query% into the search box", variables={"query": target})
            await page.press("Enter")
            summary = f'Searched for "{target}"'

        await self._wait_for_settle(page)
        await self.pacer.pause()
        if self.settings.scroll_after_navigation:
            try:
                await page.scroll(200)
            except Exception:
                logger.debug("Post-navigation scroll failed", exc_info=True)
        await self.session_cache.update_page_context(page)
        return summary

    async def _execute_click(self, page: AutomationPage, action: NormalizedAction) -> str:
        await self.pacer.pause()
        await self._observe_then_act(
            page,
            observe_instruction=f"Find the {action.target} to click",
            methods=CLICK_METHODS,
            fallback_instruction=f"Click the {action.target}",
        )
        return f'Clicked on "{action.target}"'

    async def _execute_type(self, page: AutomationPage, action: NormalizedAction) -> str:
        await self._observe_then_act(
            page,
            observe_instruction=f"Find the {action.target} input field",
            methods=FILL_METHODS,
            fallback_instruction=f"Type %value% into the {action.target}",
            value=action.value,
        )
        return f'Typed "{action.value}" in "{action.target}"'

    async def _execute_press(self, page: AutomationPage, action: NormalizedAction) -> str:
        await self.pacer.pause()
        await page.press(action.target)
        await self._wait_for_settle(page)
        await self.session_cache.update_page_context(page)
        return f"Pressed {action.target}"

    async def _execute_extract(self, page: AutomationPage, action: NormalizedAction) -> str:
        # Dynamic content may not have rendered yet.
        await self._wait_for_settle(page)
        await self.pacer.pause()

        selector = None
        region = await self._find_candidate(page, f"the content region most relevant to: {action.target}", None)
        if region is not None and region.selector:
            selector = region.selector
            logger.debug("Scoping extraction to %s (%s)", region.selector, region.description)

        data = await page.extract(action.target, EXTRACT_SCHEMA, selector=selector)
        await self.session_cache.update_page_context(page)
        return f"Extracted data: {json.dumps(data, ensure_ascii=False)}"

    async def _observe_then_act(
        self,
        page: AutomationPage,
        observe_instruction: str,
        methods: set,
        fallback_instruction: str,
        value: Optional[str] = None,
    ) -> None:
        candidate = await self._find_candidate(page, observe_instruction, methods)
        if candidate is not None:
            arguments = [value] if value is not None else candidate.arguments
            await page.act(replace(candidate, arguments=arguments))
            return

        logger.debug("Observation found nothing; acting directly: %s", fallback_instruction)
        variables = {"value": value} if value is not None else None
        await page.act(fallback_instruction, variables=variables)

    async def _find_candidate(
        self,
        page: AutomationPage,
        instruction: str,
        methods: Optional[set],
    ) -> Optional[ObservedElement]:
        try:
            candidates: List[ObservedElement] = await page.observe(instruction)
        except Exception as e:
            logger.debug("Observe failed for '%s': %s", instruction, e)
            return None
        for candidate in candidates or []:
            if methods is None or candidate.method in methods:
                return candidate
        return None

    async def _wait_for_settle(self, page: AutomationPage) -> None:
        try:
            await page.wait_for_load_state("domcontentloaded")
        except Exception:
            logger.debug("Waiting for load state failed", exc_info=True)

    async def _handle_failure(self, page: AutomationPage, action: NormalizedAction, error: Exception) -> None:
        classified = self.classifier.classify(error)
        logger.warning("%s action failed (%s): %s", action.kind, classified.kind.value, error)

        if classified.is_model_related:
            self.session_cache.invalidate(reason=f"{classified.kind.value} during {action.kind}")

        if classified.bot_detected:
            logger.warning("Automated-traffic detection suspected; performing recovery gesture")
            try:
                await self.pacer.pause(scale=2.0)
                await page.scroll(-300)
                await self.pacer.pause()
                await page.scroll(300)
            except Exception:
                logger.debug("Recovery gesture failed", exc_info=True)
