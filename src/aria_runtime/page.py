"""
Page capability surface on top of a Stagehand page.

``AutomationPage`` exposes the small set of operations the action pipeline relies on:
``goto``, ``observe``, ``act``, ``extract``, ``press``, ``scroll`` and ``screenshot``.
Observation, natural-language actions and schema extraction are delegated to Stagehand;
keyboard, mouse and screenshots go straight to the underlying Playwright page.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel
from stagehand.schemas import ObserveResult

from aria_runtime.errors import ActionError


logger = logging.getLogger(__name__)


@dataclass
class ObservedElement:
    """
    Candidate element returned by ``observe``.

    Attributes:
        description: Human readable description of the element
        selector: Selector the element was resolved to (usually an XPath)
        method: Interaction the element supports ("click", "fill", "selectOption", ...)
        arguments: Arguments for the interaction (e.g. the text to fill)
    """
    description: str
    selector: str
    method: str = "click"
    arguments: List[str] = field(default_factory=list)

    @classmethod
    def from_observation(cls, result: Any) -> "ObservedElement":
        return cls(
            description=getattr(result, "description", "") or "",
            selector=getattr(result, "selector", "") or "",
            method=getattr(result, "method", None) or "click",
            arguments=list(getattr(result, "arguments", None) or []),
        )

    def to_observation(self) -> ObserveResult:
        return ObserveResult(
            selector=self.selector,
            description=self.description,
            method=self.method,
            arguments=list(self.arguments),
        )


def _as_dict(result: Any) -> Dict[str, Any]:
    if isinstance(result, BaseModel):
        return result.model_dump(exclude_none=True)
    if isinstance(result, dict):
        return result
    return {"value": str(result)}


class AutomationPage:
    """
    Page handle handed out by the session cache.

    Example:
        page = AutomationPage(stagehand.page)
        candidates = await page.observe("Find the search box")
        await page.act(candidates[0])
    """

    def __init__(self, page: Any, timeout_ms: int = 30000):
        self._page = page
        self.timeout_ms = timeout_ms

    @property
    def raw(self) -> Any:
        return self._page

    @property
    def url(self) -> str:
        return self._page.url

    async def title(self) -> str:
        return await self._page.title()

    async def goto(self, url: str, wait_until: str = "domcontentloaded") -> None:
        await self._page.goto(url.strip(), wait_until=wait_until, timeout=self.timeout_ms)

    async def wait_for_load_state(self, state: str = "domcontentloaded") -> None:
        await self._page.wait_for_load_state(state, timeout=self.timeout_ms)

    async def observe(self, instruction: str) -> List[ObservedElement]:
        """Return candidate elements for the instruction, best match first."""
        results = await self._page.observe(instruction)
        candidates = [ObservedElement.from_observation(result) for result in results or []]
        logger.debug("Observed %d candidate(s) for '%s'", len(candidates), instruction)
        return candidates

    async def act(
        self,
        action: Union[str, ObservedElement],
        variables: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Perform an observed candidate directly, or hand a natural-language instruction
        to the model. ``%name%`` placeholders in the instruction are filled from
        ``variables`` by Stagehand, so their values never reach the prompt.

        Raises:
            ActionError: If Stagehand reports that the action did not succeed
        """
        if isinstance(action, ObservedElement):
            result = await self._page.act(action.to_observation())
        elif variables:
            result = await self._page.act(action, variables=variables)
        else:
            result = await self._page.act(action)

        if getattr(result, "success", True) is False:
            message = getattr(result, "message", "") or "action failed"
            raise ActionError(f"Could not perform action: {message}")

    async def extract(
        self,
        instruction: str,
        schema: Type[BaseModel],
        selector: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Extract data matching ``schema`` from the page, or from the scoped region."""
        kwargs: Dict[str, Any] = {"schema": schema}
        if selector:
            kwargs["selector"] = selector
        result = await self._page.extract(instruction, **kwargs)
        return _as_dict(result)

    async def press(self, key: str) -> None:
        await self._page.keyboard.press(key)

    async def scroll(self, delta_y: int) -> None:
        await self._page.mouse.wheel(0, delta_y)

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(type="jpeg", quality=70)

    async def visible_text(self, max_chars: int = 2000) -> str:
        text = await self._page.locator("body").inner_text(timeout=self.timeout_ms)
        return " ".join(text.split())[:max_chars]
