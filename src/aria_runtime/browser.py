"""
Remote browser sessions built on Browserbase and Stagehand.

Provides ``BrowserbaseProvider`` which starts a Stagehand client against Browserbase (Stagehand
owns the session creation and the CDP connection), resolves the live view URL and hands back
an ``AutomationPage``. The provider holds on to the current session only; sessions the cache
has replaced are released in the background.
"""

import asyncio
from dataclasses import dataclass, field
import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

import httpx
from stagehand import Stagehand, StagehandConfig

from aria_runtime.config import BrowserSettings
from aria_runtime.errors import (
    ConfigurationError,
    PlanFeatureUnavailableError,
    SessionError,
)
from aria_runtime.page import AutomationPage

if TYPE_CHECKING:
    from aria_agents.models import ModelDescriptor


logger = logging.getLogger(__name__)

_PLAN_LIMIT_PATTERN = re.compile(
    r"not (?:included|available) (?:in|on) (?:your|the) (?:current )?plan|upgrade your plan|plan limit",
    re.IGNORECASE,
)


@dataclass
class SessionOptions:
    """Parameters used to create one remote session."""
    proxies: bool = False
    region: Optional[str] = None
    keep_alive: bool = False
    operating_system: str = "linux"
    advanced_stealth: bool = False

    @classmethod
    def from_settings(cls, settings: BrowserSettings) -> "SessionOptions":
        return cls(
            proxies=settings.proxies_enabled,
            region=settings.region,
            keep_alive=settings.keep_session_alive,
            operating_system=settings.effective_operating_system(),
            advanced_stealth=settings.advanced_stealth,
        )

    def to_payload(self, project_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "projectId": project_id,
            "proxies": self.proxies,
            "keepAlive": self.keep_alive,
            "browserSettings": {
                "advancedStealth": self.advanced_stealth,
                "os": self.operating_system,
            },
        }
        if self.region:
            payload["region"] = self.region
        return payload


@dataclass
class SessionInfo:
    session_id: str
    debug_url: Optional[str] = None
    region: Optional[str] = None


@dataclass
class RemoteBrowserSession:
    """A created remote session: its metadata, the Stagehand client and the page handle."""
    info: SessionInfo
    page: AutomationPage
    model_name: Optional[str] = None
    client: Optional[Stagehand] = field(default=None, repr=False)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            logger.debug("Remote session %s closed", self.info.session_id)


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


class BrowserbaseProvider:
    """
    Creates remote browser sessions.

    Args:
        settings: Runtime settings (credentials, API URL, timeouts)
        http_client: Optional pre-configured ``httpx.AsyncClient`` for the live view lookup
    """

    def __init__(self, settings: BrowserSettings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http = http_client
        self._current: Optional[RemoteBrowserSession] = None
        self._closing: Set[asyncio.Task] = set()

    @property
    def current_session(self) -> Optional[RemoteBrowserSession]:
        return self._current

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.settings.browserbase_api_url.rstrip("/"),
                timeout=self.settings.request_timeout_seconds,
            )
        return self._http

    def _headers(self) -> Dict[str, str]:
        return {
            "X-BB-API-Key": self.settings.browserbase_api_key or "",
            "Content-Type": "application/json",
        }

    def _config(self, options: SessionOptions, model: Optional["ModelDescriptor"]) -> StagehandConfig:
        settings = self.settings
        config: Dict[str, Any] = {
            "env": "BROWSERBASE",
            "api_key": settings.browserbase_api_key,
            "project_id": settings.browserbase_project_id,
            "browserbase_session_create_params": options.to_payload(settings.browserbase_project_id or ""),
            "dom_settle_timeout_ms": int(settings.request_timeout_seconds * 1000),
            "use_api": False,
            "verbose": 0,
        }
        if model is not None:
            config["model_name"] = f"{model.provider}/{model.name}"
            config["model_api_key"] = settings.openrouter_api_key
            config["model_client_options"] = {
                "apiKey": settings.openrouter_api_key,
                "baseURL": settings.openrouter_base_url,
            }
        return StagehandConfig(**config)

    async def create_session(
        self,
        options: SessionOptions,
        model: Optional["ModelDescriptor"] = None,
    ) -> RemoteBrowserSession:
        """
        Start a Stagehand client on a new Browserbase session and return a ready page handle.

        Raises:
            ConfigurationError: If Browserbase credentials are missing
            PlanFeatureUnavailableError: If the plan does not include a requested feature
            SessionError: If the session could not be created for any other reason
        """
        if not self.settings.browserbase_api_key or not self.settings.browserbase_project_id:
            raise ConfigurationError(
                "Browserbase is not configured. Please set BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID."
            )

        client = Stagehand(self._config(options, model))
        try:
            await client.init()
        except Exception as e:
            status = _status_of(e)
            message = str(e)
            if status == 402 or _PLAN_LIMIT_PATTERN.search(message):
                raise PlanFeatureUnavailableError(message, status=status) from e
            raise SessionError(f"Session creation failed ({status}): {message}", status=status) from e

        info = SessionInfo(session_id=client.session_id, region=options.region)
        info.debug_url = await self._fetch_debug_url(info.session_id)
        logger.info("Created remote session %s (region=%s)", info.session_id, info.region)

        session = RemoteBrowserSession(
            info=info,
            page=AutomationPage(client.page, timeout_ms=int(self.settings.request_timeout_seconds * 1000)),
            model_name=model.name if model is not None else None,
            client=client,
        )
        self._current = session
        return session

    async def _fetch_debug_url(self, session_id: str) -> Optional[str]:
        try:
            response = await self._client().get(f"/sessions/{session_id}/debug", headers=self._headers())
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError):
            logger.debug("Live view URL lookup failed for %s", session_id, exc_info=True)
            return None
        return body.get("debuggerFullscreenUrl") or body.get("debuggerUrl")

    def release(self, session: RemoteBrowserSession) -> None:
        """
        Forget a session the cache no longer uses and close it in the background.

        The caller never waits on the close; failures are only logged.
        """
        if self._current is session:
            self._current = None
        task = asyncio.ensure_future(self._close_quietly(session))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_quietly(self, session: RemoteBrowserSession) -> None:
        try:
            await session.close()
        except Exception:
            logger.debug("Closing session %s failed", session.info.session_id, exc_info=True)

    async def aclose(self) -> None:
        """Close the current session and wait for background closes. Only used at application shutdown."""
        if self._current is not None:
            await self._close_quietly(self._current)
            self._current = None
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        if self._http is not None:
            await self._http.aclose()
            self._http = None
