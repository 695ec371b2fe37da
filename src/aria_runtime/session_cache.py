"""
Process-wide cache for the remote browser session.

The session is expensive to create, so it is created lazily, shared by every caller and
trusted only for a fixed TTL. Concurrent callers that arrive while a creation is underway
await the same in-flight creation instead of starting their own.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
import io
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from PIL import Image

from aria_runtime.browser import BrowserbaseProvider, RemoteBrowserSession, SessionOptions
from aria_runtime.config import BrowserSettings
from aria_runtime.errors import PlanFeatureUnavailableError, SessionUnavailableError
from aria_runtime.page import AutomationPage

if TYPE_CHECKING:
    from aria_agents.fallback_manager import ModelFallbackManager
    from aria_agents.models import ModelDescriptor


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class PageContext:
    """Best-effort snapshot of where the page was last seen. Never guaranteed fresh."""
    url: Optional[str] = None
    title: Optional[str] = None
    updated_at: Optional[float] = None


def _compress_screenshot(raw: bytes, max_width: int = 1280, quality: int = 60) -> bytes:
    image = Image.open(io.BytesIO(raw))
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    if image.width > max_width:
        height = int(image.height * max_width / image.width)
        image = image.resize((max_width, height))
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


class SessionLifecycleCache:
    """
    Lazily created, TTL-bound remote browser session.

    A session is dropped when its TTL elapses (on the next access), when a caller asks
    for a different model than the one it was created for, or when ``invalidate`` is
    called after a model-identity error. Dropped sessions are handed back to the provider,
    which closes them in the background; callers never wait on a close.
    ``aclose`` exists for application shutdown only.

    Attributes:
        context: Last known page URL and title
        creation_count: Number of sessions created by this cache
    """

    def __init__(
        self,
        provider: BrowserbaseProvider,
        fallback_manager: "ModelFallbackManager",
        settings: Optional[BrowserSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.fallback_manager = fallback_manager
        self.settings = settings or BrowserSettings()
        self._clock = clock

        self._session: Optional[RemoteBrowserSession] = None
        self._created_at: Optional[float] = None
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_model: Optional[str] = None
        self._state = SessionState.UNINITIALIZED

        self.context = PageContext()
        self.creation_count = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def ttl_seconds(self) -> float:
        return self.settings.session_ttl_seconds

    def _is_fresh(self, model: Optional["ModelDescriptor"] = None) -> bool:
        if self._session is None or self._created_at is None:
            return False
        if model is not None and self._session.model_name != model.name:
            return False
        return self._clock() - self._created_at < self.ttl_seconds

    async def get_page(self, model: Optional["ModelDescriptor"] = None) -> AutomationPage:
        """
        Return the page of the cached session, creating a session when needed.

        When ``model`` is given, a session built for a different model is not reused: it is
        released and a new one is created for ``model``.
        """
        session = await self._get_session(model)
        return session.page

    async def get_session_view_url(self) -> str:
        session = await self._get_session()
        debug_url = session.info.debug_url
        if isinstance(debug_url, str) and debug_url:
            return debug_url
        raise SessionUnavailableError("Live view URL is not available on the browser session.")

    async def get_session_id(self) -> str:
        session = await self._get_session()
        return session.info.session_id

    async def _get_session(self, model: Optional["ModelDescriptor"] = None) -> RemoteBrowserSession:
        while True:
            if self._is_fresh(model):
                return self._session

            if self._session is not None:
                if self._clock() - self._created_at >= self.ttl_seconds:
                    logger.info(
                        "Cached session %s expired after %.0fs; recreating",
                        self._session.info.session_id,
                        self._clock() - self._created_at,
                    )
                else:
                    logger.info(
                        "Cached session %s was created for %s; recreating for %s",
                        self._session.info.session_id,
                        self._session.model_name,
                        model.name,
                    )
                self._drop_session()

            if self._inflight is None:
                target = model or self.fallback_manager.get_current_model()
                self._inflight_model = target.name
                self._inflight = asyncio.ensure_future(self._create(target))
            elif model is not None and self._inflight_model != model.name:
                logger.debug(
                    "Session creation for %s in flight; waiting before creating for %s",
                    self._inflight_model,
                    model.name,
                )
                await asyncio.wait({self._inflight})
                continue
            else:
                logger.debug("Session creation already in flight; awaiting it")

            # Shield so a cancelled caller does not cancel the creation shared with others.
            return await asyncio.shield(self._inflight)

    async def _create(self, model: "ModelDescriptor") -> RemoteBrowserSession:
        self._state = SessionState.INITIALIZING
        try:
            options = SessionOptions.from_settings(self.settings)
            logger.info(
                "Creating remote browser session (model=%s, proxies=%s, region=%s)",
                model.display_name,
                options.proxies,
                options.region,
            )
            try:
                self.creation_count += 1
                session = await self.provider.create_session(options, model)
            except PlanFeatureUnavailableError as e:
                if not options.proxies:
                    raise
                logger.warning("Proxies are not available on this plan (%s); retrying without proxies", e)
                self.creation_count += 1
                session = await self.provider.create_session(replace(options, proxies=False), model)

            if session.model_name is None:
                session.model_name = model.name

            if self.context.url is None:
                await self._drive_to_baseline(session.page)

            self._session = session
            self._created_at = self._clock()
            self._state = SessionState.READY
            logger.info("Remote browser session %s ready", session.info.session_id)
            return session
        except BaseException:
            self._state = SessionState.FAILED
            raise
        finally:
            self._inflight = None
            self._inflight_model = None

    async def _drive_to_baseline(self, page: AutomationPage) -> None:
        baseline = self.settings.baseline_url
        try:
            await page.goto(baseline)
            self.context = PageContext(url=page.url or baseline, title=None, updated_at=self._clock())
            logger.debug("Fresh session driven to baseline %s", baseline)
        except Exception:
            logger.warning("Could not open baseline page %s", baseline, exc_info=True)

    def _drop_session(self) -> None:
        session = self._session
        self._session = None
        self._created_at = None
        if session is not None:
            self.provider.release(session)

    def invalidate(self, reason: str = "") -> None:
        """Drop the cached session entirely so the next access performs a full recreation."""
        if self._session is not None:
            logger.warning(
                "Dropping remote session %s%s",
                self._session.info.session_id,
                f": {reason}" if reason else "",
            )
        self._drop_session()
        self._state = SessionState.UNINITIALIZED

    async def update_page_context(self, page: Optional[AutomationPage] = None) -> None:
        """Refresh the cached url/title. Failures are swallowed."""
        if page is None:
            if not self._is_fresh():
                return
            page = self._session.page
        try:
            url = page.url
            title = await page.title()
        except Exception:
            logger.debug("Page context refresh failed", exc_info=True)
            return
        self.context = PageContext(url=url, title=title, updated_at=self._clock())

    def get_current_context(self) -> PageContext:
        return replace(self.context)

    async def get_textual_snapshot(self, max_chars: int = 2000) -> str:
        """Visible text of the current page, or an empty string when unavailable."""
        if not self._is_fresh():
            return ""
        try:
            return await self._session.page.visible_text(max_chars)
        except Exception:
            logger.debug("Textual snapshot failed", exc_info=True)
            return ""

    async def capture_screenshot(self) -> Optional[bytes]:
        """JPEG screenshot of the current page, or None when unavailable."""
        if not self._is_fresh():
            return None
        try:
            raw = await self._session.page.screenshot()
            return _compress_screenshot(raw)
        except Exception:
            logger.debug("Screenshot capture failed", exc_info=True)
            return None

    async def aclose(self) -> None:
        """Disconnect everything. Only meant for application shutdown."""
        self.invalidate()
        await self.provider.aclose()
