"""
Environment-backed configuration for the remote browser session and model access.

All options are read once into a ``BrowserSettings`` instance owned by the
application's composition root; nothing reads the environment after startup.
"""

from dataclasses import dataclass
import logging
import os
from typing import List, Mapping, Optional

from aria_runtime.errors import ConfigurationError


logger = logging.getLogger(__name__)

BASELINE_OPERATING_SYSTEM = "linux"
_TRUTHY = {"1", "true", "yes", "on"}


def _get_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _get_number(environ: Mapping[str, str], name: str, default: float, cast=float):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class BrowserSettings:
    """
    Runtime options for session creation, pacing and model access.

    Attributes:
        proxies_enabled: Request outbound proxying for the remote session (paid feature)
        region: Preferred region for the remote session, or None for the provider default
        keep_session_alive: Ask the provider to keep the session alive between connections
        operating_system: Fingerprint profile; only honored with advanced_stealth
        advanced_stealth: Enable the provider's advanced stealth mode
        session_ttl_seconds: How long a cached session is trusted before recreation
    """

    browserbase_api_key: Optional[str] = None
    browserbase_project_id: Optional[str] = None
    browserbase_api_url: str = "https://api.browserbase.com/v1"
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    proxies_enabled: bool = False
    region: Optional[str] = None
    keep_session_alive: bool = False
    operating_system: str = BASELINE_OPERATING_SYSTEM
    advanced_stealth: bool = False
    session_ttl_seconds: float = 300.0
    baseline_url: str = "https://www.google.com"
    search_engine_url: str = "https://www.google.com"
    pacing_min_ms: int = 600
    pacing_max_ms: int = 1400
    scroll_after_navigation: bool = True
    request_timeout_seconds: float = 30.0
    tracing_enabled: bool = False

    def __post_init__(self):
        if self.pacing_min_ms < 0 or self.pacing_min_ms > self.pacing_max_ms:
            raise ConfigurationError(
                f"Invalid pacing range: {self.pacing_min_ms}-{self.pacing_max_ms} ms"
            )
        if self.session_ttl_seconds <= 0:
            raise ConfigurationError("session_ttl_seconds must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BrowserSettings":
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        return cls(
            browserbase_api_key=env.get("BROWSERBASE_API_KEY") or None,
            browserbase_project_id=env.get("BROWSERBASE_PROJECT_ID") or None,
            browserbase_api_url=env.get("BROWSERBASE_API_URL") or cls.browserbase_api_url,
            openrouter_api_key=(
                env.get("OPENROUTER_API_KEY") or env.get("NEXT_PUBLIC_OPENROUTER_API_KEY") or None
            ),
            openrouter_base_url=env.get("OPENROUTER_BASE_URL") or cls.openrouter_base_url,
            proxies_enabled=_get_bool(env, "BROWSERBASE_PROXIES", False),
            region=env.get("BROWSERBASE_REGION") or None,
            keep_session_alive=_get_bool(env, "BROWSERBASE_KEEP_ALIVE", False),
            operating_system=(env.get("BROWSERBASE_OS") or BASELINE_OPERATING_SYSTEM).lower(),
            advanced_stealth=_get_bool(env, "BROWSERBASE_ADVANCED_STEALTH", False),
            session_ttl_seconds=_get_number(env, "ARIA_SESSION_TTL_SECONDS", 300.0),
            baseline_url=env.get("ARIA_BASELINE_URL") or cls.baseline_url,
            search_engine_url=env.get("ARIA_SEARCH_ENGINE_URL") or cls.search_engine_url,
            pacing_min_ms=_get_number(env, "ARIA_PACING_MIN_MS", 600, int),
            pacing_max_ms=_get_number(env, "ARIA_PACING_MAX_MS", 1400, int),
            scroll_after_navigation=_get_bool(env, "ARIA_SCROLL_AFTER_NAVIGATION", True),
            request_timeout_seconds=_get_number(env, "ARIA_REQUEST_TIMEOUT_SECONDS", 30.0),
            tracing_enabled=_get_bool(env, "ARIA_TRACING", False),
        )

    def effective_operating_system(self) -> str:
        """
        Return the fingerprint profile that will actually be requested.

        Non-baseline profiles require advanced stealth; without it the profile is
        downgraded to the baseline and the downgrade is logged.
        """
        requested = (self.operating_system or BASELINE_OPERATING_SYSTEM).lower()
        if requested == BASELINE_OPERATING_SYSTEM or self.advanced_stealth:
            return requested
        logger.warning(
            "Operating system profile '%s' requires advanced stealth; falling back to '%s'",
            requested,
            BASELINE_OPERATING_SYSTEM,
        )
        return BASELINE_OPERATING_SYSTEM

    def missing_credentials(self) -> List[str]:
        missing = []
        if not self.browserbase_api_key:
            missing.append("BROWSERBASE_API_KEY")
        if not self.browserbase_project_id:
            missing.append("BROWSERBASE_PROJECT_ID")
        if not self.openrouter_api_key:
            missing.append("OPENROUTER_API_KEY")
        return missing

    def require_credentials(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                "Browserbase or OpenRouter environment variables are not configured. "
                f"Please set {', '.join(missing)}."
            )
