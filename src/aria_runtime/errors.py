from typing import Dict, Optional


class AriaError(Exception):
    """Base class for every error raised by the aria packages."""


class ConfigurationError(AriaError):
    pass


class SessionError(AriaError):
    """Creating or talking to the remote browser session failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PlanFeatureUnavailableError(SessionError):
    """An optional paid feature (e.g. proxies) is not included in the account plan."""


class SessionUnavailableError(SessionError):
    pass


class ActionError(AriaError):
    """The requested action is malformed or not supported."""


class IntentParseError(AriaError):
    """The model answered, but not with a usable intent."""


class AllModelsFailedError(AriaError):
    """
    Raised when every model in the registry was exhausted in one sweep.

    The final underlying error is available as ``last_error`` (and as ``__cause__``
    when raised with ``from``).
    """

    def __init__(
        self,
        last_error: Optional[BaseException] = None,
        attempts: Optional[Dict[str, int]] = None,
    ):
        detail = str(last_error) if last_error is not None else "no model could be attempted"
        super().__init__(f"All fallback models failed: {detail}")
        self.last_error = last_error
        self.attempts = dict(attempts or {})
