"""
Table-driven error classification.

Every rule maps an error to an ``ErrorKind`` by structured signal first (exception type,
HTTP status) and by message vocabulary second. Rules are checked in order, so the table
also encodes precedence: rate limits before auth, auth before generic infrastructure
failures. Bot detection is a content-level signal from the target site and is tracked
independently of the primary kind.
"""

import asyncio
from dataclasses import dataclass
import re
from typing import Iterable, Optional, Sequence, Tuple, Type

import httpx
import openai
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from aria_agents.models import ClassifiedError, ErrorKind


@dataclass(frozen=True)
class ClassificationRule:
    """
    One row of the classification table.

    Attributes:
        kind: Kind assigned when the rule matches
        exception_types: Exception classes that match structurally
        statuses: Exact HTTP statuses that match
        min_status: Any status >= this value matches
        patterns: Lower-case substrings searched in the error message
    """
    kind: ErrorKind
    exception_types: Tuple[Type[BaseException], ...] = ()
    statuses: Tuple[int, ...] = ()
    min_status: Optional[int] = None
    patterns: Tuple[str, ...] = ()

    def matches(self, error: BaseException, status: Optional[int], message: str) -> bool:
        if self.exception_types and isinstance(error, self.exception_types):
            return True
        if status is not None:
            if status in self.statuses:
                return True
            if self.min_status is not None and status >= self.min_status:
                return True
        return any(pattern in message for pattern in self.patterns)


DEFAULT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        kind=ErrorKind.RATE_LIMITED,
        exception_types=(openai.RateLimitError,),
        statuses=(429,),
        patterns=("rate limit", "too many requests", "rate-limited", "429"),
    ),
    ClassificationRule(
        kind=ErrorKind.AUTH_FAILURE,
        exception_types=(openai.AuthenticationError, openai.PermissionDeniedError),
        statuses=(401, 403),
        patterns=(
            "unauthorized",
            "forbidden",
            "invalid api key",
            "api key",
            "authentication",
            "permission denied",
            "not authorized",
        ),
    ),
    ClassificationRule(
        kind=ErrorKind.TEMPORARY_INFRA,
        exception_types=(
            openai.APITimeoutError,
            openai.APIConnectionError,
            openai.InternalServerError,
            httpx.TimeoutException,
            httpx.TransportError,
            asyncio.TimeoutError,
            PlaywrightTimeoutError,
            ConnectionError,
        ),
        min_status=500,
        patterns=("timeout", "timed out", "connection", "network", "econnreset", "socket hang up"),
    ),
)

BOT_DETECTION_PATTERNS: Tuple[str, ...] = (
    "unusual traffic",
    "captcha",
    "automated queries",
    "automated traffic",
    "are you a robot",
    "not a robot",
    "verify you are human",
    "bot detection",
    "detected unusual activity",
)


def status_of(error: BaseException) -> Optional[int]:
    """Extract an HTTP-like status from the error, if it carries one."""
    for attribute in ("status", "status_code", "code"):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    return None


def message_of(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error)
    return re.sub(r"\s+", " ", message).lower()


class ErrorClassifier:
    """
    Pure, side-effect free error classification.

    Args:
        rules: Ordered classification table; the first matching rule wins
        bot_patterns: Vocabulary that marks automated-traffic detection
    """

    def __init__(
        self,
        rules: Optional[Sequence[ClassificationRule]] = None,
        bot_patterns: Optional[Iterable[str]] = None,
    ):
        self.rules = tuple(DEFAULT_RULES if rules is None else rules)
        self.bot_patterns = tuple(BOT_DETECTION_PATTERNS if bot_patterns is None else bot_patterns)

    def classify(self, error: BaseException) -> ClassifiedError:
        status = status_of(error)
        message = message_of(error)
        bot_detected = self._is_bot_message(message)
        for rule in self.rules:
            if rule.matches(error, status, message):
                return ClassifiedError(kind=rule.kind, raw=error, bot_detected=bot_detected)
        kind = ErrorKind.BOT_DETECTED if bot_detected else ErrorKind.PERMANENT
        return ClassifiedError(kind=kind, raw=error, bot_detected=bot_detected)

    def is_rate_limited(self, error: BaseException) -> bool:
        return self.classify(error).kind == ErrorKind.RATE_LIMITED

    def is_auth_failure(self, error: BaseException) -> bool:
        return self.classify(error).kind == ErrorKind.AUTH_FAILURE

    def is_temporary(self, error: BaseException) -> bool:
        """Rate limits count as temporary."""
        return self.classify(error).is_temporary

    def is_model_related(self, error: BaseException) -> bool:
        return self.classify(error).is_model_related

    def is_bot_detected(self, error: BaseException) -> bool:
        return self._is_bot_message(message_of(error))

    def _is_bot_message(self, message: str) -> bool:
        return any(pattern in message for pattern in self.bot_patterns)
