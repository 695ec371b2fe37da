"""
Completion client for OpenAI-compatible endpoints (OpenRouter by default).

A single call is a single attempt: retries and model fallback are the job of
``ModelFallbackManager``, which classifies whatever this client raises.
"""

import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI
import opik

from aria_runtime.config import BrowserSettings


logger = logging.getLogger(__name__)


class CompletionError(RuntimeError):
    """The endpoint answered without usable content."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class CompletionClient:
    """
    Thin async wrapper around ``AsyncOpenAI`` chat completions.

    Args:
        api_key: API key for the endpoint
        base_url: Base URL of the OpenAI-compatible endpoint
        client: Optional pre-configured AsyncOpenAI client
        timeout: Per-request timeout in seconds
        tracing: Record each completion as an Opik trace
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        timeout: float = 30.0,
        tracing: bool = False,
        app_title: str = "Project Aria Voice Agent",
    ):
        self.api_key = api_key
        self.base_url = (base_url or "https://openrouter.ai/api/v1").rstrip("/")
        self.timeout = timeout
        self.app_title = app_title

        if client is not None:
            self.client = client
        else:
            self.client = AsyncOpenAI(
                base_url=self.base_url,
                api_key=api_key,
                timeout=timeout,
                max_retries=0,
            )

        self.opik_client = opik.Opik(project_name="aria") if tracing else None
        logger.debug("Initialized CompletionClient (base_url=%s, tracing=%s)", self.base_url, tracing)

    @classmethod
    def from_settings(cls, settings: BrowserSettings) -> "CompletionClient":
        return cls(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.request_timeout_seconds,
            tracing=settings.tracing_enabled,
        )

    async def complete(
        self,
        model_name: str,
        prompt: str,
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> str:
        """
        Run one chat completion and return the text content.

        Args:
            model_name: Model identifier understood by the endpoint
            prompt: User prompt
            api_key: Optional per-call API key overriding the client's key
            max_tokens: Completion token limit

        Raises:
            openai.APIError: Transport and HTTP errors from the endpoint
            CompletionError: If the response carries no content
        """
        client = self.client
        if api_key and api_key != self.api_key:
            client = self.client.with_options(api_key=api_key)

        trace = None
        if self.opik_client is not None:
            trace = self.opik_client.trace(
                name="aria_completion",
                input={"model": model_name, "prompt": prompt[:500]},
                metadata={"model": model_name},
            )

        try:
            response = await client.chat.completions.create(
                model=model_name,
                temperature=0.0,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                extra_headers={"X-Title": self.app_title},
            )
            content = self._content_of(response)
        except Exception as e:
            if trace is not None:
                trace.update(output={"error": str(e)})
                trace.end()
            raise

        if trace is not None:
            trace.update(output={"content": content[:500]})
            trace.end()
        return content

    def _content_of(self, response: Any) -> str:
        error: Optional[Dict[str, Any]] = getattr(response, "error", None)
        if error:
            # OpenRouter reports upstream failures inside a 200 response.
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            status = error.get("code") if isinstance(error, dict) else None
            raise CompletionError(f"API error: {message}", status=status if isinstance(status, int) else None)
        if not response.choices:
            raise CompletionError("Empty response from API")
        content = response.choices[0].message.content
        if not content:
            raise CompletionError("Empty content in response")
        return content
