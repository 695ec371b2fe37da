"""
ModelFallbackManager: sequential multi-model retry with per-model attempt budgets.

One call to ``try_with_fallback`` is a *sweep*: models are attempted in registry
order starting from the last model that succeeded. Temporary failures retry the same
model until its budget is spent; rate limits and non-temporary failures spend the whole
budget at once. When every model is exhausted the ledger is reset and
``AllModelsFailedError`` is raised with the last underlying error as its cause.

The attempt ledger is shared by every sweep of this manager and is not locked:
concurrent sweeps interleave their accounting at ``await`` points. That only affects
retry accounting, never the results handed back to callers.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence, TypeVar, Union

from aria_runtime.errors import AllModelsFailedError

from aria_agents.error_classifier import ErrorClassifier
from aria_agents.model_registry import ModelRegistry
from aria_agents.models import ErrorKind, ModelDescriptor


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModelFallbackManager:
    """
    Drives an operation across the model registry.

    Attributes:
        registry: Ordered candidate models
        classifier: Error classifier used to decide retry / advance
        current_model_index: Cursor at the last model that succeeded
    """

    def __init__(
        self,
        registry: Optional[Union[ModelRegistry, Sequence[ModelDescriptor]]] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        if not isinstance(registry, ModelRegistry):
            registry = ModelRegistry(registry)
        self.registry = registry
        self.classifier = classifier or ErrorClassifier()
        self.current_model_index: int = 0
        self._attempts: Dict[str, int] = {}

    def get_current_model(self) -> ModelDescriptor:
        return self.registry[self.current_model_index]

    def attempt_count(self, model: ModelDescriptor) -> int:
        return self._attempts.get(model.name, 0)

    async def try_with_fallback(
        self,
        operation: Callable[[ModelDescriptor], Awaitable[T]],
    ) -> T:
        """
        Run ``operation`` with the preferred model, falling back through the registry.

        Args:
            operation: Coroutine function receiving the model to use

        Returns:
            The first successful result

        Raises:
            AllModelsFailedError: If every model exhausted its attempt budget
        """
        last_error: Optional[BaseException] = None
        sweep_attempts: Dict[str, int] = {}

        index = self.current_model_index
        while index < len(self.registry):
            model = self.registry[index]
            attempts = self.attempt_count(model)

            if attempts >= model.max_retries:
                logger.info("Skipping %s - max retries (%d) exceeded", model.display_name, model.max_retries)
                index += 1
                continue

            self._attempts[model.name] = attempts + 1
            sweep_attempts[model.name] = sweep_attempts.get(model.name, 0) + 1
            logger.info(
                "Attempting with model: %s (attempt %d/%d)",
                model.display_name,
                attempts + 1,
                model.max_retries,
            )

            try:
                result = await operation(model)
            except Exception as e:
                last_error = e
                classified = self.classifier.classify(e)
                logger.warning("%s failed (%s): %s", model.display_name, classified.kind.value, e)

                if classified.kind == ErrorKind.RATE_LIMITED:
                    logger.warning("Rate limited: %s", model.display_name)
                    self._attempts[model.name] = model.max_retries
                elif not classified.is_temporary:
                    self._attempts[model.name] = model.max_retries

                if self.attempt_count(model) >= model.max_retries:
                    logger.info("Moving to next model after %s", model.display_name)
                    index += 1
                # Otherwise retry the same model.
                continue

            self.current_model_index = index
            self._attempts[model.name] = 0
            logger.info("Success with model: %s", model.display_name)
            return result

        logger.error("All models failed, resetting attempt counts")
        self.reset_attempt_counts()
        raise AllModelsFailedError(last_error, attempts=sweep_attempts) from last_error

    def reset_attempt_counts(self) -> None:
        self._attempts.clear()
        self.current_model_index = 0

    def get_status(self) -> Dict[str, object]:
        return {
            "current_model": self.get_current_model(),
            "attempts": dict(self._attempts),
        }
