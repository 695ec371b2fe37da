"""Ordered registry of candidate models, best first."""

from typing import Iterator, List, Optional, Sequence

from aria_agents.models import ModelDescriptor


# Ordered from best to worst in terms of quality/reliability.
FALLBACK_MODELS: List[ModelDescriptor] = [
    ModelDescriptor(
        name="deepseek/deepseek-chat-v3.1:free",
        provider="openrouter",
        display_name="DeepSeek Chat v3.1 (Free)",
        max_retries=2,
    ),
    ModelDescriptor(
        name="openai/gpt-oss-20b:free",
        provider="openrouter",
        display_name="GPT-OSS 20B (Free)",
        max_retries=2,
    ),
    ModelDescriptor(
        name="z-ai/glm-4.5-air:free",
        provider="openrouter",
        display_name="GLM-4.5-AIR (Free)",
        max_retries=2,
    ),
    ModelDescriptor(
        name="qwen/qwen3-235b-a22b:free",
        provider="openrouter",
        display_name="Qwen3-235B-A22B (Free)",
        max_retries=2,
    ),
    ModelDescriptor(
        name="google/gemma-3-27b-it:free",
        provider="openrouter",
        display_name="Gemma 3 27B IT (Free)",
        max_retries=2,
    ),
]


class ModelRegistry:
    """Immutable, ordered list of model descriptors with unique names."""

    def __init__(self, models: Optional[Sequence[ModelDescriptor]] = None):
        models = list(FALLBACK_MODELS if models is None else models)
        if not models:
            raise ValueError("ModelRegistry requires at least one model")
        names = [model.name for model in models]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate model names in registry: {names}")
        self._models = tuple(models)

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models)

    def __getitem__(self, index: int) -> ModelDescriptor:
        return self._models[index]

    def index_of(self, name: str) -> int:
        for index, model in enumerate(self._models):
            if model.name == name:
                return index
        raise KeyError(name)

    @property
    def total_attempt_budget(self) -> int:
        return sum(model.max_retries for model in self._models)
