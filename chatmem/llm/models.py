"""Model registry: resolves model names and tells local from cloud models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from chatmem.config import settings

logger = logging.getLogger(__name__)

ModelKind = Literal["local", "cloud"]

MODEL_MAP: dict[str, str] = {
    "haiku": "claude-haiku-4-5-20251001",
    "sonnet": "claude-sonnet-4-5-20250929",
    "opus": "claude-opus-4-6-20250612",
}

# Reverse lookup: full model string → friendly name
FRIENDLY_NAMES: dict[str, str] = {v: k for k, v in MODEL_MAP.items()}


def friendly(model_id: str) -> str:
    """Return the friendly name for a model ID, or the ID itself."""
    return FRIENDLY_NAMES.get(model_id, model_id)


@dataclass(frozen=True)
class ModelSpec:
    id: str
    kind: ModelKind

    @property
    def is_local(self) -> bool:
        return self.kind == "local"


class ModelRegistry:
    """Lookup of known models by canonical ID or alias.

    Built explicitly and handed to the components that need it; there is no
    module-level registry.
    """

    def __init__(self) -> None:
        self._models: dict[str, ModelSpec] = {}

    def register(self, spec: ModelSpec, aliases: tuple[str, ...] = ()) -> None:
        self._models[spec.id] = spec
        for alias in aliases:
            if alias:
                self._models[alias] = spec

    def get(self, name_or_id: str | None) -> ModelSpec | None:
        if not name_or_id:
            return None
        return self._models.get(name_or_id.strip())

    def resolve(self, name_or_id: str) -> str | None:
        """Resolve a friendly name or alias to a canonical ID, or None."""
        spec = self.get(name_or_id)
        return spec.id if spec else None

    def is_local(self, name_or_id: str | None) -> bool:
        spec = self.get(name_or_id)
        return bool(spec and spec.is_local)

    def list_models(self) -> list[ModelSpec]:
        """Unique registered models, sorted by kind then ID."""
        unique = {spec.id: spec for spec in self._models.values()}
        return sorted(unique.values(), key=lambda s: (s.kind, s.id))

    @classmethod
    def from_settings(cls) -> ModelRegistry:
        registry = cls()
        for name, model_id in MODEL_MAP.items():
            registry.register(ModelSpec(model_id, "cloud"), aliases=(name,))
        for model_id in settings.get_local_models():
            registry.register(ModelSpec(model_id, "local"))
        logger.debug(
            "Model registry: %s",
            ", ".join(f"{friendly(s.id)}({s.kind})" for s in registry.list_models()),
        )
        return registry
