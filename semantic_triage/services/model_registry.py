"""Embedding model identities.

Stored embeddings are partitioned by model name, so a name must always
mean the same vector space. The registry refuses to let one name stand
for two dimensions.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from semantic_triage.exceptions import ModelConflict, UnknownModel

logger = logging.getLogger(__name__)

MAX_MODEL_NAME_LENGTH = 64  # email_embeddings.embedding_model width


@dataclass(frozen=True)
class ModelId:
    """A validated embedding model identifier."""
    name: str
    dimension: int

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name or self.name != self.name.strip():
            raise ValueError(f"Invalid model name: {self.name!r}")
        if len(self.name) > MAX_MODEL_NAME_LENGTH:
            raise ValueError(f"Model name longer than {MAX_MODEL_NAME_LENGTH} chars: {self.name!r}")
        if not isinstance(self.dimension, int) or isinstance(self.dimension, bool) or self.dimension <= 0:
            raise ValueError(f"Invalid dimension for {self.name!r}: {self.dimension!r}")

    def __str__(self):
        return self.name


class ModelRegistry:
    """Known embedding models, keyed by name."""

    def __init__(self):
        self._models: dict[str, ModelId] = {}

    def register(self, name: str, dimension: Optional[int] = None) -> ModelId:
        """Register a model; re-registering the same (name, dimension) is a no-op.

        With no dimension the name must already be known, and its
        registered identity is returned.
        """
        if dimension is None:
            return self.get(name)

        model = ModelId(name, dimension)
        existing = self._models.get(name)
        if existing is not None:
            if existing != model:
                raise ModelConflict(
                    f"Model {name!r} already registered with dimension {existing.dimension}, "
                    f"not {dimension}"
                )
            return existing

        self._models[name] = model
        logger.debug(f"Registered embedding model {name} ({dimension} dims)")
        return model

    def get(self, name: str) -> ModelId:
        try:
            return self._models[name]
        except KeyError:
            raise UnknownModel(name) from None


default_registry = ModelRegistry()
default_registry.register("all-MiniLM-L6-v2", 384)
default_registry.register("ollama:all-minilm", 384)
default_registry.register("ollama:nomic-embed-text", 768)
default_registry.register("ollama:mxbai-embed-large", 1024)
