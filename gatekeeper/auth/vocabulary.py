"""Per-module action vocabularies.

An optional YAML file restricts which actions may be granted in each module:

    modules:
      inventory: [read, write, delete]
      billing: [read]
      reports: ["*"]

When no vocabulary is configured, any non-empty module and action is
accepted.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("gatekeeper.auth.vocabulary")

WILDCARD_ACTION = "*"


class VocabularyLoadError(Exception):
    """Error loading an action vocabulary file."""

    pass


class ActionVocabulary(BaseModel):
    """Mapping of module name to the actions that may be granted in it."""

    modules: dict[str, list[str]] = Field(default_factory=dict)

    def is_allowed(self, module: str, action: str) -> bool:
        """Check whether a (module, action) pair is in the vocabulary."""
        actions = self.modules.get(module)
        if actions is None:
            return False
        return WILDCARD_ACTION in actions or action in actions

    def describe(self, module: str) -> str:
        """Human-readable list of allowed actions for a module."""
        actions = self.modules.get(module)
        if actions is None:
            return f"unknown module '{module}'"
        return f"module '{module}' allows: {', '.join(actions)}"


def load_vocabulary(path: str | Path) -> ActionVocabulary:
    """Load an action vocabulary from a YAML file.

    Raises:
        VocabularyLoadError: If the file cannot be read, parsed or validated.
    """
    path = Path(path).expanduser().resolve()

    if not path.is_file():
        raise VocabularyLoadError(f"Vocabulary file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise VocabularyLoadError(f"Invalid YAML in vocabulary file: {e}") from e
    except OSError as e:
        raise VocabularyLoadError(f"Cannot read vocabulary file: {e}") from e

    if not isinstance(data, dict):
        raise VocabularyLoadError("Vocabulary file must contain a YAML mapping")

    try:
        vocabulary = ActionVocabulary.model_validate(data)
    except ValidationError as e:
        raise VocabularyLoadError(f"Invalid vocabulary: {e}") from e

    logger.info(f"Loaded action vocabulary from {path}: {len(vocabulary.modules)} modules")
    return vocabulary
