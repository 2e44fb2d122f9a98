"""Outcome values of a single translation item."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union

from ..core.models import Direction


@dataclass(frozen=True)
class Translated:
    """Final text for one item."""
    key: str
    text: str
    direction: Direction
    from_cache: bool = False
    attempts: int = 1


@dataclass(frozen=True)
class Degraded:
    """An item that keeps its source text."""
    key: str
    reason: str
    error_type: str = "TranslationProviderError"
    attempts: int = 1


Outcome = Union[Translated, Degraded]
