"""Data structures describing selector resolution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Union


@dataclass(slots=True)
class ResolvedTarget:
    """A live DOM node located through one of the selector groups."""

    element: Any = field(repr=False)
    descriptor: str
    strategy: str
    group_index: int
    polls: int
    elapsed_ms: int

    @property
    def found(self) -> bool:
        return True


@dataclass(slots=True)
class ResolutionTimeout:
    """No selector matched before the deadline."""

    timeout_ms: int
    polls: int
    elapsed_ms: int
    descriptors: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return False

    def describe(self) -> str:
        if not self.descriptors:
            return "No selectors to resolve"
        tried = ", ".join(self.descriptors[:3])
        if len(self.descriptors) > 3:
            tried += ", ..."
        return f"No element matched [{tried}] within {self.timeout_ms} ms"


Resolution = Union[ResolvedTarget, ResolutionTimeout]


__all__ = ["ResolvedTarget", "ResolutionTimeout", "Resolution"]
