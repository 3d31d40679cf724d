"""Step registry mapping recorder kinds to typed step models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional, Type, TypeVar

from .models import (
    ChangeStep,
    ClickStep,
    DoubleClickStep,
    HoverStep,
    KeyDownStep,
    KeyUpStep,
    NavigateStep,
    ScrollStep,
    SetViewportStep,
    StepBase,
    StepKind,
    UnknownStep,
    WaitForElementStep,
    WaitForExpressionStep,
)


@dataclass(slots=True)
class StepSpec:
    kind: StepKind
    model: Type[StepBase]
    description: str | None = None

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "model": self.model.__name__,
            "needs_target": self.model.needs_target,
            "description": self.description or "",
        }


S = TypeVar("S", bound=StepBase)


class StepRegistry:
    """Central registry of replayable step kinds."""

    def __init__(self) -> None:
        self._steps: Dict[str, StepSpec] = {}

    def register(self, model: Type[S], *, description: str | None = None) -> Type[S]:
        if not issubclass(model, StepBase):
            raise TypeError("model must subclass StepBase")
        kind = model.__step_kind__
        if kind is StepKind.UNKNOWN:
            raise ValueError("the unknown step model is the registry fallback and cannot be registered")
        self._steps[kind.value] = StepSpec(kind=kind, model=model, description=description)
        return model

    def get(self, type_name: str) -> StepSpec:
        try:
            return self._steps[type_name]
        except KeyError as exc:
            raise KeyError(f"Unknown step type '{type_name}'") from exc

    def is_supported(self, type_name: str) -> bool:
        return type_name in self._steps

    def __contains__(self, type_name: str) -> bool:  # pragma: no cover - trivial
        return type_name in self._steps

    def __iter__(self) -> Iterator[StepSpec]:  # pragma: no cover - trivial
        return iter(self._steps.values())

    def model_for(self, type_name: str) -> Type[StepBase]:
        spec = self._steps.get(type_name)
        return spec.model if spec else UnknownStep

    def parse_step(self, data: Mapping[str, Any], *, index: Optional[int] = None) -> StepBase:
        """Validate ``data`` into the step model registered for its ``type``.

        When ``index`` is given it overrides whatever index the raw data
        carries, so positions always reflect the normalized sequence.  Steps
        of unknown kinds keep a differing recorded index as ``recordedIndex``.
        """

        if isinstance(data, StepBase):
            return data
        payload = dict(data)
        model = self.model_for(str(payload.get("type", "")))
        if index is not None:
            recorded = payload.get("index")
            if model is UnknownStep and recorded is not None and recorded != index:
                payload.setdefault("recordedIndex", recorded)
            payload["index"] = index
        return model.model_validate(payload)

    def schema(self) -> Dict[str, Any]:
        return {name: spec.to_metadata() for name, spec in self._steps.items()}


registry = StepRegistry()

registry.register(NavigateStep, description="Navigate to a URL (handled before replay)")
registry.register(ClickStep, description="Click an element")
registry.register(DoubleClickStep, description="Double-click an element")
registry.register(ChangeStep, description="Replace an input value")
registry.register(KeyDownStep, description="Key press on the focused element")
registry.register(KeyUpStep, description="Key release on the focused element")
registry.register(ScrollStep, description="Scroll the page or an element")
registry.register(HoverStep, description="Hover an element")
registry.register(WaitForElementStep, description="Wait until an element exists")
registry.register(WaitForExpressionStep, description="Wait until a page expression is truthy")
registry.register(SetViewportStep, description="Viewport change (recorded only)")


__all__ = ["StepSpec", "StepRegistry", "registry"]
