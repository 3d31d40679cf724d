"""Normalization of recorder exports into canonical step lists."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from automation.errors import RecordingValidationError, ValidationReason

from .models import NavigateStep, StepBase, StepKind
from .registry import registry

log = logging.getLogger(__name__)

SELECTOR_PREVIEW_LENGTH = 30
VALUE_PREVIEW_LENGTH = 20


@dataclass(slots=True)
class NormalizedRecording:
    title: str
    start_url: Optional[str]
    steps: List[StepBase]
    original: Dict[str, Any] = field(default_factory=dict, repr=False)
    unknown_kinds: List[str] = field(default_factory=list)


def normalize(document: Any) -> NormalizedRecording:
    """Validate a raw recording document and convert it to canonical steps."""

    if not isinstance(document, Mapping):
        raise RecordingValidationError(
            ValidationReason.MALFORMED_DOCUMENT, "Recording must be a JSON object"
        )
    raw_steps = document.get("steps")
    if not isinstance(raw_steps, list):
        raise RecordingValidationError(
            ValidationReason.MALFORMED_DOCUMENT, "Recording is missing a 'steps' array"
        )
    if not raw_steps:
        raise RecordingValidationError(
            ValidationReason.MALFORMED_DOCUMENT, "Recording 'steps' array is empty"
        )

    for position, raw in enumerate(raw_steps):
        if not isinstance(raw, Mapping) or not raw.get("type"):
            raise RecordingValidationError(
                ValidationReason.MISSING_KIND,
                f"Step {position + 1} has no 'type'",
                step_index=position,
            )

    steps: List[StepBase] = []
    unknown: List[str] = []
    for position, raw in enumerate(raw_steps):
        step = _normalize_step(raw, position)
        if step.kind is StepKind.UNKNOWN:
            log.warning("Step %d uses unsupported type '%s'; it will be skipped at replay", position + 1, step.type)
            unknown.append(step.type)
        steps.append(step)

    title = document.get("title") or ""
    return NormalizedRecording(
        title=str(title),
        start_url=extract_start_url(steps),
        steps=steps,
        original=dict(document),
        unknown_kinds=unknown,
    )


def normalize_json(text: str | bytes) -> NormalizedRecording:
    try:
        document = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise RecordingValidationError(
            ValidationReason.MALFORMED_DOCUMENT, f"Recording is not valid JSON: {exc}"
        ) from exc
    return normalize(document)


def _normalize_step(raw: Mapping[str, Any], position: int) -> StepBase:
    payload = dict(raw)
    payload["type"] = str(payload["type"])
    if payload["type"] == StepKind.SCROLL.value and not payload.get("selectors"):
        payload["selectors"] = None
    try:
        return registry.parse_step(payload, index=position)
    except ValidationError as exc:
        raise RecordingValidationError(
            ValidationReason.MALFORMED_DOCUMENT,
            f"Step {position + 1} ({payload['type']}) is invalid: {exc.errors()[0].get('msg', exc)}",
            step_index=position,
        ) from exc


def extract_start_url(steps: Sequence[StepBase]) -> Optional[str]:
    for step in steps:
        if isinstance(step, NavigateStep):
            return step.url or None
    return None


def selector_preview(selectors: Optional[Sequence[Sequence[str]]]) -> str:
    if not selectors or not selectors[0]:
        return "(no selector)"
    first = selectors[0][0]
    if len(first) > SELECTOR_PREVIEW_LENGTH:
        return first[:SELECTOR_PREVIEW_LENGTH] + "..."
    return first


def describe_step(step: StepBase) -> str:
    """Short human readable description used in listings and logs."""

    kind = step.kind
    if kind is StepKind.NAVIGATE:
        return f"Navigate to {getattr(step, 'url', '')}"
    if kind is StepKind.CLICK:
        return f"Click {selector_preview(step.selectors)}"
    if kind is StepKind.DOUBLE_CLICK:
        return f"Double-click {selector_preview(step.selectors)}"
    if kind is StepKind.CHANGE:
        return f'Type "{step.value[:VALUE_PREVIEW_LENGTH]}"'
    if kind is StepKind.KEY_DOWN:
        return f"Press {step.key}"
    if kind is StepKind.KEY_UP:
        return f"Release {step.key}"
    if kind is StepKind.SCROLL:
        return f"Scroll to ({step.x}, {step.y})"
    if kind is StepKind.HOVER:
        return f"Hover {selector_preview(step.selectors)}"
    if kind is StepKind.WAIT_FOR_ELEMENT:
        return f"Wait for {selector_preview(step.selectors)}"
    if kind is StepKind.WAIT_FOR_EXPRESSION:
        return "Wait for expression"
    if kind is StepKind.SET_VIEWPORT:
        return f"Set viewport {step.width}x{step.height}"
    return step.type


__all__ = [
    "NormalizedRecording",
    "normalize",
    "normalize_json",
    "extract_start_url",
    "selector_preview",
    "describe_step",
]
