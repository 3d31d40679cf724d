"""Recording import: typed step models, registry and normalizer."""

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
    Step,
    StepBase,
    StepKind,
    TargetedStep,
    UnknownStep,
    WaitForElementStep,
    WaitForExpressionStep,
)
from .normalizer import NormalizedRecording, describe_step, extract_start_url, normalize, normalize_json
from .registry import StepRegistry, registry

__all__ = [
    "ChangeStep",
    "ClickStep",
    "DoubleClickStep",
    "HoverStep",
    "KeyDownStep",
    "KeyUpStep",
    "NavigateStep",
    "ScrollStep",
    "SetViewportStep",
    "Step",
    "StepBase",
    "StepKind",
    "TargetedStep",
    "UnknownStep",
    "WaitForElementStep",
    "WaitForExpressionStep",
    "NormalizedRecording",
    "describe_step",
    "extract_start_url",
    "normalize",
    "normalize_json",
    "StepRegistry",
    "registry",
]
