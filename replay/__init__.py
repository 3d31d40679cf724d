"""Replay runtime: selector resolution, step interpretation and run pacing."""

from .config import ReplayConfig, load_config
from .interpreter import StepInterpreter
from .resolution import ResolutionTimeout, ResolvedTarget
from .runner import ReplayRunner, RunnerState, compute_status
from .selector_resolver import SelectorResolver, parse_descriptor

__all__ = [
    "ReplayConfig",
    "load_config",
    "StepInterpreter",
    "ResolutionTimeout",
    "ResolvedTarget",
    "ReplayRunner",
    "RunnerState",
    "compute_status",
    "SelectorResolver",
    "parse_descriptor",
]
