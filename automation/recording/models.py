"""Typed step models for normalized recordings.

Every recorded action becomes one of the step models below.  The ``type``
field is the discriminator and keeps the recorder's spelling (``doubleClick``,
``waitForElement`` ...) so a normalized step can be dumped back into the same
shape the recorder produced.  Kinds the engine does not know are kept as
:class:`UnknownStep` with every original field copied through.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class StepKind(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    DOUBLE_CLICK = "doubleClick"
    CHANGE = "change"
    KEY_DOWN = "keyDown"
    KEY_UP = "keyUp"
    SCROLL = "scroll"
    HOVER = "hover"
    WAIT_FOR_ELEMENT = "waitForElement"
    WAIT_FOR_EXPRESSION = "waitForExpression"
    SET_VIEWPORT = "setViewport"
    UNKNOWN = "unknown"

    @classmethod
    def from_type(cls, value: str) -> "StepKind":
        try:
            kind = cls(value)
        except ValueError:
            return cls.UNKNOWN
        return kind


SelectorGroups = List[List[str]]


def normalize_selector_groups(value: Any) -> SelectorGroups:
    """Coerce flat or nested selector lists into a list of alternative lists."""

    if not isinstance(value, (list, tuple)):
        return []
    groups: SelectorGroups = []
    for group in value:
        if isinstance(group, (list, tuple)):
            groups.append([item for item in group if isinstance(item, str)])
        elif isinstance(group, str):
            groups.append([group])
    return groups


class StepBase(BaseModel):
    """Base class for all canonical steps."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    __step_kind__: ClassVar[StepKind] = StepKind.UNKNOWN
    needs_target: ClassVar[bool] = False

    type: str
    index: int = Field(ge=0)
    timeout_ms: Optional[int] = Field(
        default=None,
        ge=0,
        alias="timeout",
        validation_alias=AliasChoices("timeout", "timeout_ms"),
    )
    asserted_events: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        alias="assertedEvents",
        validation_alias=AliasChoices("assertedEvents", "asserted_events"),
    )

    @property
    def kind(self) -> StepKind:
        return self.__step_kind__

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TargetedStep(StepBase):
    """Step that acts on an element located through selector groups."""

    needs_target: ClassVar[bool] = True

    selectors: SelectorGroups = Field(default_factory=list)

    @field_validator("selectors", mode="before")
    @classmethod
    def _normalize_selectors(cls, value: Any) -> SelectorGroups:
        return normalize_selector_groups(value)


class PointerStep(TargetedStep):
    offset_x: Optional[float] = Field(
        default=None, alias="offsetX", validation_alias=AliasChoices("offsetX", "offset_x")
    )
    offset_y: Optional[float] = Field(
        default=None, alias="offsetY", validation_alias=AliasChoices("offsetY", "offset_y")
    )
    button: Optional[str] = None


class NavigateStep(StepBase):
    __step_kind__ = StepKind.NAVIGATE

    type: Literal["navigate"] = "navigate"
    url: Optional[str] = None


class ClickStep(PointerStep):
    __step_kind__ = StepKind.CLICK

    type: Literal["click"] = "click"


class DoubleClickStep(PointerStep):
    __step_kind__ = StepKind.DOUBLE_CLICK

    type: Literal["doubleClick"] = "doubleClick"


class HoverStep(PointerStep):
    __step_kind__ = StepKind.HOVER

    type: Literal["hover"] = "hover"


class ChangeStep(TargetedStep):
    __step_kind__ = StepKind.CHANGE

    type: Literal["change"] = "change"
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class KeyDownStep(StepBase):
    __step_kind__ = StepKind.KEY_DOWN

    type: Literal["keyDown"] = "keyDown"
    key: str = ""


class KeyUpStep(StepBase):
    __step_kind__ = StepKind.KEY_UP

    type: Literal["keyUp"] = "keyUp"
    key: str = ""


class ScrollStep(StepBase):
    __step_kind__ = StepKind.SCROLL

    type: Literal["scroll"] = "scroll"
    x: Optional[float] = None
    y: Optional[float] = None
    selectors: Optional[SelectorGroups] = None

    @field_validator("selectors", mode="before")
    @classmethod
    def _normalize_selectors(cls, value: Any) -> Optional[SelectorGroups]:
        if value is None:
            return None
        return normalize_selector_groups(value)

    @property
    def has_target(self) -> bool:
        return bool(self.selectors)


class WaitForElementStep(TargetedStep):
    __step_kind__ = StepKind.WAIT_FOR_ELEMENT

    type: Literal["waitForElement"] = "waitForElement"
    visible: Optional[bool] = None


class WaitForExpressionStep(StepBase):
    __step_kind__ = StepKind.WAIT_FOR_EXPRESSION

    type: Literal["waitForExpression"] = "waitForExpression"
    expression: str = ""


class SetViewportStep(StepBase):
    __step_kind__ = StepKind.SET_VIEWPORT

    type: Literal["setViewport"] = "setViewport"
    width: Optional[int] = None
    height: Optional[int] = None
    device_scale_factor: Optional[float] = Field(
        default=None,
        alias="deviceScaleFactor",
        validation_alias=AliasChoices("deviceScaleFactor", "device_scale_factor"),
    )
    is_mobile: Optional[bool] = Field(
        default=None, alias="isMobile", validation_alias=AliasChoices("isMobile", "is_mobile")
    )


class UnknownStep(StepBase):
    """Step of a kind the engine cannot replay; all recorded fields are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    __step_kind__ = StepKind.UNKNOWN

    # Recorder extensions may shape these differently; they are carried, not used.
    timeout_ms: Any = Field(
        default=None, alias="timeout", validation_alias=AliasChoices("timeout", "timeout_ms")
    )
    asserted_events: Any = Field(
        default=None,
        alias="assertedEvents",
        validation_alias=AliasChoices("assertedEvents", "asserted_events"),
    )


Step = Union[
    NavigateStep,
    ClickStep,
    DoubleClickStep,
    HoverStep,
    ChangeStep,
    KeyDownStep,
    KeyUpStep,
    ScrollStep,
    WaitForElementStep,
    WaitForExpressionStep,
    SetViewportStep,
    UnknownStep,
]


__all__ = [
    "StepKind",
    "SelectorGroups",
    "normalize_selector_groups",
    "StepBase",
    "TargetedStep",
    "PointerStep",
    "NavigateStep",
    "ClickStep",
    "DoubleClickStep",
    "HoverStep",
    "ChangeStep",
    "KeyDownStep",
    "KeyUpStep",
    "ScrollStep",
    "WaitForElementStep",
    "WaitForExpressionStep",
    "SetViewportStep",
    "UnknownStep",
    "Step",
]
