"""Execute canonical steps against a live page."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from playwright.async_api import ElementHandle, Error as PlaywrightError, Page

from automation.errors import ExpressionTimeout, StepFailure, TargetNotFound
from automation.recording.models import (
    ChangeStep,
    KeyDownStep,
    KeyUpStep,
    PointerStep,
    ScrollStep,
    StepBase,
    StepKind,
    TargetedStep,
    WaitForElementStep,
    WaitForExpressionStep,
)

from .resolution import ResolutionTimeout
from .selector_resolver import DEFAULT_POLL_INTERVAL_MS, SelectorResolver

log = logging.getLogger(__name__)

DEFAULT_STEP_TIMEOUT_MS = 10_000
DEFAULT_SETTLE_DELAY_MS = 200

SCROLL_INTO_VIEW_SCRIPT = "(element) => element.scrollIntoView({behavior: 'smooth', block: 'center'})"

CLICK_SCRIPT = "(element) => element.click()"

CHANGE_VALUE_SCRIPT = """
(element, value) => {
  element.focus();
  element.value = '';
  element.value = value;
  element.dispatchEvent(new Event('input', { bubbles: true }));
  element.dispatchEvent(new Event('change', { bubbles: true }));
}
"""

KEYBOARD_EVENT_SCRIPT = """
({ type, key }) => {
  const target = document.activeElement || document.body;
  target.dispatchEvent(new KeyboardEvent(type, { key, bubbles: true }));
}
"""

ELEMENT_SCROLL_SCRIPT = "(element, [x, y]) => element.scrollTo(x, y)"

WINDOW_SCROLL_SCRIPT = "([x, y]) => window.scrollTo(x, y)"

# Coerced inside the page: objects and arrays are truthy there, not in Python.
EXPRESSION_TRUTHY_SCRIPT = "async (expression) => !!(await (0, eval)(expression))"

Handler = Callable[[StepBase], Awaitable[None]]


class StepInterpreter:
    """Dispatch one step to the handler registered for its kind."""

    def __init__(
        self,
        page: Page,
        resolver: Optional[SelectorResolver] = None,
        *,
        step_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS,
        settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        self.page = page
        self.resolver = resolver or SelectorResolver(page, poll_interval_ms=poll_interval_ms)
        self.step_timeout_ms = step_timeout_ms
        self.settle_delay_ms = settle_delay_ms
        self.poll_interval_ms = poll_interval_ms
        self._handlers: Dict[StepKind, Handler] = {
            StepKind.NAVIGATE: self._handle_navigate,
            StepKind.CLICK: self._handle_click,
            StepKind.DOUBLE_CLICK: self._handle_double_click,
            StepKind.HOVER: self._handle_hover,
            StepKind.CHANGE: self._handle_change,
            StepKind.KEY_DOWN: self._handle_key,
            StepKind.KEY_UP: self._handle_key,
            StepKind.SCROLL: self._handle_scroll,
            StepKind.WAIT_FOR_ELEMENT: self._handle_wait_for_element,
            StepKind.WAIT_FOR_EXPRESSION: self._handle_wait_for_expression,
            StepKind.SET_VIEWPORT: self._handle_set_viewport,
            StepKind.UNKNOWN: self._handle_unknown,
        }
        missing = set(StepKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for step kinds: {sorted(kind.value for kind in missing)}")

    @property
    def handled_kinds(self) -> frozenset[StepKind]:
        return frozenset(self._handlers)

    async def execute(self, step: StepBase) -> None:
        handler = self._handlers[step.kind]
        try:
            await handler(step)
        except StepFailure:
            raise
        except PlaywrightError as exc:
            raise StepFailure(step.type, str(exc)) from exc

    # ------------------------------------------------------------------
    # handlers
    # ------------------------------------------------------------------
    async def _handle_navigate(self, step: StepBase) -> None:
        log.debug("Navigate step %d handled by the page lifecycle", step.index)

    async def _handle_click(self, step: PointerStep) -> None:
        element = await self._resolve_or_fail(step, "click target not found")
        try:
            await self._bring_into_view(element)
            await element.evaluate(CLICK_SCRIPT)
        finally:
            await element.dispose()

    async def _handle_double_click(self, step: PointerStep) -> None:
        element = await self._resolve_or_fail(step, "double-click target not found")
        try:
            await self._bring_into_view(element)
            await element.dispatch_event("dblclick")
        finally:
            await element.dispose()

    async def _handle_hover(self, step: PointerStep) -> None:
        element = await self._resolve_or_fail(step, "hover target not found")
        try:
            await self._bring_into_view(element)
            await element.dispatch_event("mouseover")
        finally:
            await element.dispose()

    async def _handle_change(self, step: ChangeStep) -> None:
        element = await self._resolve_or_fail(step, "input target not found")
        try:
            await self._bring_into_view(element)
            await element.evaluate(CHANGE_VALUE_SCRIPT, step.value)
        finally:
            await element.dispose()

    async def _handle_key(self, step: KeyDownStep | KeyUpStep) -> None:
        event_type = "keydown" if step.kind is StepKind.KEY_DOWN else "keyup"
        await self.page.evaluate(KEYBOARD_EVENT_SCRIPT, {"type": event_type, "key": step.key})

    async def _handle_scroll(self, step: ScrollStep) -> None:
        offset = [step.x or 0, step.y or 0]
        if not step.has_target:
            await self.page.evaluate(WINDOW_SCROLL_SCRIPT, offset)
            return
        result = await self.resolver.resolve(step.selectors or [], self._timeout_for(step))
        if isinstance(result, ResolutionTimeout):
            log.warning("Scroll container for step %d not found; skipping (%s)", step.index, result.describe())
            return
        try:
            await result.element.evaluate(ELEMENT_SCROLL_SCRIPT, offset)
        finally:
            await result.element.dispose()

    async def _handle_wait_for_element(self, step: WaitForElementStep) -> None:
        element = await self._resolve_or_fail(step, "element did not appear")
        await element.dispose()

    async def _handle_wait_for_expression(self, step: WaitForExpressionStep) -> None:
        timeout_ms = self._timeout_for(step)
        deadline = time.monotonic() + timeout_ms / 1000
        interval = self.poll_interval_ms / 1000
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                result = await asyncio.wait_for(
                    self.page.evaluate(EXPRESSION_TRUTHY_SCRIPT, step.expression), timeout=remaining
                )
            except (PlaywrightError, asyncio.TimeoutError) as exc:
                log.debug("Expression for step %d not ready: %s", step.index, exc)
                result = None
            if result is True:
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(interval, remaining))
        raise ExpressionTimeout(step.type, f"Expression was not truthy within {timeout_ms} ms")

    async def _handle_set_viewport(self, step: StepBase) -> None:
        log.info("Skipping setViewport step %d; the viewport cannot change from the page", step.index)

    async def _handle_unknown(self, step: StepBase) -> None:
        log.warning("Unknown step type '%s' at index %d; skipped", step.type, step.index)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _timeout_for(self, step: StepBase) -> int:
        if step.timeout_ms is not None:
            return step.timeout_ms
        return self.step_timeout_ms

    async def _resolve_or_fail(self, step: TargetedStep, message: str) -> ElementHandle:
        result = await self.resolver.resolve(step.selectors, self._timeout_for(step))
        if isinstance(result, ResolutionTimeout):
            raise TargetNotFound(step.type, f"Step {step.index + 1}: {message} ({result.describe()})")
        log.debug(
            "Step %d resolved %s via %s after %d poll(s)",
            step.index,
            result.descriptor,
            result.strategy,
            result.polls,
        )
        return result.element

    async def _bring_into_view(self, element: ElementHandle) -> None:
        await element.evaluate(SCROLL_INTO_VIEW_SCRIPT)
        await asyncio.sleep(self.settle_delay_ms / 1000)


__all__ = ["StepInterpreter", "DEFAULT_STEP_TIMEOUT_MS", "DEFAULT_SETTLE_DELAY_MS"]
