"""Resolve recorded selector groups to live DOM nodes."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple

from playwright.async_api import ElementHandle, Error as PlaywrightError, Frame, Page

from .resolution import Resolution, ResolutionTimeout, ResolvedTarget

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 100

XPATH_SCRIPT = """
(expression) => document.evaluate(
  expression, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null
).singleNodeValue
"""

ARIA_SCRIPT = """
(label) => {
  const byAttribute = (name) => {
    for (const element of document.querySelectorAll(`[${name}]`)) {
      if (element.getAttribute(name) === label) return element;
    }
    return null;
  };
  return byAttribute('aria-label') || byAttribute('aria-labelledby');
}
"""

CSS_SCRIPT = "(selector) => document.querySelector(selector)"

STRATEGY_PREFIXES: Tuple[Tuple[str, str], ...] = (
    ("xpath/", "xpath"),
    ("aria/", "aria"),
    ("pierce/", "pierce"),
)


def parse_descriptor(descriptor: str) -> Tuple[str, str]:
    """Split a recorder descriptor into ``(strategy, expression)``."""

    for prefix, strategy in STRATEGY_PREFIXES:
        if descriptor.startswith(prefix):
            return strategy, descriptor[len(prefix):]
    return "css", descriptor


class SelectorResolver:
    """Poll selector groups in priority order until one matches or time runs out.

    Only the first alternative of each group is evaluated on a poll; the rest
    of a group are redundant fallbacks produced by the recorder.  Passing
    ``try_all_alternatives=True`` evaluates every alternative of a group
    before moving to the next group.
    """

    def __init__(
        self,
        page: Page | Frame,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        try_all_alternatives: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.page = page
        self.poll_interval_ms = poll_interval_ms
        self.try_all_alternatives = try_all_alternatives
        self._clock = clock

    async def resolve(self, selector_groups: Sequence[Sequence[str]], timeout_ms: int) -> Resolution:
        candidates = self._candidates(selector_groups)
        if not candidates:
            return ResolutionTimeout(timeout_ms=timeout_ms, polls=0, elapsed_ms=0)

        start = self._clock()
        deadline = start + timeout_ms / 1000
        interval = self.poll_interval_ms / 1000
        polls = 0
        while True:
            polls += 1
            for group_index, descriptor in candidates:
                element = await self._try_descriptor(descriptor)
                if element is not None:
                    strategy, _ = parse_descriptor(descriptor)
                    return ResolvedTarget(
                        element=element,
                        descriptor=descriptor,
                        strategy=strategy,
                        group_index=group_index,
                        polls=polls,
                        elapsed_ms=self._elapsed_ms(start),
                    )
            now = self._clock()
            if now >= deadline:
                break
            await asyncio.sleep(min(interval, deadline - now))

        return ResolutionTimeout(
            timeout_ms=timeout_ms,
            polls=polls,
            elapsed_ms=self._elapsed_ms(start),
            descriptors=[descriptor for _, descriptor in candidates],
        )

    def _candidates(self, selector_groups: Sequence[Sequence[str]]) -> List[Tuple[int, str]]:
        candidates: List[Tuple[int, str]] = []
        for group_index, group in enumerate(selector_groups or []):
            alternatives = [item for item in group if item] if group else []
            if not alternatives:
                continue
            if self.try_all_alternatives:
                candidates.extend((group_index, item) for item in alternatives)
            else:
                candidates.append((group_index, alternatives[0]))
        return candidates

    async def _try_descriptor(self, descriptor: str) -> Optional[ElementHandle]:
        try:
            return await self.query(descriptor)
        except PlaywrightError as exc:
            log.debug("Selector %r failed to evaluate: %s", descriptor, exc)
            return None

    async def query(self, descriptor: str) -> Optional[ElementHandle]:
        """Evaluate a single descriptor once; errors propagate."""

        strategy, expression = parse_descriptor(descriptor)
        if strategy == "xpath":
            return await self._evaluate_element(XPATH_SCRIPT, expression)
        if strategy == "aria":
            return await self._evaluate_element(ARIA_SCRIPT, expression)
        if strategy == "pierce":
            # Playwright's css engine descends into open shadow roots.
            return await self.page.query_selector(f"css={expression}")
        return await self._evaluate_element(CSS_SCRIPT, expression)

    async def _evaluate_element(self, script: str, arg: Any) -> Optional[ElementHandle]:
        handle = await self.page.evaluate_handle(script, arg)
        element = handle.as_element()
        if element is None:
            await handle.dispose()
        return element

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._clock() - start) * 1000))


__all__ = ["SelectorResolver", "parse_descriptor", "DEFAULT_POLL_INTERVAL_MS"]
