import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from automation.errors import PageLoadTimeout, TransportError
from replay.page_lifecycle import PlaywrightPageLifecycle


class LoadingPage:
    url = "https://slow.test/"

    def __init__(self, error=None):
        self.error = error
        self.waited = []
        self.closed = False

    async def wait_for_load_state(self, state, timeout=None):
        self.waited.append((state, timeout))
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True
        raise PlaywrightError("Target page, context or browser has been closed")


class OpeningPage:
    def __init__(self, goto_delay=0.0, goto_error=None):
        self.goto_delay = goto_delay
        self.goto_error = goto_error
        self.closed = False

    async def bring_to_front(self):
        pass

    async def goto(self, url, wait_until=None):
        await asyncio.sleep(self.goto_delay)
        if self.goto_error is not None:
            raise self.goto_error

    async def close(self):
        self.closed = True


class SinglePageContext:
    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


def _lifecycle_with(page):
    lifecycle = PlaywrightPageLifecycle(cdp_url="")
    lifecycle.context = SinglePageContext(page)
    return lifecycle


def test_await_load_complete_waits_for_load_event():
    page = LoadingPage()

    asyncio.run(PlaywrightPageLifecycle(cdp_url="").await_load_complete(page, 1500))

    assert page.waited == [("load", 1500)]


def test_exhausted_budget_is_a_load_timeout():
    page = LoadingPage()

    with pytest.raises(PageLoadTimeout):
        asyncio.run(PlaywrightPageLifecycle(cdp_url="").await_load_complete(page, 0))
    assert page.waited == []


def test_playwright_timeout_becomes_load_timeout():
    page = LoadingPage(error=PlaywrightTimeoutError("Timeout 10ms exceeded."))

    with pytest.raises(PageLoadTimeout) as excinfo:
        asyncio.run(PlaywrightPageLifecycle(cdp_url="").await_load_complete(page, 10))

    assert excinfo.value.details == {"url": "https://slow.test/"}


def test_page_crash_becomes_transport_error():
    page = LoadingPage(error=PlaywrightError("Page crashed"))

    with pytest.raises(TransportError):
        asyncio.run(PlaywrightPageLifecycle(cdp_url="").await_load_complete(page, 10))


def test_release_ignores_already_closed_pages():
    page = LoadingPage()

    asyncio.run(PlaywrightPageLifecycle(cdp_url="").release(page))

    assert page.closed


def test_open_and_activate_returns_the_page():
    page = OpeningPage()

    assert asyncio.run(_lifecycle_with(page).open_and_activate("https://fast.test/")) is page
    assert not page.closed


def test_cancelled_open_closes_the_page():
    page = OpeningPage(goto_delay=5)
    lifecycle = _lifecycle_with(page)

    async def scenario():
        await asyncio.wait_for(lifecycle.open_and_activate("https://slow.test/"), timeout=0.02)

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(scenario())
    assert page.closed


@pytest.mark.parametrize(
    "error, expected",
    [
        (PlaywrightTimeoutError("Timeout 30000ms exceeded."), PageLoadTimeout),
        (PlaywrightError("net::ERR_NAME_NOT_RESOLVED"), TransportError),
    ],
)
def test_failed_navigation_closes_the_page(error, expected):
    page = OpeningPage(goto_error=error)

    with pytest.raises(expected):
        asyncio.run(_lifecycle_with(page).open_and_activate("https://broken.test/"))
    assert page.closed
