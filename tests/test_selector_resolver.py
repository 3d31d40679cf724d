import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from fake_page import FakePage
from replay.resolution import ResolutionTimeout, ResolvedTarget
from replay.selector_resolver import SelectorResolver, parse_descriptor


def _resolve(page, groups, timeout_ms=200, **kwargs):
    resolver = SelectorResolver(page, poll_interval_ms=10, **kwargs)
    return asyncio.run(resolver.resolve(groups, timeout_ms))


@pytest.mark.parametrize(
    "descriptor, expected",
    [
        ("xpath///button[1]", ("xpath", "//button[1]")),
        ("aria/Submit order", ("aria", "Submit order")),
        ("pierce/#shadow-button", ("pierce", "#shadow-button")),
        ("#plain > .css", ("css", "#plain > .css")),
    ],
)
def test_parse_descriptor(descriptor, expected):
    assert parse_descriptor(descriptor) == expected


def test_empty_groups_resolve_to_timeout_without_polling():
    page = FakePage()

    result = _resolve(page, [], timeout_ms=5000)

    assert isinstance(result, ResolutionTimeout)
    assert result.polls == 0
    assert result.elapsed_ms == 0
    assert result.describe() == "No selectors to resolve"
    assert page.query_log == []


def test_groups_without_alternatives_count_as_empty():
    result = _resolve(FakePage(), [[], [""]], timeout_ms=5000)

    assert isinstance(result, ResolutionTimeout)
    assert result.polls == 0


def test_first_poll_match_is_immediate():
    page = FakePage()
    page.add("css", "#go", "go")

    result = _resolve(page, [["#go"]])

    assert isinstance(result, ResolvedTarget)
    assert result.found
    assert result.element.name == "go"
    assert result.polls == 1
    assert result.strategy == "css"
    assert result.group_index == 0


@pytest.mark.parametrize(
    "descriptor, key",
    [
        ("xpath///main/button", ("xpath", "//main/button")),
        ("aria/Checkout", ("aria", "Checkout")),
        ("pierce/#inner", ("pierce", "#inner")),
        ("button.primary", ("css", "button.primary")),
    ],
)
def test_each_strategy_reaches_its_lookup(descriptor, key):
    page = FakePage()
    page.add(*key, name="target")

    result = _resolve(page, [[descriptor]])

    assert isinstance(result, ResolvedTarget)
    assert result.strategy == key[0]
    assert page.query_log == [key]


def test_groups_are_tried_in_priority_order():
    page = FakePage()
    page.add("css", "#first", "first")
    page.add("css", "#second", "second")

    result = _resolve(page, [["#missing"], ["#second"], ["#first"]])

    assert result.element.name == "second"
    assert result.group_index == 1


def test_only_first_alternative_of_each_group_is_used():
    page = FakePage()
    page.add("css", "#fallback", "fallback")

    result = _resolve(page, [["#missing", "#fallback"]], timeout_ms=30)

    assert isinstance(result, ResolutionTimeout)
    assert set(page.query_log) == {("css", "#missing")}
    assert result.descriptors == ["#missing"]


def test_try_all_alternatives_walks_the_whole_group():
    page = FakePage()
    page.add("css", "#fallback", "fallback")

    result = _resolve(page, [["#missing", "#fallback"]], try_all_alternatives=True)

    assert isinstance(result, ResolvedTarget)
    assert result.descriptor == "#fallback"
    assert result.group_index == 0


def test_late_element_is_found_on_a_later_poll():
    page = FakePage()
    page.add("css", "#late", "late", appear_after=2)

    result = _resolve(page, [["#late"]], timeout_ms=1000)

    assert isinstance(result, ResolvedTarget)
    assert result.polls == 3


def test_evaluation_errors_count_as_no_match():
    page = FakePage()
    page.broken.add(("xpath", "//[broken"))
    page.add("css", "#ok", "ok")

    result = _resolve(page, [["xpath///[broken"], ["#ok"]])

    assert isinstance(result, ResolvedTarget)
    assert result.element.name == "ok"


def test_timeout_reports_polls_and_descriptors():
    page = FakePage()

    result = _resolve(page, [["#nope"], ["aria/Nope"]], timeout_ms=50)

    assert isinstance(result, ResolutionTimeout)
    assert result.polls >= 2
    assert result.timeout_ms == 50
    assert result.descriptors == ["#nope", "aria/Nope"]
    assert "No element matched [#nope, aria/Nope] within 50 ms" == result.describe()


def test_query_propagates_errors():
    page = FakePage()
    page.broken.add(("css", "##"))
    resolver = SelectorResolver(page)

    with pytest.raises(PlaywrightError):
        asyncio.run(resolver.query("##"))
