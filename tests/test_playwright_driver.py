# tests/test_playwright_driver.py
"""Tests for chatgpt_scraper.services.playwright_driver (Playwright objects are mocked)"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from chatgpt_scraper.models.types import Cookie, Location
from chatgpt_scraper.services import playwright_driver
from chatgpt_scraper.services.playwright_driver import (
    LOCATION_BINDING_NAME,
    PlaywrightBrowser,
    PlaywrightDriver,
    PlaywrightPage,
    _location_from_url,
)


class FakePlaywrightError(Exception):
    pass


class FakePlaywrightTimeoutError(FakePlaywrightError):
    pass


@pytest.fixture(autouse=True)
def playwright_errors():
    errors = {'Error': FakePlaywrightError, 'TimeoutError': FakePlaywrightTimeoutError}
    with patch.object(playwright_driver, '_get_playwright_errors', return_value=errors):
        yield errors


@pytest.fixture
def raw_page():
    page = MagicMock()
    page.url = "https://chatgpt.com/c/abc?x=1"
    page.goto = AsyncMock()
    page.evaluate = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.query_selector = AsyncMock()
    page.query_selector_all = AsyncMock(return_value=[])
    page.eval_on_selector_all = AsyncMock(return_value=[])
    page.wait_for_event = AsyncMock()
    page.expose_binding = AsyncMock()
    page.add_init_script = AsyncMock()
    return page


@pytest.fixture
def pw_page(raw_page):
    return PlaywrightPage(raw_page)


class TestPlaywrightPage:
    """Test PlaywrightPage"""

    @pytest.mark.asyncio
    async def test_navigate(self, pw_page, raw_page):
        await pw_page.navigate("https://chatgpt.com/")

        raw_page.goto.assert_awaited_once_with(
            "https://chatgpt.com/", wait_until="domcontentloaded", timeout=PlaywrightPage.PAGE_GOTO_TIMEOUT_MS
        )

    @pytest.mark.asyncio
    async def test_current_location(self, pw_page, raw_page):
        raw_page.evaluate.return_value = {"href": "https://chatgpt.com/c/abc", "pathname": "/c/abc", "search": ""}

        location = await pw_page.current_location()

        assert location == Location("https://chatgpt.com/c/abc", "/c/abc", "")

    @pytest.mark.asyncio
    async def test_current_location_falls_back_to_url(self, pw_page, raw_page):
        """Mid-navigation evaluate failures use the cached page URL"""
        raw_page.evaluate.side_effect = FakePlaywrightError("Execution context was destroyed")

        location = await pw_page.current_location()

        assert location == Location("https://chatgpt.com/c/abc?x=1", "/c/abc", "?x=1")

    @pytest.mark.asyncio
    async def test_wait_for_element(self, pw_page, raw_page):
        assert await pw_page.wait_for_element("#prompt-textarea", 1000) is True

        raw_page.wait_for_selector.side_effect = FakePlaywrightTimeoutError("timeout")
        assert await pw_page.wait_for_element("#prompt-textarea", 1000) is False

    @pytest.mark.asyncio
    async def test_element_exists(self, pw_page, raw_page):
        element = MagicMock()
        element.is_visible = AsyncMock(return_value=True)
        raw_page.query_selector.return_value = element

        assert await pw_page.element_exists("button") is True

        raw_page.query_selector.return_value = None
        assert await pw_page.element_exists("button") is False

    @pytest.mark.asyncio
    async def test_count_elements(self, pw_page, raw_page):
        raw_page.query_selector_all.return_value = [MagicMock(), MagicMock()]

        assert await pw_page.count_elements("div") == 2

    @pytest.mark.asyncio
    async def test_inner_texts_error(self, pw_page, raw_page):
        raw_page.eval_on_selector_all.side_effect = FakePlaywrightError("detached")

        assert await pw_page.inner_texts("div") == []

    @pytest.mark.asyncio
    async def test_click_missing_element(self, pw_page, raw_page):
        raw_page.query_selector.return_value = None

        assert await pw_page.click("button") is False

    @pytest.mark.asyncio
    async def test_click_falls_back_to_js(self, pw_page, raw_page):
        element = MagicMock()
        element.click = AsyncMock(side_effect=FakePlaywrightError("element is not visible"))
        element.evaluate = AsyncMock()
        raw_page.query_selector.return_value = element

        assert await pw_page.click("button") is True
        element.evaluate.assert_awaited_once_with('el => el.click()')

    @pytest.mark.asyncio
    async def test_type_text(self, pw_page, raw_page):
        first = MagicMock()
        first.press_sequentially = AsyncMock()
        raw_page.locator.return_value.first = first

        await pw_page.type_text("#prompt-textarea", "hello", delay_ms=20)

        raw_page.locator.assert_called_once_with("#prompt-textarea")
        first.press_sequentially.assert_awaited_once_with("hello", delay=20)

    @pytest.mark.asyncio
    async def test_evaluate_passes_args_as_array(self, pw_page, raw_page):
        await pw_page.evaluate("([a, b]) => a + b", 1, 2)

        raw_page.evaluate.assert_awaited_once_with("([a, b]) => a + b", [1, 2])

    @pytest.mark.asyncio
    async def test_file_chooser(self, pw_page, raw_page):
        chooser = MagicMock()
        chooser.set_files = AsyncMock()
        raw_page.wait_for_event.return_value = chooser

        port = await pw_page.wait_for_file_chooser(5000)
        await port.accept(("/tmp/a.txt",))

        raw_page.wait_for_event.assert_awaited_once_with("filechooser", timeout=5000)
        chooser.set_files.assert_awaited_once_with(["/tmp/a.txt"])

    def test_outbound_request_hook(self, pw_page, raw_page):
        handler = MagicMock()
        pw_page.on_outbound_request(handler)

        event_name, callback = raw_page.on.call_args.args
        request = MagicMock()
        request.headers = {"authorization": "Bearer abc"}
        callback(request)

        assert event_name == "request"
        handler.assert_called_once_with({"authorization": "Bearer abc"})

    def test_outbound_request_handler_error_contained(self, pw_page, raw_page):
        pw_page.on_outbound_request(MagicMock(side_effect=RuntimeError("bug")))

        _, callback = raw_page.on.call_args.args
        request = MagicMock()
        request.url = "https://chatgpt.com/backend-api/me"
        callback(request)

    @pytest.mark.asyncio
    async def test_location_bridge(self, pw_page, raw_page):
        handler = AsyncMock()

        await pw_page.on_location_change(handler)

        name, binding = raw_page.expose_binding.call_args.args
        assert name == LOCATION_BINDING_NAME
        assert LOCATION_BINDING_NAME in raw_page.add_init_script.call_args.args[0]

        await binding({"frame": raw_page.main_frame}, {"href": "https://chatgpt.com/", "pathname": "/", "search": ""})
        handler.assert_awaited_once_with(Location("https://chatgpt.com/", "/", ""))

    @pytest.mark.asyncio
    async def test_location_bridge_ignores_child_frames(self, pw_page, raw_page):
        """Iframe documents do not reset the tracked location"""
        handler = AsyncMock()
        await pw_page.on_location_change(handler)
        _, binding = raw_page.expose_binding.call_args.args

        await binding({"frame": MagicMock()}, {
            "href": "https://tcr9i.chat.openai.com/frame", "pathname": "/frame", "search": "",
        })

        handler.assert_not_awaited()
        assert "window !== window.top" in raw_page.add_init_script.call_args.args[0]

    @pytest.mark.asyncio
    async def test_navigate_waits_for_location_handler(self, pw_page, raw_page):
        """The bridge reports after goto() resolves; navigate returns only once it was handled"""
        handled = []

        async def handler(location):
            await asyncio.sleep(0)
            handled.append(location)

        await pw_page.on_location_change(handler)
        _, binding = raw_page.expose_binding.call_args.args
        data = {"href": "https://chatgpt.com/c/abc", "pathname": "/c/abc", "search": ""}
        reports = []

        async def goto(url, **kwargs):
            loop = asyncio.get_running_loop()
            loop.call_later(0.01, lambda: reports.append(
                asyncio.ensure_future(binding({"frame": raw_page.main_frame}, data))
            ))

        raw_page.goto.side_effect = goto

        await pw_page.navigate("https://chatgpt.com/c/abc")

        assert handled == [Location("https://chatgpt.com/c/abc", "/c/abc", "")]

    @pytest.mark.asyncio
    async def test_navigate_settle_timeout(self, pw_page, raw_page):
        """A document that never reports does not block navigate forever"""
        await pw_page.on_location_change(AsyncMock())

        with patch.object(PlaywrightPage, 'LOCATION_SETTLE_TIMEOUT_MS', 10):
            await pw_page.navigate("https://chatgpt.com/")

        raw_page.goto.assert_awaited_once()


class TestPlaywrightBrowser:
    """Test PlaywrightBrowser"""

    @pytest.fixture
    def context(self):
        context = MagicMock()
        context.pages = []
        context.new_page = AsyncMock(return_value=MagicMock())
        context.cookies = AsyncMock(return_value=[
            {"name": "__Secure-next-auth.session-token", "domain": ".chatgpt.com", "value": "t", "path": "/"},
        ])
        context.close = AsyncMock()
        return context

    @pytest.mark.asyncio
    async def test_reuses_existing_tab(self, context):
        existing = MagicMock()
        context.pages = [existing]
        browser = PlaywrightBrowser(MagicMock(), None, context)

        page = await browser.new_page()

        assert page.raw is existing
        context.new_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_opens_tab(self, context):
        browser = PlaywrightBrowser(MagicMock(), None, context)

        await browser.new_page()

        context.new_page.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cookies(self, context):
        browser = PlaywrightBrowser(MagicMock(), None, context)

        assert await browser.cookies() == [Cookie("__Secure-next-auth.session-token", ".chatgpt.com", "t")]

    @pytest.mark.asyncio
    async def test_close(self, context):
        playwright = MagicMock()
        playwright.stop = AsyncMock()
        raw_browser = MagicMock()
        raw_browser.close = AsyncMock(side_effect=FakePlaywrightError("already closed"))

        await PlaywrightBrowser(playwright, raw_browser, context).close()

        context.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()


class TestPlaywrightDriver:
    """Test PlaywrightDriver.launch()"""

    @pytest.fixture
    def playwright(self):
        playwright = MagicMock()
        playwright.stop = AsyncMock()
        playwright.chromium.launch_persistent_context = AsyncMock(return_value=MagicMock())
        raw_browser = MagicMock()
        raw_browser.new_context = AsyncMock(return_value=MagicMock())
        playwright.chromium.launch = AsyncMock(return_value=raw_browser)
        return playwright

    @pytest.fixture
    def async_playwright(self, playwright):
        starter = MagicMock()
        starter.start = AsyncMock(return_value=playwright)
        with patch.object(playwright_driver._playwright_manager, 'get_async_playwright',
                          return_value=MagicMock(return_value=starter)):
            yield starter

    @pytest.mark.asyncio
    async def test_persistent_profile(self, async_playwright, playwright):
        await PlaywrightDriver().launch({"headless": False, "user_data_dir": "/tmp/profile"})

        playwright.chromium.launch_persistent_context.assert_awaited_once_with("/tmp/profile", headless=False)
        playwright.chromium.launch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ephemeral_browser(self, async_playwright, playwright):
        await PlaywrightDriver().launch({"headless": True, "args": ["--lang=en"]})

        playwright.chromium.launch.assert_awaited_once_with(headless=True, args=["--lang=en"])

    @pytest.mark.asyncio
    async def test_launch_failure_stops_playwright(self, async_playwright, playwright):
        playwright.chromium.launch.side_effect = RuntimeError("Executable doesn't exist")

        with pytest.raises(RuntimeError):
            await PlaywrightDriver().launch({"headless": True})

        playwright.stop.assert_awaited_once()


class TestLocationFromUrl:
    def test_parts(self):
        assert _location_from_url("https://chatgpt.com/?temporary-chat=true") == Location(
            "https://chatgpt.com/?temporary-chat=true", "/", "?temporary-chat=true"
        )

    def test_empty(self):
        assert _location_from_url("") == Location("", "/", "")
