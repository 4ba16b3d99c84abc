# chatgpt_scraper/services/playwright_driver.py
"""
Playwright implementation of the capability ports.

Playwright is imported lazily so the scraper core (and its tests) can be used
without the browser binaries installed.
"""

import asyncio
import logging
import threading
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urlsplit

from chatgpt_scraper.models.types import Cookie, Location
from chatgpt_scraper.services.ports import (
    BrowserContextPort,
    BrowserDriver,
    FileChooserPort,
    LocationHandler,
    NavigableSession,
    RequestHandler,
)

# Module logger
logger = logging.getLogger(__name__)

# Name of the host function the location bridge calls from the page
LOCATION_BINDING_NAME = "__chatgptScraperLocationChanged"

# Reports the location once per document and after every history API route change
_JS_LOCATION_BRIDGE = '''(() => {
    if (window !== window.top) return;
    const bindingName = "%s";
    let lastHref = null;
    const report = () => {
        if (location.href === lastHref) return;
        lastHref = location.href;
        const send = window[bindingName];
        if (typeof send === "function") {
            send({href: location.href, pathname: location.pathname, search: location.search});
        }
    };
    for (const name of ["pushState", "replaceState"]) {
        const original = history[name];
        history[name] = function (...args) {
            const result = original.apply(this, args);
            report();
            return result;
        };
    }
    window.addEventListener("popstate", report);
    report();
})();''' % LOCATION_BINDING_NAME

_JS_CURRENT_LOCATION = "() => ({href: location.href, pathname: location.pathname, search: location.search})"

_JS_INNER_TEXTS = "elements => elements.map(element => element.innerText || '')"


class PlaywrightManager:
    """
    Thread-safe singleton for the lazy Playwright import.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._async_playwright = None
                    cls._instance._error_types = None
                    cls._instance._initialized = False
        return cls._instance

    def _ensure_initialized(self):
        """Lazy initialization of Playwright imports."""
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    from playwright.async_api import (
                        async_playwright,
                        TimeoutError as PlaywrightTimeoutError,
                        Error as PlaywrightError,
                    )
                    self._async_playwright = async_playwright
                    self._error_types = {
                        'TimeoutError': PlaywrightTimeoutError,
                        'Error': PlaywrightError,
                    }
                    self._initialized = True

    def get_async_playwright(self):
        """Get async_playwright function."""
        self._ensure_initialized()
        return self._async_playwright

    def get_error_types(self):
        """Get Playwright error types for exception handling."""
        self._ensure_initialized()
        return self._error_types


# Global singleton instance
_playwright_manager = PlaywrightManager()


def _get_playwright_errors():
    return _playwright_manager.get_error_types()


class PlaywrightFileChooser(FileChooserPort):
    def __init__(self, file_chooser):
        self._file_chooser = file_chooser

    async def accept(self, paths: Sequence[str]) -> None:
        await self._file_chooser.set_files(list(paths))


class PlaywrightPage(NavigableSession):
    """NavigableSession over a playwright.async_api.Page"""

    PAGE_GOTO_TIMEOUT_MS = 30000
    CLICK_TIMEOUT_MS = 5000

    # Max wait for the location handler after goto() resolves
    LOCATION_SETTLE_TIMEOUT_MS = 10000

    def __init__(self, page):
        self._page = page
        self._location_handler: Optional[LocationHandler] = None
        # Set once the location handler has finished for the current navigation
        self._location_settled: Optional[asyncio.Event] = None

    @property
    def raw(self):
        """The underlying Playwright page"""
        return self._page

    async def navigate(self, url: str) -> None:
        """
        Open `url` and wait until the location handler has processed the new
        document, so the caller never runs ahead of the route classification.
        """
        logger.debug("Navigating to %s", url)
        settled = asyncio.Event() if self._location_handler is not None else None
        self._location_settled = settled
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=self.PAGE_GOTO_TIMEOUT_MS)
            if settled is not None:
                try:
                    await asyncio.wait_for(settled.wait(), timeout=self.LOCATION_SETTLE_TIMEOUT_MS / 1000)
                except asyncio.TimeoutError:
                    logger.warning("Location handler did not report %s within %dms",
                                   url, self.LOCATION_SETTLE_TIMEOUT_MS)
        finally:
            if self._location_settled is settled:
                self._location_settled = None

    async def current_location(self) -> Location:
        PlaywrightError = _get_playwright_errors()['Error']
        try:
            data = await self._page.evaluate(_JS_CURRENT_LOCATION)
        except PlaywrightError as e:
            # Page may be mid-navigation; fall back to the cached URL
            logger.debug("Reading location via JS failed, using page.url: %s", e)
            return _location_from_url(self._page.url)
        return Location.from_dict(data or {})

    async def wait_for_element(self, selector: str, timeout_ms: int) -> bool:
        PlaywrightTimeoutError = _get_playwright_errors()['TimeoutError']
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms, state="attached")
            return True
        except PlaywrightTimeoutError:
            logger.debug("Timed out waiting for %s (%dms)", selector, timeout_ms)
            return False

    async def element_exists(self, selector: str) -> bool:
        PlaywrightError = _get_playwright_errors()['Error']
        try:
            element = await self._page.query_selector(selector)
            return bool(element) and await element.is_visible()
        except PlaywrightError as e:
            logger.debug("Selector check failed (%s): %s", selector, e)
            return False

    async def count_elements(self, selector: str) -> int:
        PlaywrightError = _get_playwright_errors()['Error']
        try:
            return len(await self._page.query_selector_all(selector))
        except PlaywrightError as e:
            logger.debug("Selector count failed (%s): %s", selector, e)
            return 0

    async def inner_texts(self, selector: str) -> list[str]:
        PlaywrightError = _get_playwright_errors()['Error']
        try:
            return await self._page.eval_on_selector_all(selector, _JS_INNER_TEXTS)
        except PlaywrightError as e:
            logger.debug("Reading texts failed (%s): %s", selector, e)
            return []

    async def click(self, selector: str) -> bool:
        error_types = _get_playwright_errors()
        PlaywrightError = error_types['Error']

        element = await self._page.query_selector(selector)
        if not element:
            return False
        try:
            await element.click(timeout=self.CLICK_TIMEOUT_MS)
        except PlaywrightError as e:
            # Overlays can make the actionability checks fail; a JS click still works
            logger.debug("Native click failed (%s), using JS click: %s", selector, e)
            await element.evaluate('el => el.click()')
        return True

    async def type_text(self, selector: str, text: str, delay_ms: int = 0) -> None:
        await self._page.locator(selector).first.press_sequentially(text, delay=delay_ms)

    async def evaluate(self, script: str, *args: Any) -> Any:
        if args:
            return await self._page.evaluate(script, list(args))
        return await self._page.evaluate(script)

    async def wait_for_file_chooser(self, timeout_ms: int) -> FileChooserPort:
        file_chooser = await self._page.wait_for_event("filechooser", timeout=timeout_ms)
        return PlaywrightFileChooser(file_chooser)

    def on_outbound_request(self, handler: RequestHandler) -> None:
        def _on_request(request) -> None:
            try:
                handler(request.headers)
            except Exception as e:
                logger.error("Request handler failed for %s: %s", request.url[:80], e)

        self._page.on("request", _on_request)

    async def on_location_change(self, handler: LocationHandler) -> None:
        async def _binding(source, data) -> None:
            # Iframes (sentinel, analytics) run the bridge too; only the top document counts
            frame = source.get("frame") if isinstance(source, dict) else None
            if frame is not self._page.main_frame:
                logger.debug("Ignoring location report from a child frame: %s", (data or {}).get("href"))
                return

            settled = self._location_settled
            try:
                await handler(Location.from_dict(data or {}))
            except Exception as e:
                logger.error("Location handler failed: %s", e)
            finally:
                if settled is not None:
                    settled.set()

        self._location_handler = handler
        await self._page.expose_binding(LOCATION_BINDING_NAME, _binding)
        await self._page.add_init_script(_JS_LOCATION_BRIDGE)


class PlaywrightBrowser(BrowserContextPort):
    """A launched browser plus its (single) context"""

    def __init__(self, playwright, browser, context):
        self._playwright = playwright
        self._browser = browser
        self._context = context

    async def new_page(self) -> NavigableSession:
        # Persistent contexts start with one blank tab; reuse it
        pages = self._context.pages
        page = pages[0] if pages else await self._context.new_page()
        return PlaywrightPage(page)

    async def cookies(self) -> list[Cookie]:
        return [Cookie.from_dict(cookie) for cookie in await self._context.cookies()]

    async def close(self) -> None:
        PlaywrightError = _get_playwright_errors()['Error']
        try:
            await self._context.close()
        except PlaywrightError as e:
            logger.debug("Error closing context: %s", e)
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.debug("Error closing browser: %s", e)
        try:
            await self._playwright.stop()
        except PlaywrightError as e:
            logger.debug("Error stopping Playwright: %s", e)


class PlaywrightDriver(BrowserDriver):
    """
    Launches Chromium (or another Playwright browser type) with the
    browser_launch_options of the settings.

    Recognized keys besides Playwright's own launch() arguments:
        browser: "chromium" (default), "firefox" or "webkit"
        user_data_dir: profile directory; keeps the login between runs
    """

    async def launch(self, launch_options: Mapping[str, Any]) -> BrowserContextPort:
        options = dict(launch_options)
        browser_name = options.pop("browser", "chromium")
        user_data_dir: Optional[str] = options.pop("user_data_dir", None) or options.pop("userDataDir", None)

        async_playwright = _playwright_manager.get_async_playwright()
        playwright = await async_playwright().start()
        browser_type = getattr(playwright, browser_name)

        logger.info("Launching %s (headless=%s, profile=%s)",
                    browser_name, options.get("headless"), user_data_dir or "(ephemeral)")
        try:
            if user_data_dir:
                context = await browser_type.launch_persistent_context(str(user_data_dir), **options)
                return PlaywrightBrowser(playwright, None, context)
            browser = await browser_type.launch(**options)
            context = await browser.new_context()
            return PlaywrightBrowser(playwright, browser, context)
        except Exception:
            await playwright.stop()
            raise


def _location_from_url(url: str) -> Location:
    parts = urlsplit(url or "")
    return Location(
        href=url or "",
        pathname=parts.path or "/",
        search=f"?{parts.query}" if parts.query else "",
    )
