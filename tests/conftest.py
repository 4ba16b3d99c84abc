from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urlsplit

import pytest


# Ensure the project root is importable when running `pytest` via its entrypoint
# (e.g., `uv run --extra test pytest`), where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from chatgpt_scraper.config.settings import ScraperSettings, UiSelectors  # noqa: E402
from chatgpt_scraper.models.types import Cookie, Location  # noqa: E402
from chatgpt_scraper.services.auth_monitor import AuthMonitor  # noqa: E402
from chatgpt_scraper.services.conversations import ConversationApi  # noqa: E402
from chatgpt_scraper.services.events import EventBus  # noqa: E402
from chatgpt_scraper.services.navigation import NavigationTracker  # noqa: E402
from chatgpt_scraper.services.ports import (  # noqa: E402
    BrowserContextPort,
    BrowserDriver,
    FileChooserPort,
    NavigableSession,
)
from chatgpt_scraper.services.session import Session  # noqa: E402
from chatgpt_scraper.services.turn_engine import TurnEngine, _enabled_selector  # noqa: E402


SELECTORS = UiSelectors()
ENABLED_SEND_BUTTON = _enabled_selector(SELECTORS.send_button)
SESSION_COOKIE = Cookie("__Secure-next-auth.session-token", ".chatgpt.com", "token")


def location_from_url(url: str) -> Location:
    parts = urlsplit(url)
    return Location(href=url, pathname=parts.path or "/", search=f"?{parts.query}" if parts.query else "")


class FakeFileChooser(FileChooserPort):
    def __init__(self):
        self.accepted: list[list[str]] = []

    async def accept(self, paths: Sequence[str]) -> None:
        self.accepted.append(list(paths))


class FakePage(NavigableSession):
    """In-memory tab. Tests mutate the public attributes to shape the page."""

    def __init__(self, href: str = "about:blank"):
        self.location = location_from_url(href)
        self.navigations: list[str] = []
        self.attached: set[str] = {SELECTORS.prompt_input}
        self.visible: set[str] = {ENABLED_SEND_BUTTON}
        self.counts: dict[str, int] = {}
        self.texts: dict[str, list[str]] = {}
        self.unclickable: set[str] = set()
        self.clicks: list[str] = []
        self.typed: list[tuple[str, str, int]] = []
        self.evaluations: list[tuple[str, tuple]] = []
        self.api_responses: dict[tuple[str, str], dict] = {}
        self.file_chooser = FakeFileChooser()
        self.file_chooser_error: Optional[Exception] = None
        self.request_handler = None
        self.location_handler = None
        # Final URL after the next navigation (server-side redirect)
        self.redirects: dict[str, str] = {}

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self.location = location_from_url(self.redirects.get(url, url))
        if self.location_handler is not None:
            await self.location_handler(self.location)

    async def current_location(self) -> Location:
        return self.location

    async def wait_for_element(self, selector: str, timeout_ms: int) -> bool:
        return selector in self.attached

    async def element_exists(self, selector: str) -> bool:
        return selector in self.visible

    async def count_elements(self, selector: str) -> int:
        return self.counts.get(selector, 0)

    async def inner_texts(self, selector: str) -> list[str]:
        return list(self.texts.get(selector, []))

    async def click(self, selector: str) -> bool:
        if selector in self.unclickable:
            return False
        self.clicks.append(selector)
        return True

    async def type_text(self, selector: str, text: str, delay_ms: int = 0) -> None:
        self.typed.append((selector, text, delay_ms))

    async def evaluate(self, script: str, *args: Any) -> Any:
        self.evaluations.append((script, args))
        if len(args) == 4:
            endpoint, method = args[0], args[1]
            return self.api_responses.get((method, endpoint), {"ok": False, "status": 404, "body": None})
        return 1

    async def wait_for_file_chooser(self, timeout_ms: int) -> FileChooserPort:
        if self.file_chooser_error is not None:
            raise self.file_chooser_error
        return self.file_chooser

    def on_outbound_request(self, handler) -> None:
        self.request_handler = handler

    async def on_location_change(self, handler) -> None:
        self.location_handler = handler

    def send_request(self, headers: Mapping[str, str]) -> None:
        """Simulate an outgoing request from the page."""
        if self.request_handler is not None:
            self.request_handler(headers)


class FakeBrowser(BrowserContextPort):
    def __init__(self, page: Optional[FakePage] = None, cookies: Optional[list[Cookie]] = None):
        self.page = page or FakePage()
        self.cookie_jar: list[Cookie] = list(cookies or [])
        self.closed = False

    async def new_page(self) -> NavigableSession:
        return self.page

    async def cookies(self) -> list[Cookie]:
        return list(self.cookie_jar)

    async def close(self) -> None:
        self.closed = True


class FakeDriver(BrowserDriver):
    """Launches a fresh FakeBrowser per call; cookies are shared like a persistent profile."""

    def __init__(self, cookies: Optional[list[Cookie]] = None):
        self.cookie_jar: list[Cookie] = list(cookies or [])
        self.launches: list[dict] = []
        self.browsers: list[FakeBrowser] = []
        self.launch_error: Optional[Exception] = None

    async def launch(self, launch_options: Mapping[str, Any]) -> BrowserContextPort:
        self.launches.append(dict(launch_options))
        if self.launch_error is not None:
            raise self.launch_error
        browser = FakeBrowser(cookies=self.cookie_jar)
        self.browsers.append(browser)
        return browser

    @property
    def browser(self) -> Optional[FakeBrowser]:
        return self.browsers[-1] if self.browsers else None


@pytest.fixture
def settings():
    """Settings with zero delays so polling loops run instantly"""
    return ScraperSettings(
        response_poll_interval=0,
        send_button_poll_interval=0,
        input_timeout_ms=10,
        login_probe_retries=1,
        login_probe_delay_ms=0,
        browser_launch_options={"headless": True},
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def page():
    return FakePage("https://chatgpt.com/")


@pytest.fixture
def browser(page):
    return FakeBrowser(page)


@pytest.fixture
def session(browser, page):
    """Session with a live browser and page"""
    return Session(browser=browser, page=page)


@pytest.fixture
def auth(session, bus, settings):
    return AuthMonitor(session, bus, settings)


@pytest.fixture
def tracker(session, bus, auth, settings):
    return NavigationTracker(session, bus, auth, settings)


@pytest.fixture
def conversations(session):
    return ConversationApi(session)


@pytest.fixture
def engine(session, tracker, conversations, settings):
    return TurnEngine(session, tracker, conversations, settings)


@pytest.fixture
def driver():
    return FakeDriver()
