# chatgpt_scraper/services/chatgpt_handler.py
"""
Public entry point: drives the ChatGPT web UI through a browser session.

ChatGPTHandler owns the Session and composes the auth monitor, navigation
tracker and turn engine around it:

    browser requests  -> AuthMonitor.observe_request
    page locations    -> NavigationTracker.handle_location_change -> AuthMonitor.probe
    generate()        -> TurnEngine (uses NavigationTracker for chat selection)
    state transitions -> EventBus -> listeners registered with on()

All work runs on one event loop; do not call generate() concurrently.
"""

import logging
from typing import Any, Callable, Optional

from chatgpt_scraper.config.settings import ScraperSettings
from chatgpt_scraper.models.types import (
    AuthState,
    ChatPage,
    ChatSelection,
    Cookie,
    GenerateOptions,
    GenerateResult,
    LifecycleState,
    RouteKind,
)
from chatgpt_scraper.services.auth_monitor import AuthMonitor
from chatgpt_scraper.services.conversations import ConversationApi
from chatgpt_scraper.services.events import EventBus, ScraperEvent
from chatgpt_scraper.services.navigation import NavigationTracker
from chatgpt_scraper.services.ports import BrowserDriver
from chatgpt_scraper.services.session import Session
from chatgpt_scraper.services.turn_engine import TurnEngine

# Module logger
logger = logging.getLogger(__name__)


class ChatGPTHandler:
    """
    Handles communication with ChatGPT via a browser.

    Example:
        handler = ChatGPTHandler({"assistantName": "Abbas"})
        handler.on(ScraperEvent.READY, on_ready)
        await handler.initialize()
        result = await handler.generate("hello")
    """

    def __init__(
        self,
        settings: Optional[ScraperSettings | dict] = None,
        driver: Optional[BrowserDriver] = None,
    ):
        if isinstance(settings, ScraperSettings):
            self._settings = settings.merged({})
        else:
            self._settings = ScraperSettings.from_dict(settings)

        if driver is None:
            from chatgpt_scraper.services.playwright_driver import PlaywrightDriver
            driver = PlaywrightDriver()
        self._driver = driver

        self.events = EventBus()
        self._session = Session()
        self._auth = AuthMonitor(self._session, self.events, self._settings)
        self._tracker = NavigationTracker(self._session, self.events, self._auth, self._settings)
        self._conversations = ConversationApi(self._session)
        self._engine = TurnEngine(self._session, self._tracker, self._conversations, self._settings)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def settings(self) -> ScraperSettings:
        """Current settings"""
        return self._settings

    @property
    def lifecycle_state(self) -> LifecycleState:
        return self._session.lifecycle

    @property
    def auth_state(self) -> AuthState:
        return self._session.auth_state

    @property
    def is_ready(self) -> bool:
        """True while the user is logged in"""
        return self._auth.is_authenticated

    def on(self, event: ScraperEvent | str, listener: Callable[..., Any]) -> Callable[[], None]:
        """Register an event listener; returns a function that removes it."""
        return self.events.subscribe(event, listener)

    def once(self, event: ScraperEvent | str, listener: Callable[..., Any]) -> Callable[[], None]:
        return self.events.once(event, listener)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """
        Launch the browser, attach the request and location hooks, open
        ChatGPT and run one login probe.

        Calling it again while initialized does nothing.
        """
        session = self._session
        if session.lifecycle == LifecycleState.READY and session.is_live:
            logger.debug("initialize() called while already initialized")
            return

        session.lifecycle = LifecycleState.INITIALIZING
        try:
            if session.browser is None:
                launch_options = dict(self._settings.browser_launch_options)
                launch_options.setdefault("headless", self._settings.headless)
                session.browser = await self._driver.launch(launch_options)

            if session.page is None:
                page = await session.browser.new_page()
                page.on_outbound_request(self._auth.observe_request)
                await page.on_location_change(self._tracker.handle_location_change)
                session.page = page
                await page.navigate(self._settings.new_chat_url)

            location = await session.page.current_location()
            if self._tracker.classify(location).kind == RouteKind.LOGIN:
                # The login page already marked the session logged out
                logger.info("Opened on the login page, skipping the login check")
                self._auth.on_login_page()
            else:
                await self._auth.probe()
        except Exception:
            logger.exception("Initialization failed")
            await self._release_browser()
            session.lifecycle = LifecycleState.UNINITIALIZED
            raise

        session.lifecycle = LifecycleState.READY
        logger.info("ChatGPT scraper initialized (logged_in=%s)", self.is_ready)
        self.events.emit(ScraperEvent.INITIALIZED)

    async def destroy(self) -> None:
        """
        Close the browser. The instance can be initialized again afterwards.

        Raises:
            NotInitializedError: no browser session exists
        """
        self._session.require()
        await self._release_browser()
        self._session.lifecycle = LifecycleState.DESTROYED
        logger.info("Browser destroyed")
        self.events.emit(ScraperEvent.BROWSER_DESTROYED)

    async def _release_browser(self) -> None:
        browser = self._session.browser
        self._session.reset()
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning("Error closing browser: %s", e)

    async def set_options(self, options: ScraperSettings | dict) -> None:
        """
        Apply new settings by restarting the browser.

        Emits hide/show when the headless flag flips, then options_changed.
        """
        old_settings = self._settings
        if isinstance(options, ScraperSettings):
            new_settings = options.merged({})
        else:
            new_settings = old_settings.merged(options)

        visibility_event = None
        if new_settings.headless and not old_settings.headless:
            visibility_event = ScraperEvent.HIDE
        elif old_settings.headless and not new_settings.headless:
            visibility_event = ScraperEvent.SHOW

        await self._reconfigure(old_settings, new_settings, visibility_event)

    async def show(self) -> None:
        """Restart the browser with a visible window."""
        new_settings = self._settings.merged({"browser_launch_options": {"headless": False}})
        await self._reconfigure(self._settings, new_settings, ScraperEvent.SHOW)

    async def hide(self) -> None:
        """Restart the browser headless."""
        new_settings = self._settings.merged({"browser_launch_options": {"headless": True}})
        await self._reconfigure(self._settings, new_settings, ScraperEvent.HIDE)

    async def _reconfigure(
        self,
        old_settings: ScraperSettings,
        new_settings: ScraperSettings,
        visibility_event: Optional[ScraperEvent],
    ) -> None:
        self._apply_settings(new_settings)

        if self._session.is_live:
            await self.destroy()
        await self.initialize()

        if visibility_event is not None:
            self.events.emit(visibility_event)
        self.events.emit(ScraperEvent.OPTIONS_CHANGED, old_settings.to_dict(), new_settings.to_dict())

    def _apply_settings(self, settings: ScraperSettings) -> None:
        self._settings = settings
        self._auth.settings = settings
        self._tracker.settings = settings
        self._engine.settings = settings

    # =========================================================================
    # Chat selection
    # =========================================================================

    def get_selected_chat(self) -> ChatSelection:
        return self._session.selection

    async def select_new_chat(self) -> None:
        await self._engine.select_new_chat()

    async def select_temporary_chat(self) -> None:
        await self._engine.select_temporary_chat()

    async def select_chat(self, chat_id: str) -> None:
        await self._engine.select_chat(chat_id)

    async def reload_chat_page(self, chat_id: Optional[str] = None) -> ChatSelection:
        return await self._engine.reload_chat_page(chat_id)

    async def create_chat(self) -> str:
        """Create a saved chat and return its id."""
        return await self._engine.create_chat()

    # =========================================================================
    # Turns
    # =========================================================================

    async def wait_for_load(self) -> None:
        await self._engine.wait_for_load()

    async def generate(self, prompt: str, options: Optional[GenerateOptions | dict] = None) -> GenerateResult:
        """
        Send `prompt` and return the parsed reply and the chat id.

        Options may be a GenerateOptions or a dict with the keys search, rules,
        upload_files (uploadFiles) and target_chat_id (chatId).
        """
        if isinstance(options, dict):
            options = _options_from_dict(options)
        return await self._engine.generate(prompt, options)

    # =========================================================================
    # Credentials and backend helpers
    # =========================================================================

    def get_authorization_string(self) -> Optional[str]:
        """Bearer token seen on the page ("Bearer eyJ..."), or None."""
        return self._session.credential

    async def get_cookies(self) -> list[Cookie]:
        browser, _ = self._session.require()
        return await browser.cookies()

    async def get_chats(self, offset: int = 0, limit: int = 28) -> Optional[ChatPage]:
        await self._engine.wait_for_load()
        return await self._conversations.list_chats(offset, limit)

    async def get_chat(self, chat_id: str) -> Optional[dict]:
        return await self._conversations.get_chat(chat_id)

    async def delete_chat(self, chat_id: str) -> bool:
        return await self._conversations.delete_chat(chat_id)


def _options_from_dict(data: dict) -> GenerateOptions:
    return GenerateOptions(
        search=bool(data.get("search", False)),
        rules=data.get("rules"),
        upload_files=list(data.get("upload_files") or data.get("uploadFiles") or []),
        target_chat_id=data.get("target_chat_id") or data.get("chatId"),
    )
