# chatgpt_scraper/services/navigation.py
"""
Maps the page location to the conversation currently selected.

Classification order (first match wins):
1. login page URL         -> selection unchanged, login_page event
2. /c/<id> path           -> saved chat <id>
3. temporary chat URL     -> temporary chat
4. "/" without a query    -> new chat
5. anything else          -> no selection

Every location change is published as a location_change event and followed by
an active login probe, except on login pages where the URL alone already
decides the login state.
"""

import logging
import re
from typing import Optional

from chatgpt_scraper.config.settings import ScraperSettings
from chatgpt_scraper.models.types import ChatSelection, Location, RouteKind, RouteMatch
from chatgpt_scraper.services.auth_monitor import AuthMonitor
from chatgpt_scraper.services.events import EventBus, ScraperEvent
from chatgpt_scraper.services.session import Session

# Module logger
logger = logging.getLogger(__name__)

# Login page detection patterns (OpenAI auth and the supported identity providers)
LOGIN_PAGE_PATTERNS = [
    "auth.openai.com",
    "login.live.com",
    "accounts.google.com",
    "appleid.apple.com",
]

_RE_SAVED_CHAT_PATH = re.compile(r"^/c/[^/]+")


def _is_login_page(url: Optional[str]) -> bool:
    """
    Check if the URL is a login page.

    Args:
        url: The current page URL

    Returns:
        True if URL is a login page
    """
    if not url:
        return False
    for pattern in LOGIN_PAGE_PATTERNS:
        if pattern in url:
            return True
    return False


def classify_location(location: Location, settings: ScraperSettings) -> RouteMatch:
    """Classify a location. Pure function of href, pathname and search."""
    if _is_login_page(location.href):
        return RouteMatch(RouteKind.LOGIN)

    if _RE_SAVED_CHAT_PATH.match(location.pathname):
        chat_id = location.pathname.rstrip("/").split("/")[-1]
        return RouteMatch(RouteKind.SAVED_CHAT, chat_id)

    if location.href == settings.temporary_chat_url:
        return RouteMatch(RouteKind.TEMPORARY_CHAT)

    if location.pathname == "/" and not location.search and "?" not in location.href:
        return RouteMatch(RouteKind.NEW_CHAT)

    return RouteMatch(RouteKind.UNKNOWN)


class NavigationTracker:
    """Owns Session.selection"""

    def __init__(self, session: Session, bus: EventBus, auth: AuthMonitor, settings: ScraperSettings):
        self._session = session
        self._bus = bus
        self._auth = auth
        self.settings = settings

    @property
    def selection(self) -> ChatSelection:
        return self._session.selection

    def set_selection(self, selection: ChatSelection) -> None:
        if selection != self._session.selection:
            logger.debug("Chat selection: %s -> %s", self._session.selection, selection)
        self._session.selection = selection

    def classify(self, location: Location) -> RouteMatch:
        return classify_location(location, self.settings)

    async def handle_location_change(self, location: Location) -> None:
        """Location bridge callback, called after every page load or route change."""
        match = self.classify(location)
        logger.info("Location changed: %s (%s)", location.href[:80], match.kind.value)

        if match.kind == RouteKind.LOGIN:
            self._auth.on_login_page()
            self._bus.emit(ScraperEvent.LOGIN_PAGE)
        else:
            self.set_selection(match.to_selection())

        self._bus.emit(ScraperEvent.LOCATION_CHANGE, location)

        if match.kind != RouteKind.LOGIN:
            await self._auth.probe()

    async def refresh(self) -> ChatSelection:
        """
        Re-read the current location and store the classification.

        Does not emit events. Used after a turn, when the final URL decides the
        chat identity (a new chat becomes a saved chat once it has a reply).
        """
        page = self._session.require_page()
        location = await page.current_location()
        selection = self.classify(location).to_selection()
        if selection is not None:
            self.set_selection(selection)
        return self._session.selection
