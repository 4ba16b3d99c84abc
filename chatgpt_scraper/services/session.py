# chatgpt_scraper/services/session.py
"""
Mutable state of one browser session.

A Session is owned by ChatGPTHandler and passed by reference to the auth
monitor, navigation tracker and turn engine. At most one browser and one page
exist per Session.
"""

from dataclasses import dataclass, field
from typing import Optional

from chatgpt_scraper.models.types import AuthState, ChatSelection, LifecycleState
from chatgpt_scraper.services.exceptions import NotInitializedError
from chatgpt_scraper.services.ports import BrowserContextPort, NavigableSession


@dataclass
class Session:
    browser: Optional[BrowserContextPort] = None
    page: Optional[NavigableSession] = None

    # Bearer token latched from the first authorized request ("Bearer eyJ...")
    credential: Optional[str] = None

    auth_state: AuthState = AuthState.UNAUTHENTICATED
    selection: ChatSelection = field(default_factory=ChatSelection.none)
    lifecycle: LifecycleState = LifecycleState.UNINITIALIZED

    @property
    def is_live(self) -> bool:
        return self.browser is not None and self.page is not None

    def require(self) -> tuple[BrowserContextPort, NavigableSession]:
        """
        Return (browser, page) or raise if initialize() was not called.

        Raises:
            NotInitializedError
        """
        if self.browser is None or self.page is None:
            raise NotInitializedError()
        return self.browser, self.page

    def require_page(self) -> NavigableSession:
        return self.require()[1]

    def reset(self) -> None:
        """Forget the browser and every piece of state derived from it."""
        self.browser = None
        self.page = None
        self.credential = None
        self.auth_state = AuthState.UNAUTHENTICATED
        self.selection = ChatSelection.none()
