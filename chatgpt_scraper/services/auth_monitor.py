# chatgpt_scraper/services/auth_monitor.py
"""
Login state detection.

Two sources of evidence:
1. Passive: every outgoing request is inspected. The first one carrying an
   Authorization header latches the credential and marks the session as
   logged in, often before the UI has finished rendering.
2. Active: the session cookie is looked up in the cookie jar through the
   bounded retry primitive. No cookie after the retry budget means logged out.

A login page URL reported by the navigation tracker forces the logged-out
state immediately.

ready / disconnected are emitted on edges only; repeated observations of the
same state are no-ops.
"""

import logging
import re
from typing import Mapping, Optional

from chatgpt_scraper.config.settings import ScraperSettings
from chatgpt_scraper.models.types import AuthState, RetryPolicy
from chatgpt_scraper.services.events import EventBus, ScraperEvent
from chatgpt_scraper.services.polling import polling
from chatgpt_scraper.services.session import Session

# Module logger
logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "__Secure-next-auth.session-token"

# chatgpt.com and its subdomains
COOKIE_DOMAIN_PATTERN = re.compile(r"(^|\.)chatgpt\.com$")


def _is_session_cookie(name: str) -> bool:
    # Large tokens are split into "<name>.0", "<name>.1", ...
    return name == SESSION_COOKIE_NAME or name.startswith(SESSION_COOKIE_NAME + ".")


def _authorization_header(headers: Mapping[str, str]) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == "authorization" and value:
            return value
    return None


class AuthMonitor:
    """Owns Session.auth_state and Session.credential"""

    def __init__(self, session: Session, bus: EventBus, settings: ScraperSettings):
        self._session = session
        self._bus = bus
        self.settings = settings

    @property
    def state(self) -> AuthState:
        return self._session.auth_state

    @property
    def is_authenticated(self) -> bool:
        return self._session.auth_state == AuthState.AUTHENTICATED

    def observe_request(self, headers: Mapping[str, str]) -> None:
        """Outbound request hook (passive channel)."""
        authorization = _authorization_header(headers)
        if not authorization:
            return

        if self._session.credential is None:
            self._session.credential = authorization
            logger.info("Authorization header captured from outbound request")

        self._set_state(AuthState.AUTHENTICATED, reason="authorized request observed")

    def on_login_page(self) -> None:
        """The current route is a login page: treat as logged out."""
        self._set_state(AuthState.UNAUTHENTICATED, reason="login page reached")

    async def probe(self) -> bool:
        """
        Active channel: look for the session cookie.

        Returns:
            True if the session cookie was found
        """
        browser = self._session.browser
        if browser is None:
            logger.debug("Login probe skipped: no browser")
            return False

        async def has_session_cookie() -> bool:
            cookies = await browser.cookies()
            return any(
                _is_session_cookie(cookie.name) and COOKIE_DOMAIN_PATTERN.search(cookie.domain)
                for cookie in cookies
            )

        policy = RetryPolicy(
            retries=self.settings.login_probe_retries,
            delay_ms=self.settings.login_probe_delay_ms,
            label="login state checker",
        )
        found = await polling(has_session_cookie, policy, verbose=self.settings.allow_logs)

        if found:
            self._set_state(AuthState.AUTHENTICATED, reason="session cookie present")
            return True

        self._set_state(AuthState.UNAUTHENTICATED, reason="session cookie missing")
        return False

    def _set_state(self, new_state: AuthState, reason: str) -> None:
        if new_state == AuthState.UNAUTHENTICATED:
            self._session.credential = None

        old_state = self._session.auth_state
        if old_state == new_state:
            return

        self._session.auth_state = new_state
        logger.info("Auth state: %s -> %s (%s)", old_state.value, new_state.value, reason)
        if new_state == AuthState.AUTHENTICATED:
            self._bus.emit(ScraperEvent.READY)
        else:
            self._bus.emit(ScraperEvent.DISCONNECTED)
