# chatgpt_scraper/config/settings.py
"""
Scraper settings management.

Settings are a plain dataclass. They can be built from a dict (snake_case or
camelCase keys: assistantName, keyboardWriteDelay, allowLogs,
browserLaunchOptions), loaded from a JSON file, and merged with overrides for
set_options()/show()/hide().

UI selectors live in UiSelectors. ChatGPT changes its markup often, so every
selector the engine touches is configurable here rather than hard-coded.
"""

import copy
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

# Module logger
logger = logging.getLogger(__name__)

# camelCase aliases accepted by from_dict()
_KEY_ALIASES = {
    "assistantName": "assistant_name",
    "keyboardWriteDelay": "keyboard_write_delay",
    "allowLogs": "allow_logs",
    "browserLaunchOptions": "browser_launch_options",
    "baseUrl": "base_url",
}

# Environment variable that switches the default browser mode to headed
ENV_MODE_VARIABLE = "CHATGPT_SCRAPER_ENV"


@dataclass
class UiSelectors:
    """CSS selectors for the ChatGPT page"""

    # Prompt input (contenteditable div with a fixed id)
    prompt_input: str = "#prompt-textarea"

    # Send button; disabled while attachments are still uploading
    send_button: str = '[data-testid="send-button"]'

    # Present only while a reply is being generated
    stop_button: str = (
        '[data-testid="stop-button"], '
        'button[aria-label="Stop streaming"], '
        'button[aria-label="Stop generating"]'
    )

    # "Read aloud" action; rendered only under a finished reply
    speech_button: str = (
        '[data-testid="voice-play-turn-action-button"], '
        'button[aria-label="Read aloud"]'
    )

    # Every assistant-authored message node
    assistant_message: str = "[data-message-author-role='assistant']"

    # Search mode toggle in the composer
    search_toggle: str = 'button[aria-label="Search"], button[aria-label="Search the web"]'

    # File upload
    file_input: str = 'input[type="file"]'
    attach_button: str = '[data-testid="composer-plus-btn"], button[aria-label="Upload files and more"]'


@dataclass
class ScraperSettings:
    """Scraper settings"""

    # Name the assistant introduces itself with (instruction preamble)
    assistant_name: str = "chatGPT"

    # Delay between keystrokes in milliseconds
    keyboard_write_delay: int = 0

    # Log every retry attempt at INFO instead of DEBUG
    allow_logs: bool = False

    # Passed through to the browser driver (headless, user_data_dir, args, ...)
    browser_launch_options: dict[str, Any] = field(default_factory=dict)

    # Target site
    base_url: str = "https://chatgpt.com"

    # Polling intervals (seconds)
    response_poll_interval: float = 1.5     # completion detection
    send_button_poll_interval: float = 0.5  # waiting for the send button to enable

    # Prompt input wait (milliseconds)
    input_timeout_ms: int = 30000

    # Active login probe (cookie check)
    login_probe_retries: int = 1
    login_probe_delay_ms: int = 1000

    selectors: UiSelectors = field(default_factory=UiSelectors)

    @property
    def temporary_chat_url(self) -> str:
        return f"{self.base_url}/?temporary-chat=true"

    @property
    def new_chat_url(self) -> str:
        return f"{self.base_url}/"

    def saved_chat_url(self, chat_id: str) -> str:
        return f"{self.base_url}/c/{chat_id}"

    @property
    def headless(self) -> bool:
        """Effective headless flag (headed only in development mode unless configured)"""
        value = self.browser_launch_options.get("headless")
        if value is None:
            return os.environ.get(ENV_MODE_VARIABLE) != "development"
        return bool(value)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ScraperSettings":
        """Build settings from a dict, ignoring unknown keys."""
        return cls().merged(data or {})

    @classmethod
    def load(cls, path: Path) -> "ScraperSettings":
        """Load settings from a JSON file. Missing or malformed files yield defaults."""
        data = {}
        if path.exists():
            try:
                with open(path, 'r', encoding='utf-8-sig') as f:
                    data = json.load(f)
                logger.debug("Loaded settings from: %s", path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load settings: %s", e)
                data = {}
        if not isinstance(data, dict):
            logger.warning("Settings file is not a JSON object, using defaults: %s", path)
            data = {}
        return cls.from_dict(data)

    def save(self, path: Path) -> None:
        """Save settings to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        logger.debug("Saved settings to: %s", path)

    def merged(self, overrides: dict) -> "ScraperSettings":
        """
        Return a copy with the given overrides applied.

        browser_launch_options and selectors are merged key by key so that
        e.g. {"browserLaunchOptions": {"headless": False}} keeps user_data_dir.
        """
        known_fields = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}

        for key, value in overrides.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in known_fields:
                logger.debug("Ignoring unknown setting: %s", key)
                continue
            if name == "browser_launch_options":
                options = copy.deepcopy(self.browser_launch_options)
                options.update(value or {})
                changes[name] = options
            elif name == "selectors":
                if isinstance(value, UiSelectors):
                    changes[name] = value
                else:
                    selector_fields = {f.name for f in fields(UiSelectors)}
                    known = {k: v for k, v in (value or {}).items() if k in selector_fields}
                    changes[name] = replace(self.selectors, **known)
            else:
                changes[name] = value

        settings = replace(
            self,
            browser_launch_options=changes.pop(
                "browser_launch_options", copy.deepcopy(self.browser_launch_options)
            ),
            **changes,
        )
        settings._validate()
        return settings

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the settings (used for options_changed events and save())"""
        return asdict(self)

    def _validate(self) -> None:
        """Reset missing or out-of-range values to defaults with a warning."""
        if self.keyboard_write_delay is None or self.keyboard_write_delay < 0:
            logger.warning("keyboard_write_delay invalid (%s), resetting to 0", self.keyboard_write_delay)
            self.keyboard_write_delay = 0

        if self.response_poll_interval is None or self.response_poll_interval < 0:
            logger.warning("response_poll_interval invalid (%s), resetting to 1.5", self.response_poll_interval)
            self.response_poll_interval = 1.5

        if self.send_button_poll_interval is None or self.send_button_poll_interval < 0:
            logger.warning("send_button_poll_interval invalid (%s), resetting to 0.5",
                           self.send_button_poll_interval)
            self.send_button_poll_interval = 0.5

        if self.input_timeout_ms is None or self.input_timeout_ms < 0:
            logger.warning("input_timeout_ms invalid (%s), resetting to 30000", self.input_timeout_ms)
            self.input_timeout_ms = 30000

        if self.login_probe_retries is None or self.login_probe_retries < 1:
            logger.warning("login_probe_retries too small (%s), resetting to 1", self.login_probe_retries)
            self.login_probe_retries = 1

        if self.login_probe_delay_ms is None or self.login_probe_delay_ms < 0:
            logger.warning("login_probe_delay_ms invalid (%s), resetting to 1000", self.login_probe_delay_ms)
            self.login_probe_delay_ms = 1000

        if not self.assistant_name:
            logger.warning("assistant_name empty, resetting to chatGPT")
            self.assistant_name = "chatGPT"

        if not self.base_url:
            logger.warning("base_url empty, resetting to https://chatgpt.com")
            self.base_url = "https://chatgpt.com"
        self.base_url = self.base_url.rstrip("/")

        if self.browser_launch_options is None:
            self.browser_launch_options = {}

        if not isinstance(self.selectors, UiSelectors):
            logger.warning("selectors invalid (%r), resetting to defaults", self.selectors)
            self.selectors = UiSelectors()

        self.allow_logs = bool(self.allow_logs)
