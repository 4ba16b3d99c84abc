# chatgpt_scraper/services/ports.py
"""
Capability interfaces consumed by the scraper core.

The core never talks to a browser library directly. It is handed a
BrowserDriver, which opens a BrowserContextPort (cookie jar + tabs), which opens
NavigableSession pages. PlaywrightDriver is the production implementation;
tests use in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Sequence

from chatgpt_scraper.models.types import Cookie, Location

# Receives the headers of every request the page sends
RequestHandler = Callable[[Mapping[str, str]], None]

# Receives the page location after every load or in-page route change
LocationHandler = Callable[[Location], Awaitable[None]]


class FileChooserPort(ABC):
    """A native file chooser dialog opened by the page"""

    @abstractmethod
    async def accept(self, paths: Sequence[str]) -> None:
        """Select the given files and close the dialog"""
        pass


class NavigableSession(ABC):
    """
    A single browser tab.

    Waiting methods take explicit timeouts in milliseconds and report a miss
    as a return value rather than an exception.
    """

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Open `url` and wait until the document has loaded"""
        pass

    @abstractmethod
    async def current_location(self) -> Location:
        """Read window.location from the page"""
        pass

    @abstractmethod
    async def wait_for_element(self, selector: str, timeout_ms: int) -> bool:
        """Wait for `selector` to be attached; False on timeout"""
        pass

    @abstractmethod
    async def element_exists(self, selector: str) -> bool:
        """Check once whether `selector` matches a visible element"""
        pass

    @abstractmethod
    async def count_elements(self, selector: str) -> int:
        """Number of elements matching `selector`"""
        pass

    @abstractmethod
    async def inner_texts(self, selector: str) -> list[str]:
        """innerText of every element matching `selector`, in document order"""
        pass

    @abstractmethod
    async def click(self, selector: str) -> bool:
        """Click the first element matching `selector`; False if none"""
        pass

    @abstractmethod
    async def type_text(self, selector: str, text: str, delay_ms: int = 0) -> None:
        """Focus `selector` and send `text` as keystrokes"""
        pass

    @abstractmethod
    async def evaluate(self, script: str, *args: Any) -> Any:
        """Run a JS function in the page; args are passed as a single array argument"""
        pass

    @abstractmethod
    async def wait_for_file_chooser(self, timeout_ms: int) -> FileChooserPort:
        """Wait for the page to open a file chooser"""
        pass

    @abstractmethod
    def on_outbound_request(self, handler: RequestHandler) -> None:
        """Register a callback for every request the page sends"""
        pass

    @abstractmethod
    async def on_location_change(self, handler: LocationHandler) -> None:
        """Register a callback for page loads and in-page route changes"""
        pass


class CredentialStore(ABC):
    """Access to the browser cookie jar"""

    @abstractmethod
    async def cookies(self) -> list[Cookie]:
        pass


class BrowserContextPort(CredentialStore):
    """A launched browser (one cookie jar)"""

    @abstractmethod
    async def new_page(self) -> NavigableSession:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the browser and release the process"""
        pass


class BrowserDriver(ABC):
    """Launches browsers"""

    @abstractmethod
    async def launch(self, launch_options: Mapping[str, Any]) -> BrowserContextPort:
        pass
