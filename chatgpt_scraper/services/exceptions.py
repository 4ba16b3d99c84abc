# chatgpt_scraper/services/exceptions.py
"""
Exception types raised by the scraper.

Only NotInitializedError is a hard failure of normal operation. Uncertain
observations of the page (login probe exhausted, malformed reply, failed
attachment) are reported through sentinel values instead of exceptions.
"""


class ScraperError(Exception):
    """Base class for scraper errors."""

    pass


class NotInitializedError(ScraperError):
    """Raised when an operation needs a browser session but initialize() was not called."""

    def __init__(self, message: str = "the instance is not initialized, did you call 'initialize()' ?"):
        super().__init__(message)


class PromptInputTimeoutError(ScraperError):
    """Raised when the prompt input did not appear within the configured timeout."""

    pass
