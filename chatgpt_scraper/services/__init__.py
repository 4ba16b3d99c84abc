# chatgpt_scraper/services/__init__.py
"""
Service layer for the ChatGPT scraper.

The Playwright driver is lazy-loaded so the core can be imported (and tested)
without a browser installed. Use explicit imports like:
    from chatgpt_scraper.services.chatgpt_handler import ChatGPTHandler
"""

# Fast imports - no browser dependency
from .events import EventBus, ScraperEvent
from .exceptions import NotInitializedError, PromptInputTimeoutError, ScraperError

# Lazy-loaded services via __getattr__
_LAZY_IMPORTS = {
    'ChatGPTHandler': 'chatgpt_handler',
    'AuthMonitor': 'auth_monitor',
    'NavigationTracker': 'navigation',
    'classify_location': 'navigation',
    'TurnEngine': 'turn_engine',
    'ConversationApi': 'conversations',
    'Session': 'session',
    'PlaywrightDriver': 'playwright_driver',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {
    'chatgpt_handler', 'auth_monitor', 'navigation', 'turn_engine',
    'conversations', 'session', 'playwright_driver', 'prompt_builder', 'polling',
}


def __getattr__(name: str):
    """Lazy-load service modules on first access."""
    import importlib
    # Support accessing submodules directly (for unittest.mock.patch)
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'ChatGPTHandler',
    'ScraperEvent',
    'EventBus',
    'ScraperError',
    'NotInitializedError',
    'PromptInputTimeoutError',
    'AuthMonitor',
    'NavigationTracker',
    'classify_location',
    'TurnEngine',
    'ConversationApi',
    'Session',
    'PlaywrightDriver',
]
