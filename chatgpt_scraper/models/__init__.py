# chatgpt_scraper/models/__init__.py
"""
Data models for the ChatGPT scraper.
"""

from .types import (
    AuthState,
    ChatType,
    LifecycleState,
    RouteKind,
    ChatSelection,
    Location,
    RouteMatch,
    RetryPolicy,
    GenerateOptions,
    GenerateResult,
    Cookie,
    ChatSummary,
    ChatPage,
)

__all__ = [
    'AuthState',
    'ChatType',
    'LifecycleState',
    'RouteKind',
    'ChatSelection',
    'Location',
    'RouteMatch',
    'RetryPolicy',
    'GenerateOptions',
    'GenerateResult',
    'Cookie',
    'ChatSummary',
    'ChatPage',
]
