# chatgpt_scraper/models/types.py
"""
Core data types for the ChatGPT scraper.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence


class AuthState(Enum):
    """Login state of the browser session"""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class ChatType(Enum):
    """Which kind of conversation the next turn targets"""
    NONE = "none"            # unknown / transient route
    NEW = "new"              # root page, thread not created yet
    TEMPORARY = "temporary"  # temporary chat (not saved in history)
    SAVED = "saved"          # saved chat, has an id


class LifecycleState(Enum):
    """Session lifecycle"""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DESTROYED = "destroyed"


class RouteKind(Enum):
    """Result of classifying the current page location"""
    LOGIN = "login"
    SAVED_CHAT = "saved_chat"
    TEMPORARY_CHAT = "temporary_chat"
    NEW_CHAT = "new_chat"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ChatSelection:
    """
    The conversation currently targeted by the session.

    Use the constructors instead of building instances by hand:
    ChatSelection.none(), .new(), .temporary(), .saved(chat_id).
    """
    type: ChatType = ChatType.NONE
    id: Optional[str] = None

    @classmethod
    def none(cls) -> "ChatSelection":
        return cls(ChatType.NONE)

    @classmethod
    def new(cls) -> "ChatSelection":
        return cls(ChatType.NEW)

    @classmethod
    def temporary(cls) -> "ChatSelection":
        return cls(ChatType.TEMPORARY)

    @classmethod
    def saved(cls, chat_id: str) -> "ChatSelection":
        return cls(ChatType.SAVED, chat_id)


@dataclass(frozen=True)
class Location:
    """Snapshot of window.location as seen by the page"""
    href: str
    pathname: str = "/"
    search: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Location":
        return cls(
            href=str(data.get("href") or ""),
            pathname=str(data.get("pathname") or "/"),
            search=str(data.get("search") or ""),
        )


@dataclass(frozen=True)
class RouteMatch:
    """Classification of a Location (first matching rule wins)"""
    kind: RouteKind
    chat_id: Optional[str] = None

    def to_selection(self) -> Optional[ChatSelection]:
        """ChatSelection implied by this route, None for the login page (selection unaffected)"""
        if self.kind == RouteKind.LOGIN:
            return None
        if self.kind == RouteKind.SAVED_CHAT:
            return ChatSelection.saved(self.chat_id or "")
        if self.kind == RouteKind.TEMPORARY_CHAT:
            return ChatSelection.temporary()
        if self.kind == RouteKind.NEW_CHAT:
            return ChatSelection.new()
        return ChatSelection.none()


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry configuration used by polling().

    retries: number of attempts (>= 1)
    delay_ms: wait between attempts in milliseconds (>= 0)
    label: name used in log messages
    """
    retries: int = 5
    delay_ms: int = 1000
    label: str = "UnknownFunction"

    def __post_init__(self):
        if self.retries < 1:
            raise ValueError(f"retries must be >= 1, got {self.retries}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {self.delay_ms}")


@dataclass
class GenerateOptions:
    """
    Per-turn options for ChatGPTHandler.generate().

    search: enable the search-mode toggle for this turn only
    rules: extra instructions appended to the preamble
    upload_files: files to attach before sending
    target_chat_id: saved chat to switch to before typing
    """
    search: bool = False
    rules: Optional[str] = None
    upload_files: Sequence[Path | str] = field(default_factory=list)
    target_chat_id: Optional[str] = None


@dataclass
class GenerateResult:
    """Result of one turn"""
    message: str
    chat_id: str = ""


@dataclass
class Cookie:
    """Browser cookie (only the fields the scraper looks at)"""
    name: str
    domain: str
    value: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Cookie":
        return cls(
            name=str(data.get("name", "")),
            domain=str(data.get("domain", "")),
            value=str(data.get("value", "")),
        )


@dataclass
class ChatSummary:
    """
    One entry of the conversation list returned by the backend.
    Only the stable fields are mapped; the rest is kept in `raw`.
    """
    id: str
    title: str = ""
    create_time: Optional[str] = None
    update_time: Optional[str] = None
    is_archived: bool = False
    is_starred: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSummary":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            create_time=data.get("create_time"),
            update_time=data.get("update_time"),
            is_archived=bool(data.get("is_archived", False)),
            is_starred=bool(data.get("is_starred", False)),
            raw=data,
        )


@dataclass
class ChatPage:
    """Paginated conversation list"""
    items: list[ChatSummary]
    offset: int = 0
    limit: int = 0
    total: int = 0
    has_missing_conversations: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ChatPage":
        return cls(
            items=[ChatSummary.from_dict(item) for item in data.get("items") or []],
            offset=int(data.get("offset") or 0),
            limit=int(data.get("limit") or 0),
            total=int(data.get("total") or 0),
            has_missing_conversations=bool(data.get("has_missing_conversations", False)),
        )
