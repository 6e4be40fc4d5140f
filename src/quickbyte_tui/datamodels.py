from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Tuple

from bs4 import BeautifulSoup

DEFAULT_PAGE_SIZE = 12


# --- Data models ---
@dataclass(frozen=True)
class Article:
    id: str
    title: str
    url: str
    description: str = ""
    source_name: str = ""
    published_at: Optional[datetime] = None
    image_url: Optional[str] = None
    content: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Article":
        """Build an article from a backend payload (camelCase keys)."""
        article_id = data.get("id")
        if not article_id:
            raise ValueError("article payload has no id")
        return cls(
            id=str(article_id),
            title=(data.get("title") or "").strip(),
            url=(data.get("url") or "").strip(),
            description=_plain_text(data.get("description")),
            source_name=(data.get("sourceName") or "").strip(),
            published_at=_parse_timestamp(data.get("publishedAt")),
            image_url=data.get("imageUrl") or None,
            content=data.get("content") or None,
        )


ArticlePage = Tuple[Article, ...]


class ModeKind(enum.Enum):
    HEADLINES = "headlines"
    SEARCH = "search"
    CATEGORY = "category"
    FAVORITES = "favorites"


@dataclass(frozen=True)
class Mode:
    """The active content-selection strategy; `query` holds the search text
    or category name and is empty for the other kinds."""

    kind: ModeKind
    query: str = ""

    @classmethod
    def headlines(cls) -> "Mode":
        return cls(ModeKind.HEADLINES)

    @classmethod
    def search(cls, query: str) -> "Mode":
        return cls(ModeKind.SEARCH, query)

    @classmethod
    def category(cls, name: str) -> "Mode":
        return cls(ModeKind.CATEGORY, name)

    @classmethod
    def favorites(cls) -> "Mode":
        return cls(ModeKind.FAVORITES)

    @property
    def paginated(self) -> bool:
        return self.kind is not ModeKind.FAVORITES


@dataclass(frozen=True)
class PaginationCursor:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def first(self) -> "PaginationCursor":
        return PaginationCursor(1, self.page_size)

    def next(self) -> "PaginationCursor":
        return PaginationCursor(self.page + 1, self.page_size)

    def previous(self) -> "PaginationCursor":
        return PaginationCursor(max(self.page - 1, 1), self.page_size)


class RequestStatus(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RequestState:
    status: RequestStatus = RequestStatus.IDLE
    reason: Optional[str] = None

    @classmethod
    def idle(cls) -> "RequestState":
        return cls()

    @classmethod
    def loading(cls) -> "RequestState":
        return cls(RequestStatus.LOADING)

    @classmethod
    def succeeded(cls) -> "RequestState":
        return cls(RequestStatus.SUCCEEDED)

    @classmethod
    def failed(cls, reason: str) -> "RequestState":
        return cls(RequestStatus.FAILED, reason)

    @property
    def is_loading(self) -> bool:
        return self.status is RequestStatus.LOADING


@dataclass(frozen=True)
class FetchTicket:
    """Identifies one article request by its intent and issue order."""

    mode: Mode
    cursor: PaginationCursor
    seq: int


@dataclass(frozen=True)
class BrowseState:
    mode: Mode
    cursor: PaginationCursor
    articles: ArticlePage = ()
    articles_request: RequestState = field(default_factory=RequestState.idle)
    favorites_request: RequestState = field(default_factory=RequestState.idle)
    error: Optional[str] = None
    search_text: str = ""
    authenticated: bool = False
    username: Optional[str] = None
    # Article ids with a like or unlike awaiting the backend.
    pending_favorites: FrozenSet[str] = frozenset()

    @property
    def page(self) -> int:
        return self.cursor.page

    @property
    def loading(self) -> bool:
        return self.articles_request.is_loading

    @property
    def can_go_back(self) -> bool:
        return self.mode.paginated and self.cursor.page > 1

    @property
    def can_go_forward(self) -> bool:
        return (
            self.mode.paginated
            and self.articles_request.status is RequestStatus.SUCCEEDED
            and len(self.articles) >= self.cursor.page_size
        )


def _plain_text(value: Optional[str]) -> str:
    if not value:
        return ""
    if "<" not in value:
        return value.strip()
    return BeautifulSoup(value, "lxml").get_text(" ", strip=True)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
