from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .datamodels import Article, BrowseState, ModeKind

NO_ARTICLES = "No articles found."
NO_FAVORITES = "You don't have any favorite articles yet."


@dataclass(frozen=True)
class ArticleCard:
    article: Article
    title: str
    description: str
    byline: str
    favorite: bool
    # None when the viewer is signed out and the button is hidden.
    favorite_label: Optional[str]
    favorite_enabled: bool


@dataclass(frozen=True)
class Pagination:
    page: int
    previous_enabled: bool
    next_enabled: bool

    @property
    def label(self) -> str:
        return f"Page {self.page}"


@dataclass(frozen=True)
class ViewModel:
    heading: str
    cards: Tuple[ArticleCard, ...]
    loading: bool
    error: Optional[str]
    empty_message: Optional[str]
    pagination: Optional[Pagination]
    search_label: str
    search_text: str
    username: Optional[str]
    show_favorites_button: bool


def heading_for(state: BrowseState) -> str:
    kind = state.mode.kind
    if kind is ModeKind.FAVORITES:
        return "My Favorite Articles"
    if kind is ModeKind.SEARCH:
        return f'Search Results: "{state.mode.query}"'
    if kind is ModeKind.CATEGORY:
        return f"{state.mode.query} News"
    return "Top Headlines"


def byline(article: Article) -> str:
    parts = [f"Source: {article.source_name or 'Unknown'}"]
    if article.published_at is not None:
        parts.append(article.published_at.strftime("%Y-%m-%d"))
    return " | ".join(parts)


def project(state: BrowseState, is_favorite: Callable[[str], bool]) -> ViewModel:
    """Map controller state to what the screen should show."""
    favorites_busy = state.favorites_request.is_loading
    cards = []
    for article in state.articles:
        favorite = state.authenticated and is_favorite(article.id)
        label = None
        if state.authenticated:
            label = "Unlike ♥" if favorite else "Like ♡"
        cards.append(
            ArticleCard(
                article=article,
                title=article.title,
                description=article.description,
                byline=byline(article),
                favorite=favorite,
                favorite_label=label,
                favorite_enabled=(
                    state.authenticated
                    and not favorites_busy
                    and article.id not in state.pending_favorites
                ),
            )
        )

    empty_message = None
    if not state.loading and not cards:
        empty_message = (
            NO_FAVORITES if state.mode.kind is ModeKind.FAVORITES else NO_ARTICLES
        )

    pagination = None
    if not state.loading and cards and state.mode.paginated:
        pagination = Pagination(
            page=state.page,
            previous_enabled=state.can_go_back,
            next_enabled=state.can_go_forward,
        )

    return ViewModel(
        heading=heading_for(state),
        cards=tuple(cards),
        loading=state.loading,
        error=state.error,
        empty_message=empty_message,
        pagination=pagination,
        search_label="Searching..." if state.loading else "Search",
        search_text=state.search_text,
        username=state.username if state.authenticated else None,
        show_favorites_button=state.authenticated,
    )
