"""
Article browsing controller.

Owns the active mode, the page cursor and the displayed article page, and
decides which gateway call runs on every transition. Blocking work is handed
to an injected ``dispatch`` callable as a :class:`Job`; its ``run`` step may
execute on a worker thread, while ``apply``/``fail`` must run on the thread
that owns the controller (the Textual event loop in the app).

Every article fetch carries a :class:`FetchTicket`. Only the result for the
most recently issued ticket is applied; anything older is dropped on arrival.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, List, Optional, Set

from .datamodels import (
    DEFAULT_PAGE_SIZE,
    Article,
    ArticlePage,
    BrowseState,
    FetchTicket,
    Mode,
    ModeKind,
    PaginationCursor,
    RequestState,
)
from .errors import (
    AuthorizationError,
    FavoriteMutationError,
    FavoritesSyncError,
    FetchError,
    GatewayError,
)
from .favorites import FavoritesCache
from .gateway import NewsGateway
from .session import Session, SessionProvider

logger = logging.getLogger("quickbyte")

LOGIN_TO_VIEW = "Please log in to view favorites"
LOGIN_TO_FAVORITE = "Please log in to add favorites"
SESSION_EXPIRED = "Your session has expired. Please log in again."


@dataclass
class Job:
    name: str
    run: Callable[[], Any]
    apply: Callable[[Any], None]
    fail: Callable[[BaseException], None]


@dataclass(frozen=True)
class FetchOutcome:
    ticket: FetchTicket
    articles: ArticlePage = ()
    error: Optional[FetchError] = None
    # Favorites cache generation read before a Favorites-mode request.
    favorites_generation: Optional[int] = None


@dataclass(frozen=True)
class ToggleOutcome:
    article: Article
    favorited: Optional[bool] = None
    error: Optional[Exception] = None


Dispatcher = Callable[[Job], None]
Listener = Callable[[BrowseState], None]


def _log_notice(message: str, severity: str = "information") -> None:
    logger.info("[%s] %s", severity, message)


class BrowseController:
    def __init__(
        self,
        gateway: NewsGateway,
        favorites: FavoritesCache,
        session: SessionProvider,
        dispatch: Dispatcher,
        notify: Callable[..., None] = _log_notice,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.gateway = gateway
        self.favorites = favorites
        self.session = session
        self._dispatch = dispatch
        self._notify = notify
        self._listeners: List[Listener] = []

        self._mode = Mode.headlines()
        self._cursor = PaginationCursor(1, page_size)
        self._articles: ArticlePage = ()
        self._articles_request = RequestState.idle()
        self._favorites_request = RequestState.idle()
        self._error: Optional[str] = None
        self._search_text = ""
        self._pending_toggles: Set[str] = set()

        self._seq = 0
        self._ticket: Optional[FetchTicket] = None
        self._session_seen: Session = session.current
        session.subscribe(self.on_session_changed)

    # --- exposed state ---
    @property
    def state(self) -> BrowseState:
        session = self.session.current
        return BrowseState(
            mode=self._mode,
            cursor=self._cursor,
            articles=self._articles,
            articles_request=self._articles_request,
            favorites_request=self._favorites_request,
            error=self._error,
            search_text=self._search_text,
            authenticated=session.authenticated,
            username=session.username,
            pending_favorites=frozenset(self._pending_toggles),
        )

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def page(self) -> int:
        return self._cursor.page

    @property
    def articles(self) -> ArticlePage:
        return self._articles

    @property
    def current_ticket(self) -> Optional[FetchTicket]:
        return self._ticket

    def is_favorite(self, article_id: str) -> bool:
        return self.favorites.is_favorite(article_id)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            listener(state)

    # --- transitions ---
    def start(self) -> FetchTicket:
        """Initial load: headlines page 1, plus the favorites sync if signed in."""
        self.sync_favorites()
        return self._transition(self._mode, self._cursor)

    def select_headlines(self) -> FetchTicket:
        self._search_text = ""
        return self._transition(Mode.headlines(), self._cursor.first())

    def select_category(self, name: str) -> Optional[FetchTicket]:
        name = (name or "").strip()
        if not name:
            return None
        # The search box shows the category, but nothing is searched.
        self._search_text = name
        return self._transition(Mode.category(name), self._cursor.first())

    def submit_search(self, query: str) -> Optional[FetchTicket]:
        query = (query or "").strip()
        if not query:
            logger.debug("Ignoring blank search")
            return None
        self._search_text = query
        return self._transition(Mode.search(query), self._cursor.first())

    def select_favorites(self) -> Optional[FetchTicket]:
        if not self.session.current.authenticated:
            self._error = LOGIN_TO_VIEW
            self._changed()
            return None
        return self._transition(Mode.favorites(), self._cursor.first())

    def next_page(self) -> Optional[FetchTicket]:
        if not self.state.can_go_forward:
            return None
        return self._transition(self._mode, self._cursor.next())

    def previous_page(self) -> Optional[FetchTicket]:
        if not self._mode.paginated or self._cursor.page <= 1:
            return None
        return self._transition(self._mode, self._cursor.previous())

    def refresh(self) -> FetchTicket:
        return self._transition(self._mode, self._cursor)

    def _transition(self, mode: Mode, cursor: PaginationCursor) -> FetchTicket:
        self._mode = mode
        self._cursor = cursor
        self._seq += 1
        ticket = FetchTicket(mode, cursor, self._seq)
        self._ticket = ticket

        self._articles = ()
        self._articles_request = RequestState.loading()
        self._error = None
        self._changed()

        logger.debug(
            "Fetch #%d: %s %r page %d", ticket.seq, mode.kind.value, mode.query, cursor.page
        )
        self._dispatch(
            Job(
                name="articles_loader",
                run=partial(self._fetch, ticket, self.session.current.user_id),
                apply=self._apply_fetch,
                fail=partial(self._fail_fetch, ticket),
            )
        )
        return ticket

    # --- article fetch job ---
    def _fetch(self, ticket: FetchTicket, user_id: Optional[str]) -> FetchOutcome:
        mode, cursor = ticket.mode, ticket.cursor
        generation = None
        try:
            if mode.kind is ModeKind.SEARCH:
                articles = self.gateway.search(mode.query, cursor.page, cursor.page_size)
            elif mode.kind is ModeKind.CATEGORY:
                articles = self.gateway.category(mode.query, cursor.page, cursor.page_size)
            elif mode.kind is ModeKind.FAVORITES:
                if not user_id:
                    raise AuthorizationError(LOGIN_TO_VIEW)
                generation = self.favorites.generation
                articles = self.gateway.favorites_list(user_id)
            else:
                articles = self.gateway.headlines(cursor.page, cursor.page_size)
        except (GatewayError, AuthorizationError) as e:
            return FetchOutcome(ticket, error=FetchError(e.message, context=e.context))
        return FetchOutcome(ticket, articles=articles, favorites_generation=generation)

    def _is_current(self, ticket: FetchTicket) -> bool:
        if ticket != self._ticket:
            logger.debug("Dropping stale result for fetch #%d", ticket.seq)
            return False
        return True

    def _apply_fetch(self, outcome: FetchOutcome) -> None:
        if not self._is_current(outcome.ticket):
            return
        if outcome.error is not None:
            logger.error("Fetch #%d failed: %s", outcome.ticket.seq, outcome.error.to_dict())
            self._articles = ()
            self._articles_request = RequestState.failed(outcome.error.message)
            self._error = outcome.error.message
        else:
            self._articles = outcome.articles
            self._articles_request = RequestState.succeeded()
            if outcome.favorites_generation is not None:
                if not self.favorites.replace_if_unchanged(
                    (a.id for a in outcome.articles), outcome.favorites_generation
                ):
                    logger.debug(
                        "Favorites changed during fetch #%d; keeping cached ids",
                        outcome.ticket.seq,
                    )
        self._changed()
        if outcome.error is not None:
            self._expire_if_unauthorized(outcome.error.context.get("status_code"))

    def _fail_fetch(self, ticket: FetchTicket, error: BaseException) -> None:
        logger.error("Fetch #%d crashed: %s", ticket.seq, error)
        self._apply_fetch(
            FetchOutcome(ticket, error=FetchError(str(error) or "Failed to load articles"))
        )

    # --- favorites ---
    def sync_favorites(self) -> bool:
        session = self.session.current
        if not session.authenticated or not session.user_id:
            return False
        self._favorites_request = RequestState.loading()
        self._changed()
        self._dispatch(
            Job(
                name="favorites_sync",
                run=partial(self._sync, session.user_id),
                apply=partial(self._apply_sync, session.user_id),
                fail=partial(self._apply_sync, session.user_id),
            )
        )
        return True

    def _sync(self, user_id: str) -> Optional[FavoritesSyncError]:
        try:
            self.favorites.load(user_id)
        except FavoritesSyncError as e:
            return e
        return None

    def _apply_sync(self, user_id: str, error: Optional[BaseException]) -> None:
        if self.session.current.user_id != user_id:
            logger.debug("Ignoring favorites sync for previous user %s", user_id)
            return
        if not self.session.current.authenticated:
            self._favorites_request = RequestState.idle()
        elif error is not None:
            # Non-fatal: browsing continues with the last known favorites.
            logger.warning("Favorites sync failed: %s", error)
            self._favorites_request = RequestState.failed(str(error))
        else:
            self._favorites_request = RequestState.succeeded()
        self._changed()
        if isinstance(getattr(error, "__cause__", None), GatewayError):
            self._expire_if_unauthorized(error.__cause__.status_code)

    def toggle_favorite(self, article: Article) -> bool:
        """Add or remove `article`; returns False when nothing was dispatched."""
        if not self.session.current.authenticated:
            self._notify(LOGIN_TO_FAVORITE, severity="warning")
            return False
        if self._favorites_request.is_loading:
            logger.debug("Favorites still syncing; ignoring toggle of %s", article.id)
            return False
        if article.id in self._pending_toggles:
            logger.debug("Toggle of %s already in flight", article.id)
            return False
        self._pending_toggles.add(article.id)
        self._changed()
        self._dispatch(
            Job(
                name="favorite_toggle",
                run=partial(self._toggle, article),
                apply=self._apply_toggle,
                fail=partial(self._fail_toggle, article),
            )
        )
        return True

    def _toggle(self, article: Article) -> ToggleOutcome:
        try:
            favorited = self.favorites.toggle(article)
        except (FavoriteMutationError, AuthorizationError) as e:
            return ToggleOutcome(article, error=e)
        return ToggleOutcome(article, favorited=favorited)

    def _apply_toggle(self, outcome: ToggleOutcome) -> None:
        self._pending_toggles.discard(outcome.article.id)
        if outcome.error is not None:
            self._changed()
            severity = "warning" if isinstance(outcome.error, AuthorizationError) else "error"
            self._notify(str(outcome.error), severity=severity)
            cause = outcome.error.__cause__
            if isinstance(cause, GatewayError):
                self._expire_if_unauthorized(cause.status_code)
            return
        if not outcome.favorited and self._mode.kind is ModeKind.FAVORITES:
            self._articles = tuple(a for a in self._articles if a.id != outcome.article.id)
        self._changed()

    def _fail_toggle(self, article: Article, error: BaseException) -> None:
        logger.error("Favorite toggle of %s crashed: %s", article.id, error)
        self._pending_toggles.discard(article.id)
        self._changed()
        self._notify("There was an error updating your favorites", severity="error")

    # --- session ---
    def _expire_if_unauthorized(self, status_code: Optional[int]) -> None:
        if status_code == 401 and self.session.current.authenticated:
            self._notify(SESSION_EXPIRED, severity="warning")
            self.session.expire()

    def on_session_changed(self, session: Session) -> None:
        previous, self._session_seen = self._session_seen, session
        if session.authenticated:
            if previous.user_id != session.user_id:
                self.favorites.clear()
                self.sync_favorites()
                if self._mode.kind is ModeKind.FAVORITES:
                    self.refresh()
                    return
        else:
            self.favorites.clear()
            self._favorites_request = RequestState.idle()
            if self._mode.kind is ModeKind.FAVORITES:
                self.select_headlines()
                return
        self._changed()
