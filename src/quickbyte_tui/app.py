from __future__ import annotations

import logging
import webbrowser
from typing import Any, Dict, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Header, Input, ListView, LoadingIndicator, Rule, Static
from textual.worker import Worker, WorkerState

from .config import CATEGORIES, CONFIG_PATH, UI_DEFAULTS, validate_config
from .controller import BrowseController, Job
from .datamodels import Article, BrowseState
from .errors import ConfigError
from .favorites import FavoritesCache
from .gateway import NewsGateway
from .projection import ViewModel, project
from .screens import ArticleScreen, ErrorScreen
from .session import SessionProvider
from .widgets import ArticleItem, CategoryListItem, ErrorMessage, PaginationBar, StatusBar

logger = logging.getLogger("quickbyte")


class QuickByteApp(App):
    TITLE = "QuickByte"
    SUB_TITLE = "Top headlines, search and favorites"

    CSS_PATH = "app.tcss"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("h", "headlines", "Top Headlines"),
        Binding("m", "favorites", "My Favorites"),
        Binding("f", "toggle_favorite", "Like/Unlike"),
        Binding("n", "next_page", "Next"),
        Binding("p", "previous_page", "Previous"),
        Binding("o", "open_in_browser", "Open"),
        Binding("/", "focus_search", "Search"),
        Binding("ctrl+l", "toggle_left_pane", "Toggle Categories"),
        Binding("L", "logout", "Logout"),
    ]

    def __init__(
        self,
        config: Dict[str, Any],
        theme: Optional[str] = None,
        gateway: Optional[NewsGateway] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._theme_name = theme or config.get("theme") or "textual-dark"
        self.categories = config.get("categories") or CATEGORIES
        self.config_error: Optional[ConfigError] = None
        self.controller: Optional[BrowseController] = None
        self._jobs: Dict[Worker, Job] = {}

        try:
            self.config = validate_config(dict(config))
        except ConfigError as e:
            logger.error("Invalid configuration: %s", e.to_dict())
            self.config = dict(config)
            self.config_error = e
            return

        self.gateway = gateway or NewsGateway.from_config(self.config)
        self.session_provider = SessionProvider(self.gateway)
        self.favorites = FavoritesCache(self.gateway, self.session_provider)
        self.controller = BrowseController(
            self.gateway,
            self.favorites,
            self.session_provider,
            dispatch=self._dispatch,
            notify=self.notify,
            page_size=self.config["page_size"],
        )

    def compose(self) -> ComposeResult:
        yield Header()
        # Main horizontal split: left = categories, right = articles
        with Horizontal(id="main"):
            with Vertical(id="left"):
                yield Static("Categories", classes="pane-title")
                yield ListView(id="categories-list")
            yield Rule(orientation="vertical")
            with Vertical(id="right"):
                with Horizontal(id="heading-row"):
                    yield Static("Top Headlines", id="heading", classes="pane-title")
                    yield Static("", id="user")
                yield Input(placeholder="Search news articles...", id="search")
                yield ErrorMessage("", id="error")
                yield Static("", id="empty")
                yield ListView(id="articles-list")
                yield PaginationBar(id="pagination")
        yield StatusBar()

    def on_mount(self) -> None:
        if self._theme_name in self.available_themes:
            self.theme = self._theme_name

        if self.controller is None:
            self.push_screen(
                ErrorScreen(
                    self.config_error.message if self.config_error else "Configuration error",
                    f"Set `base_url` in `{CONFIG_PATH}` or export `QUICKBYTE_BASE_URL`.",
                )
            )
            return

        categories_list = self.query_one("#categories-list", ListView)
        for category in self.categories:
            categories_list.append(CategoryListItem(category))

        keybindings_text = self.config.get("ui", {}).get(
            "statusbar_keybindings", UI_DEFAULTS["statusbar_keybindings"]
        )
        self.query_one(StatusBar).hints = keybindings_text.format(color="$accent")

        self.controller.subscribe(self._render_state)
        self.run_worker(
            self.session_provider.verify,
            name="session_verify",
            thread=True,
            exit_on_error=False,
        )
        self.controller.start()
        self.query_one("#articles-list").focus()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        # Without a backend only quitting makes sense.
        if self.controller is None:
            return action in ("quit", "command_palette")
        return True

    # --- job plumbing ---
    def _dispatch(self, job: Job) -> None:
        worker = self.run_worker(
            job.run, name=job.name, group=job.name, thread=True, exit_on_error=False
        )
        self._jobs[worker] = job

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        worker = event.worker
        if worker.name in ("session_verify", "session_logout"):
            if event.state is WorkerState.SUCCESS:
                self.session_provider.set(worker.result)
            elif event.state is WorkerState.ERROR:
                logger.error("%s worker failed: %s", worker.name, worker.error)
            return

        job = self._jobs.get(worker)
        if job is None:
            return
        if event.state is WorkerState.SUCCESS:
            del self._jobs[worker]
            job.apply(worker.result)
        elif event.state in (WorkerState.ERROR, WorkerState.CANCELLED):
            del self._jobs[worker]
            job.fail(worker.error or RuntimeError(f"{job.name} cancelled"))

    # --- rendering ---
    def _render_state(self, state: BrowseState) -> None:
        view = project(state, self.controller.is_favorite)
        self.query_one("#heading", Static).update(view.heading)
        self.query_one("#user", Static).update(
            f"Signed in as {view.username}" if view.username else "Not signed in"
        )

        search = self.query_one("#search", Input)
        if not search.has_focus and search.value != view.search_text:
            search.value = view.search_text

        self.query_one("#error", ErrorMessage).show(view.error)
        self.query_one(StatusBar).activity = view.search_label if view.loading else ""

        empty = self.query_one("#empty", Static)
        empty.update(view.empty_message or "")
        empty.display = view.empty_message is not None and view.error is None

        self._update_articles_list(view)
        self.query_one("#pagination", PaginationBar).show(view.pagination)

    def _update_articles_list(self, view: ViewModel) -> None:
        articles_list = self.query_one("#articles-list", ListView)
        index = articles_list.index
        articles_list.clear()

        if view.loading:
            articles_list.mount(LoadingIndicator())
            return

        articles_list.extend(ArticleItem(card) for card in view.cards)
        if view.cards and index is not None:
            restored = min(index, len(view.cards) - 1)
            self.call_after_refresh(setattr, articles_list, "index", restored)

    def _highlighted_article(self) -> Optional[Article]:
        item = self.query_one("#articles-list", ListView).highlighted_child
        if isinstance(item, ArticleItem):
            return item.article
        return None

    # --- events ---
    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if event.list_view.id == "categories-list":
            if isinstance(event.item, CategoryListItem):
                self.controller.select_category(event.item.category)
                self.query_one("#articles-list").focus()
        elif event.list_view.id == "articles-list":
            if isinstance(event.item, ArticleItem):
                self.push_screen(ArticleScreen(event.item.article))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search":
            if self.controller.submit_search(event.value):
                self.query_one("#categories-list", ListView).index = None
                self.query_one("#articles-list").focus()

    # --- actions ---
    def action_refresh(self) -> None:
        self.controller.refresh()

    def action_headlines(self) -> None:
        self.controller.select_headlines()

    def action_favorites(self) -> None:
        self.controller.select_favorites()

    def action_toggle_favorite(self) -> None:
        article = self._highlighted_article()
        if article is not None:
            self.controller.toggle_favorite(article)

    def action_next_page(self) -> None:
        self.controller.next_page()

    def action_previous_page(self) -> None:
        self.controller.previous_page()

    def action_open_in_browser(self) -> None:
        article = self._highlighted_article()
        if article is not None and article.url:
            webbrowser.open(article.url)

    def action_focus_search(self) -> None:
        self.query_one("#search").focus()

    def action_toggle_left_pane(self) -> None:
        """Toggle the categories pane."""
        left_pane = self.query_one("#left")
        left_pane.display = not left_pane.display

    def action_logout(self) -> None:
        if not self.session_provider.current.authenticated:
            self.notify("You are not logged in.", severity="warning")
            return
        self.run_worker(
            self.session_provider.logout,
            name="session_logout",
            thread=True,
            exit_on_error=False,
        )
