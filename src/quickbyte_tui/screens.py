from __future__ import annotations

import webbrowser

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.screen import Screen
from textual.widgets import Footer, Header, Label, Markdown

from .datamodels import Article
from .projection import byline
from .widgets import StatusBar


def article_markdown(article: Article) -> str:
    parts = [f"# {article.title or 'Untitled'}", f"*{byline(article)}*"]
    if article.description:
        parts.append(article.description)
    if article.content:
        parts.append(article.content)
    if article.url:
        parts.append(f"[Read more]({article.url})")
    return "\n\n".join(parts)


# --- Article screen ---
class ArticleScreen(Screen):
    BINDINGS = [
        Binding("escape,q,b,left", "app.pop_screen", "Back"),
        Binding("o", "open_in_browser", "Open in browser"),
        Binding("f", "toggle_favorite", "Like/Unlike"),
        Binding("down", "scroll_down", "Scroll Down"),
        Binding("up", "scroll_up", "Scroll Up"),
    ]

    def __init__(self, article: Article):
        super().__init__()
        self.article = article

    def compose(self) -> ComposeResult:
        yield Header()
        yield VerticalScroll(
            Markdown(article_markdown(self.article), id="article-markdown"),
            id="article-scroll",
        )
        yield StatusBar()

    def on_mount(self) -> None:
        self.title = self.article.title
        self.sub_title = self.article.source_name
        self.query_one("#article-scroll").focus()
        self.query_one(StatusBar).hints = (
            "[b $accent]o[/] open in browser, [b $accent]f[/] like/unlike, [b $accent]esc[/] back"
        )

    def action_open_in_browser(self) -> None:
        if self.article.url:
            webbrowser.open(self.article.url)

    def action_toggle_favorite(self) -> None:
        self.app.controller.toggle_favorite(self.article)

    def action_scroll_down(self) -> None:
        self.query_one("#article-scroll").scroll_down()

    def action_scroll_up(self) -> None:
        self.query_one("#article-scroll").scroll_up()


class ErrorScreen(Screen):
    BINDINGS = [Binding("q,escape", "app.quit", "Quit")]

    def __init__(self, title: str, message: str):
        super().__init__()
        self.error_title = title
        self.message = message

    def compose(self) -> ComposeResult:
        yield Header()
        yield Label(self.error_title, classes="error-title")
        yield Markdown(self.message)
        yield Footer()

    def on_mount(self) -> None:
        self.title = self.error_title
