from __future__ import annotations

from typing import Optional

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.widgets import ListItem, Static

from .projection import ArticleCard, Pagination


# --- UI Widgets ---
class CategoryListItem(ListItem):
    def __init__(self, category: str):
        super().__init__()
        self.category = category

    def compose(self) -> ComposeResult:
        yield Static(self.category)


class ArticleItem(ListItem):
    def __init__(self, card: ArticleCard):
        super().__init__()
        self.card = card
        self.article = card.article

    def compose(self) -> ComposeResult:
        with Vertical(classes="article-container"):
            with Horizontal(classes="article-header"):
                yield Static(self.card.title, classes="article-title")
                if self.card.favorite_label:
                    yield Static(self.card.favorite_label, classes="article-favorite")
            if self.card.description:
                yield Static(self.card.description, classes="article-description")
            yield Static(self.card.byline, classes="article-byline")

    def on_mount(self) -> None:
        self.set_class(self.card.favorite, "favorite")


class PaginationBar(Static):
    def show(self, pagination: Optional[Pagination]) -> None:
        if pagination is None:
            self.display = False
            return
        prev_style = "bold" if pagination.previous_enabled else "dim"
        next_style = "bold" if pagination.next_enabled else "dim"
        text = Text.assemble(
            ("< Previous (p)", prev_style),
            f"   {pagination.label}   ",
            ("Next (n) >", next_style),
        )
        self.update(text)
        self.display = True


class StatusBar(Static):
    """Bottom line: current activity (if any) followed by the key hints."""

    activity = reactive("")
    hints = reactive("")

    def on_mount(self) -> None:
        self._refresh_line()

    def _refresh_line(self) -> None:
        self.update(" | ".join(part for part in (self.activity, self.hints) if part))

    def watch_activity(self, activity: str) -> None:
        self._refresh_line()

    def watch_hints(self, hints: str) -> None:
        self._refresh_line()


class ErrorMessage(Static):
    def __init__(self, message: str, **kwargs):
        super().__init__(Text(message, style="bold red"), **kwargs)

    def show(self, message: Optional[str]) -> None:
        self.update(Text(message or "", style="bold red"))
        self.display = bool(message)
