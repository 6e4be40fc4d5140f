from __future__ import annotations

from typing import List
from unittest.mock import MagicMock

import pytest

from quickbyte_tui.controller import BrowseController, Job
from quickbyte_tui.datamodels import Article
from quickbyte_tui.favorites import FavoritesCache
from quickbyte_tui.gateway import NewsGateway
from quickbyte_tui.session import Session, SessionProvider


def make_article(article_id: str, title: str = "") -> Article:
    return Article(
        id=article_id,
        title=title or f"Story {article_id}",
        url=f"https://news.example.com/{article_id}",
        source_name="Example Wire",
    )


def make_page(prefix: str, count: int) -> tuple:
    return tuple(make_article(f"{prefix}-{i}") for i in range(count))


class QueuedDispatcher:
    """Collects jobs so a test decides when (and in which order) they finish."""

    def __init__(self) -> None:
        self.jobs: List[Job] = []

    def __call__(self, job: Job) -> None:
        self.jobs.append(job)

    def names(self) -> List[str]:
        return [job.name for job in self.jobs]

    def pop(self, name: str) -> Job:
        for i, job in enumerate(self.jobs):
            if job.name == name:
                return self.jobs.pop(i)
        raise AssertionError(f"no pending {name} job in {self.names()}")

    def complete(self, job: Job) -> None:
        try:
            result = job.run()
        except Exception as e:
            job.fail(e)
        else:
            job.apply(result)

    def run_all(self) -> None:
        while self.jobs:
            self.complete(self.jobs.pop(0))


@pytest.fixture
def gateway():
    gw = MagicMock(spec=NewsGateway)
    gw.headlines.return_value = ()
    gw.search.return_value = ()
    gw.category.return_value = ()
    gw.favorites_list.return_value = ()
    return gw


@pytest.fixture
def signed_in():
    return SessionProvider(session=Session.signed_in("u1", "alice"))


@pytest.fixture
def anonymous():
    return SessionProvider()


@pytest.fixture
def dispatcher():
    return QueuedDispatcher()


@pytest.fixture
def notices():
    return []


def build_controller(gateway, session, dispatcher, notices, page_size=12):
    favorites = FavoritesCache(gateway, session)

    def notify(message, severity="information"):
        notices.append((severity, message))

    return BrowseController(
        gateway,
        favorites,
        session,
        dispatch=dispatcher,
        notify=notify,
        page_size=page_size,
    )


@pytest.fixture
def controller(gateway, signed_in, dispatcher, notices):
    return build_controller(gateway, signed_in, dispatcher, notices)


@pytest.fixture
def anon_controller(gateway, anonymous, dispatcher, notices):
    return build_controller(gateway, anonymous, dispatcher, notices)
