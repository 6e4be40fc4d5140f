from __future__ import annotations

import logging
import threading
from typing import FrozenSet, Iterable

from .datamodels import Article, ArticlePage
from .errors import AuthorizationError, FavoriteMutationError, FavoritesSyncError, GatewayError
from .gateway import NewsGateway
from .session import SessionProvider

logger = logging.getLogger("quickbyte")


class FavoritesCache:
    """Article ids the signed-in user has favorited.

    The set is only ever replaced, never mutated in place, and a toggle is
    applied only once the backend has confirmed it. Every change bumps
    ``generation``, so a snapshot read before a change can be recognised as
    older than the cache and skipped.
    """

    def __init__(self, gateway: NewsGateway, session: SessionProvider):
        self.gateway = gateway
        self._session = session
        self._ids: FrozenSet[str] = frozenset()
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def ids(self) -> FrozenSet[str]:
        return self._ids

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._ids)

    def is_favorite(self, article_id: str) -> bool:
        return article_id in self._ids

    def replace(self, ids: Iterable[str]) -> None:
        new_ids = frozenset(ids)
        with self._lock:
            self._ids = new_ids
            self._generation += 1

    def replace_if_unchanged(self, ids: Iterable[str], generation: int) -> bool:
        """Replace the ids unless the cache changed after `generation` was read."""
        new_ids = frozenset(ids)
        with self._lock:
            if self._generation != generation:
                return False
            self._ids = new_ids
            self._generation += 1
        return True

    def clear(self) -> None:
        self.replace(())

    def load(self, user_id: str) -> ArticlePage:
        """Fetch the user's favorites and replace the cached ids with them.

        Raises FavoritesSyncError on failure, with the cache left untouched.
        """
        generation = self._generation
        try:
            articles = self.gateway.favorites_list(user_id)
        except GatewayError as e:
            logger.warning("Favorites sync failed for %s: %s", user_id, e.message)
            raise FavoritesSyncError(e.message, context={"user_id": user_id}) from e

        if self._session.current.user_id != user_id:
            logger.debug("Discarding favorites for %s; session changed", user_id)
            return articles
        if not self.replace_if_unchanged((a.id for a in articles), generation):
            logger.debug("Discarding favorites for %s; cache changed meanwhile", user_id)
            return articles
        logger.debug("Loaded %d favorites for %s", len(articles), user_id)
        return articles

    def toggle(self, article: Article) -> bool:
        """Flip the favorite status of `article`; returns the new status."""
        session = self._session.current
        if not session.authenticated or not session.user_id:
            raise AuthorizationError("Please log in to add favorites")

        was_favorite = self.is_favorite(article.id)
        try:
            if was_favorite:
                self.gateway.remove_favorite(session.user_id, article.id)
            else:
                self.gateway.add_favorite(session.user_id, article.id)
        except GatewayError as e:
            logger.error("Favorite toggle failed for %s: %s", article.id, e.message)
            raise FavoriteMutationError(
                "There was an error updating your favorites", article.id
            ) from e

        if self._session.current.user_id != session.user_id:
            logger.debug("Not applying toggle of %s; session changed", article.id)
            return was_favorite
        with self._lock:
            if was_favorite:
                self._ids = self._ids - {article.id}
            else:
                self._ids = self._ids | {article.id}
            self._generation += 1
        return not was_favorite
