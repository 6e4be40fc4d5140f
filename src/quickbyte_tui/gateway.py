from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import (
    DEFAULT_COUNTRY,
    DEFAULT_SORT_BY,
    HTTP_TIMEOUT,
    REQUEST_HEADERS,
    SESSION_COOKIE,
)
from .datamodels import Article, ArticlePage
from .errors import GatewayError

logger = logging.getLogger("quickbyte")


class NewsGateway:
    """HTTP client for the QuickByte news and favorites endpoints.

    Reads return a tuple of articles; every failure raises GatewayError with
    a message from the service's ``error`` field when it sends one.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        country: str = DEFAULT_COUNTRY,
        sort_by: str = DEFAULT_SORT_BY,
        timeout: float = HTTP_TIMEOUT,
        retries: int = 0,
    ):
        self.base_url = base_url.rstrip("/")
        self.country = country
        self.sort_by = sort_by
        self.timeout = timeout
        self.session = self._create_session(retries)
        self.set_token(token)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "NewsGateway":
        return cls(
            base_url=config["base_url"],
            token=config.get("token"),
            country=config.get("country") or DEFAULT_COUNTRY,
            sort_by=config.get("sort_by") or DEFAULT_SORT_BY,
            timeout=config.get("timeout") or HTTP_TIMEOUT,
            retries=int(config.get("retries") or 0),
        )

    def _create_session(self, retries: int) -> requests.Session:
        s = requests.Session()
        s.headers.update(REQUEST_HEADERS)
        # Only idempotent reads are ever retried by the transport.
        retry = Retry(
            total=retries,
            backoff_factor=0.3,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    def set_token(self, token: Optional[str]) -> None:
        """Attach (or drop) the session cookie sent with every request."""
        self.session.cookies.pop(SESSION_COOKIE, None)
        if token:
            self.session.cookies.set(SESSION_COOKIE, token)

    # --- reads ---
    def headlines(self, page: int, page_size: int) -> ArticlePage:
        data = self._request_json(
            "GET",
            "/api/news/top-headlines",
            "Failed to fetch top headlines",
            params={"country": self.country, "page": page, "pageSize": page_size},
        )
        return _parse_articles(data, "headlines")

    def search(self, query: str, page: int, page_size: int) -> ArticlePage:
        return self._search(query, page, page_size, "Failed to fetch search results")

    def category(self, name: str, page: int, page_size: int) -> ArticlePage:
        # The backend has no category endpoint; categories are searches by name.
        return self._search(name, page, page_size, "Failed to fetch category articles")

    def favorites_list(self, user_id: str) -> ArticlePage:
        data = self._request_json(
            "GET",
            f"/api/favorites/{_segment(user_id)}",
            "Failed to fetch favorites",
        )
        if data is None:
            return ()
        return _parse_articles(data, "favorites")

    def _search(
        self, query: str, page: int, page_size: int, failure: str
    ) -> ArticlePage:
        data = self._request_json(
            "GET",
            "/api/news/search",
            failure,
            params={
                "query": query,
                "sortBy": self.sort_by,
                "page": page,
                "pageSize": page_size,
            },
        )
        return _parse_articles(data, "search")

    # --- writes ---
    def add_favorite(self, user_id: str, article_id: str) -> None:
        self._request(
            "POST",
            f"/api/favorites/{_segment(user_id)}/add/{_segment(article_id)}",
            "Failed to add to favorites",
        )

    def remove_favorite(self, user_id: str, article_id: str) -> None:
        try:
            self._request(
                "DELETE",
                f"/api/favorites/{_segment(user_id)}/remove/{_segment(article_id)}",
                "Failed to remove from favorites",
            )
        except GatewayError as e:
            if e.status_code != 404:
                raise
            # Already absent server-side, which is what the caller asked for.
            logger.debug("Favorite %s already removed for %s", article_id, user_id)

    # --- auth boundary ---
    def verify(self) -> Optional[Dict[str, Any]]:
        """Return the verified user payload, or None when not signed in."""
        try:
            data = self._request_json("GET", "/api/auth/verify", "Not signed in")
        except GatewayError as e:
            logger.debug("Session verification failed: %s", e)
            return None
        return data if isinstance(data, dict) else None

    def logout(self) -> None:
        self._request("POST", "/api/auth/logout", "Failed to log out")

    # --- transport ---
    def _request(
        self, method: str, path: str, failure: str, **kwargs: Any
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s %s", method, url, kwargs.get("params") or "")
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise GatewayError(failure, operation=path) from e

        if not resp.ok:
            message = _error_message(resp) or failure
            logger.warning(
                "%s %s returned %s: %s", method, url, resp.status_code, message
            )
            raise GatewayError(message, operation=path, status_code=resp.status_code)
        return resp

    def _request_json(
        self, method: str, path: str, failure: str, **kwargs: Any
    ) -> Any:
        resp = self._request(method, path, failure, **kwargs)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.warning("Malformed JSON from %s: %s", path, e)
            raise GatewayError(failure, operation=path, status_code=resp.status_code) from e


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _error_message(resp: requests.Response) -> Optional[str]:
    try:
        data = resp.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def _parse_articles(data: Any, operation: str) -> ArticlePage:
    if data is None:
        return ()
    if not isinstance(data, list):
        raise GatewayError(
            f"Unexpected {operation} response from the news service",
            operation=operation,
        )
    articles = []
    for item in data:
        try:
            articles.append(Article.from_json(item))
        except (AttributeError, ValueError) as e:
            logger.debug("Skipping malformed article in %s: %s", operation, e)
    return tuple(articles)
