from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import GatewayError
from .gateway import NewsGateway

logger = logging.getLogger("quickbyte")


@dataclass(frozen=True)
class Session:
    authenticated: bool = False
    user_id: Optional[str] = None
    username: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    @classmethod
    def signed_in(cls, user_id: str, username: Optional[str] = None) -> "Session":
        return cls(True, user_id, username)


SessionListener = Callable[[Session], None]


class SessionProvider:
    """Read-only view of the signed-in user, plus the verify/logout calls.

    Login itself happens elsewhere (the web app); the client only picks up a
    session token and asks the backend who it belongs to.
    """

    def __init__(self, gateway: Optional[NewsGateway] = None, session: Optional[Session] = None):
        self.gateway = gateway
        self._session = session or Session.anonymous()
        self._listeners: List[SessionListener] = []

    @property
    def current(self) -> Session:
        return self._session

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def verify(self) -> Session:
        """Resolve the session token against the backend (blocking).

        Like logout(), this only computes the new session; set() is what
        publishes it, and must run on the UI thread.
        """
        if self.gateway is None:
            return self._session
        data = self.gateway.verify()
        if data and data.get("userId"):
            session = Session.signed_in(str(data["userId"]), data.get("username"))
            logger.info("Signed in as %s", session.username or session.user_id)
        else:
            session = Session.anonymous()
            logger.info("No valid session; browsing anonymously")
        return session

    def set(self, session: Session) -> None:
        if session == self._session:
            return
        self._session = session
        for listener in list(self._listeners):
            listener(session)

    def expire(self) -> None:
        """The backend rejected our token; treat the user as signed out."""
        logger.info("Session expired")
        self.set(Session.anonymous())

    def logout(self) -> Session:
        """End the session server-side (blocking); pass the result to set()."""
        if self.gateway is not None:
            try:
                self.gateway.logout()
            except GatewayError as e:
                logger.warning("Logout request failed: %s", e)
            self.gateway.set_token(None)
        return Session.anonymous()
