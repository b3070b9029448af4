"""Cookie-bound session storage.

The rest of the package only relies on :class:`SessionStore`; the default
implementation is :class:`.store.CookieSessionStore`.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from starlette.requests import Request
from starlette.responses import Response


class Session(object):
    """A named bag of values bound to one cookie."""

    def __init__(self, name: str, values: Optional[Dict[str, Any]] = None,
                 max_age: int = 0, is_new: bool = True) -> None:
        self.name = name
        self.values: Dict[str, Any] = dict(values or {})
        self.max_age = max_age
        self.is_new = is_new

    def __repr__(self) -> str:
        return f'<Session {self.name} new={self.is_new} keys={sorted(self.values)}>'


class SessionStore(ABC):
    """Lookup, creation and persistence of cookie-bound sessions."""

    @abstractmethod
    def new(self, request: Request, name: str) -> Session:
        """Create an empty session without looking at the request."""

    @abstractmethod
    def get(self, request: Request, name: str) -> Session:
        """Load the session bound to cookie ``name``.

        Returns a new, empty session if the request carries no such cookie.

        Raises
        ------
        :class:`.SessionIOError`
            The cookie is present but cannot be read, has been tampered with,
            or has expired (:class:`.SessionExpired`).

        """

    @abstractmethod
    def save(self, response: Response, session: Session) -> None:
        """Persist ``session`` by setting its cookie on ``response``.

        A session with ``max_age <= 0`` is deleted instead.
        """

    def delete(self, response: Response, name: str) -> None:
        """Expire the cookie ``name``."""
        self.save(response, Session(name, max_age=-1))


from .store import CookieSessionStore  # noqa: E402

__all__ = ['Session', 'SessionStore', 'CookieSessionStore']
