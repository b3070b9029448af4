"""Signed-cookie session store.

Session values are kept in the cookie itself as an HS256 JWT. The ``exp``
claim is checked whenever a session is loaded, so a cookie replayed after its
lifetime is rejected even if the browser did not discard it.
"""

import logging
import time
from typing import Any, Callable, Dict, Literal, Optional

import jwt
from starlette.requests import Request
from starlette.responses import Response

from . import Session, SessionStore
from ..exceptions import ConfigurationError, SessionExpired, SessionIOError

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 1
ALGORITHM = 'HS256'


class CookieSessionStore(SessionStore):
    """Keeps each session in its own signed cookie."""

    def __init__(self, secret: str, max_age: int = 86400 * 30,
                 secure: bool = True, domain: Optional[str] = None,
                 samesite: Literal['lax', 'strict', 'none'] = 'lax',
                 path: str = '/',
                 now: Callable[[], float] = time.time) -> None:
        if not secret:
            raise ConfigurationError('Session secret is not set')
        self._secret = secret
        self.max_age = max_age
        self.secure = secure
        self.domain = domain
        self.samesite = samesite
        self.path = path
        self._now = now

    def new(self, request: Request, name: str) -> Session:
        return Session(name, max_age=self.max_age, is_new=True)

    def get(self, request: Request, name: str) -> Session:
        cookie = request.cookies.get(name)
        if not cookie:
            return self.new(request, name)
        values = self.decode(name, cookie)
        return Session(name, values, max_age=self.max_age, is_new=False)

    def save(self, response: Response, session: Session) -> None:
        if session.max_age <= 0:
            response.delete_cookie(session.name, path=self.path,
                                   domain=self.domain, secure=self.secure,
                                   httponly=True, samesite=self.samesite)
            return
        try:
            token = self.encode(session)
            response.set_cookie(session.name, token, max_age=session.max_age,
                                path=self.path, domain=self.domain,
                                secure=self.secure, httponly=True,
                                samesite=self.samesite)
        except Exception as e:
            raise SessionIOError(f'Failed to save session {session.name}: {e}') from e

    def encode(self, session: Session) -> str:
        """Sign the session values into a cookie value."""
        issued = int(self._now())
        payload = {
            'v': PAYLOAD_VERSION,
            'name': session.name,
            'iat': issued,
            'exp': issued + session.max_age,
            'values': session.values,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, name: str, cookie: str) -> Dict[str, Any]:
        """Verify a cookie value and return the session values.

        Raises
        ------
        :class:`.SessionExpired`
            The ``exp`` claim is in the past.
        :class:`.SessionIOError`
            The signature is wrong, the payload is malformed, or the payload
            was issued for a different cookie name.

        """
        try:
            payload = jwt.decode(cookie, self._secret, algorithms=[ALGORITHM],
                                 options={'require': ['exp', 'iat']})
        except jwt.ExpiredSignatureError as e:
            raise SessionExpired(f'Session {name} has expired') from e
        except jwt.InvalidTokenError as e:
            raise SessionIOError(f'Session cookie {name} is malformed: {e}') from e

        if payload.get('v') != PAYLOAD_VERSION:
            raise SessionIOError(f'Unsupported session payload version {payload.get("v")!r}')
        if payload.get('name') != name:
            # A valid cookie copied under another name.
            raise SessionIOError(f'Session cookie {name} was issued for another session')
        values = payload.get('values')
        if not isinstance(values, dict):
            raise SessionIOError(f'Session cookie {name} has no values')
        return values
