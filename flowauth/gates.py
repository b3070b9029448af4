"""
Request stages that read the authenticated session.

Two stages are provided, both built as FastAPI dependencies:

- :class:`InjectUser` lets every request through and puts the user on the
  request (``request.state.user``) when the browser is logged in.
- :class:`RequireRole` only lets a request through if the logged-in user has
  a given role, and answers 403 otherwise.

Neither trusts the role cached in the session. The user is looked up again in
the :class:`.UserDirectory` on every request (once, when both stages run), so
role changes apply without a new login.

Stages are collected in a :class:`Pipeline`, which keeps their order explicit:

.. code-block:: python

   base = Pipeline(InjectUser(store, directory))
   admin = base.then(RequireRole(store, directory, role='admin'))

   @app.get('/admin', dependencies=admin.dependencies)
   def admin_page(request: Request):
       return {'user': current_user(request)}

"""

import logging
from typing import Any, Callable, List, Optional

from fastapi import Depends
from starlette.requests import Request

from .domain import AuthenticatedSession, User
from .exceptions import (AuthorizationDenied, IdentityResolutionError,
                         MalformedSession, SessionIOError)
from .handlers import DEFAULT_SESSION_NAME
from .sessions import SessionStore
from .sessions import codec
from .users import UserDirectory

logger = logging.getLogger(__name__)

USER_CONTEXT_KEY = 'user'
ADMIN_ROLE = 'admin'


def read_authenticated_session(store: SessionStore, request: Request,
                               name: str = DEFAULT_SESSION_NAME) \
        -> Optional[AuthenticatedSession]:
    """Get the authenticated session, or ``None`` if there is none.

    Storage errors and malformed payloads are logged and treated the same as
    an anonymous browser.
    """
    try:
        session = store.get(request, name)
    except SessionIOError as e:
        logger.info('session parsing error: %s', e.detail)
        return None
    if session.is_new:
        return None
    try:
        return codec.decode(session.values)
    except MalformedSession as e:
        logger.warning('Ignoring malformed session: %s', e.detail)
        return None


def resolve_user(directory: UserDirectory, user_id: str) -> Optional[User]:
    """Get the current record for ``user_id`` from the directory."""
    try:
        return directory.get_user(user_id)
    except IdentityResolutionError:
        raise
    except Exception as e:
        raise IdentityResolutionError(f'could not get user {user_id}: {e}') from e


def current_user(request: Request) -> Optional[User]:
    """The user attached to ``request`` by a stage, if any."""
    return getattr(request.state, USER_CONTEXT_KEY, None)


class InjectUser(object):
    """Attach the logged-in user to the request; anonymous requests pass."""

    def __init__(self, store: SessionStore, directory: UserDirectory,
                 session_name: str = DEFAULT_SESSION_NAME) -> None:
        self.store = store
        self.directory = directory
        self.session_name = session_name

    def __call__(self, request: Request) -> Optional[User]:
        setattr(request.state, USER_CONTEXT_KEY, None)
        auth = read_authenticated_session(self.store, request, self.session_name)
        if auth is None or auth.is_anonymous:
            return None

        user = resolve_user(self.directory, auth.user.id)
        if user is None:
            logger.info('Session user %s no longer exists', auth.user.id)
            return None
        setattr(request.state, USER_CONTEXT_KEY, user)
        return user


class RequireRole(object):
    """Only let requests through if the logged-in user has ``role``.

    Raises
    ------
    :class:`.AuthorizationDenied`
        No session, no user ID in the session, unknown user, or wrong role.
    :class:`.IdentityResolutionError`
        The directory failed, so the user cannot be confirmed.

    """

    def __init__(self, store: SessionStore, directory: UserDirectory,
                 role: str = ADMIN_ROLE,
                 session_name: str = DEFAULT_SESSION_NAME) -> None:
        self.store = store
        self.directory = directory
        self.role = role
        self.session_name = session_name

    def __call__(self, request: Request) -> User:
        # Set by an earlier stage, which already looked it up this request.
        user = current_user(request)
        if user is None:
            auth = read_authenticated_session(self.store, request,
                                              self.session_name)
            if auth is not None and not auth.is_anonymous:
                user = resolve_user(self.directory, auth.user.id)

        if user is None or user.role != self.role:
            logger.info('Access denied to %s for user %s', request.url.path,
                        user.id if user else None)
            raise AuthorizationDenied(f'role {self.role} required')

        setattr(request.state, USER_CONTEXT_KEY, user)
        return user


class Pipeline(object):
    """An ordered list of request stages."""

    def __init__(self, *stages: Callable[..., Any]) -> None:
        self.stages = tuple(stages)

    def then(self, *stages: Callable[..., Any]) -> 'Pipeline':
        """A new pipeline running ``stages`` after the current ones."""
        return Pipeline(*self.stages, *stages)

    @property
    def dependencies(self) -> List[Any]:
        """The stages as FastAPI dependencies, in order."""
        return [Depends(stage) for stage in self.stages]
