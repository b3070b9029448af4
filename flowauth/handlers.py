"""Login, provider callback and logout.

A login attempt goes through two sessions. The *flow session* is created by
:class:`LoginInitiator` under a cookie named after a fresh random flow ID,
which is also sent to the provider as ``state``. When the provider redirects
back, :class:`CallbackHandler` can only find that cookie again by the exact
``state`` it receives, which is what ties the callback to the browser that
started the login. After a successful exchange the *authenticated session* is
written under a fixed cookie name and the flow cookie is dropped.
"""

import logging
import secrets

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from . import domain
from .exceptions import (ExchangeError, FlowAuthError, InvalidFlowError,
                         IdentityResolutionError, SessionIOError)
from .provider import OAuthClient
from .redirects import validate_redirect
from .sessions import Session, SessionStore
from .sessions import codec
from .users import UserDirectory

logger = logging.getLogger(__name__)

FLOW_COOKIE_PREFIX = 'flowauth_flow_'
FLOW_MAX_AGE = 10 * 60
DEFAULT_SESSION_NAME = 'flowauth_session'

REDIRECT_KEY = 'redirect'
FLOW_ID_KEY = 'flow_id'


def new_flow_id() -> str:
    """A URL-safe random flow ID with 256 bits of entropy."""
    return secrets.token_urlsafe(32)


def flow_cookie_name(flow_id: str) -> str:
    return FLOW_COOKIE_PREFIX + flow_id


class LoginInitiator(object):
    """Starts a login: stores where to go afterwards, then sends the browser
    to the provider."""

    def __init__(self, store: SessionStore, client: OAuthClient,
                 flow_max_age: int = FLOW_MAX_AGE,
                 strict_redirects: bool = False) -> None:
        self.store = store
        self.client = client
        self.flow_max_age = flow_max_age
        self.strict_redirects = strict_redirects

    def begin(self, request: Request, requested_redirect: str) -> Response:
        """Create the flow session and redirect to the provider.

        Parameters
        ----------
        request : :class:`Request`
        requested_redirect : str
            Where the client wants to land after login. Absolute URLs are
            replaced by ``/``; with ``strict_redirects`` they fail the request.

        Raises
        ------
        :class:`.SessionIOError`
        :class:`.InvalidRedirect`

        """
        flow_id = new_flow_id()
        try:
            flow = self.store.new(request, flow_cookie_name(flow_id))
        except FlowAuthError:
            raise
        except Exception as e:
            raise SessionIOError(f'could not create oauth session: {e}') from e
        flow.max_age = self.flow_max_age

        target, error = validate_redirect(requested_redirect)
        if error is not None:
            if self.strict_redirects:
                raise error
            logger.warning('Rejected login redirect: %s', error.detail)

        state = domain.FlowSession(flow_id=flow_id, redirect_target=target)
        flow.values[REDIRECT_KEY] = state.redirect_target
        flow.values[FLOW_ID_KEY] = state.flow_id

        url = self.client.auth_code_url(flow_id)
        response = RedirectResponse(url, status_code=302)
        self.store.save(response, flow)
        logger.debug('Started login flow, next page %s', target)
        return response


class CallbackHandler(object):
    """Completes a login when the provider redirects back.

    Steps run strictly in order and any failure ends the request, so a forged
    ``state`` never reaches the provider and nothing is written to the
    authenticated session unless every step succeeded.
    """

    def __init__(self, store: SessionStore, client: OAuthClient,
                 directory: UserDirectory,
                 session_name: str = DEFAULT_SESSION_NAME) -> None:
        self.store = store
        self.client = client
        self.directory = directory
        self.session_name = session_name

    def handle(self, request: Request, state: str, code: str,
               error: str = None) -> Response:
        """Exchange ``code``, resolve the user and open the session.

        ``error`` is the OAuth2 error the provider sends back instead of a
        code, e.g. when the user declines consent.

        Raises
        ------
        :class:`.InvalidFlowError`
        :class:`.ExchangeError`
        :class:`.ProfileFetchError`
        :class:`.IdentityResolutionError`
        :class:`.SessionIOError`

        """
        flow = self.load_flow(request, state)
        next_page = self.extract_redirect(flow, state)

        if error:
            raise ExchangeError(f'provider returned {error}')
        token = self.client.exchange(code)
        profile = self.client.fetch_profile(token)
        try:
            user = self.directory.get_or_create_user(profile.id)
        except IdentityResolutionError:
            raise
        except Exception as e:
            raise IdentityResolutionError(f'could not upsert user: {e}') from e
        logger.info('Logged in user %s', user.id)

        try:
            session = self.store.new(request, self.session_name)
        except FlowAuthError:
            raise
        except Exception as e:
            raise SessionIOError(f'could not get default session: {e}') from e
        session.values = codec.encode(
            domain.AuthenticatedSession(token=token, user=user))

        response = RedirectResponse(next_page, status_code=302)
        self.store.save(response, session)
        self.store.delete(response, flow.name)
        return response

    def load_flow(self, request: Request, state: str) -> Session:
        """Find the flow session for ``state``."""
        if not state:
            raise InvalidFlowError('callback without state')
        try:
            flow = self.store.get(request, flow_cookie_name(state))
        except SessionIOError as e:
            raise InvalidFlowError(f'flow session unreadable: {e}') from e
        if flow.is_new:
            raise InvalidFlowError('no flow session for state')
        return flow

    def extract_redirect(self, flow: Session, state: str) -> str:
        """Get the validated next page stored by the login."""
        try:
            stored = domain.FlowSession(flow_id=flow.values.get(FLOW_ID_KEY),
                                        redirect_target=flow.values.get(REDIRECT_KEY))
        except ValidationError as e:
            raise InvalidFlowError(f'flow session has bad values: {e}') from e
        if stored.flow_id != state:
            raise InvalidFlowError('flow session does not match state')
        next_page, error = validate_redirect(stored.redirect_target)
        if error is not None:
            raise InvalidFlowError(f'flow session redirect rejected: {error.detail}')
        return next_page


class LogoutHandler(object):
    """Clears the authenticated session."""

    def __init__(self, store: SessionStore,
                 session_name: str = DEFAULT_SESSION_NAME) -> None:
        self.store = store
        self.session_name = session_name

    def logout(self, request: Request) -> Response:
        """Empty the token and user of the session and go home.

        Works the same whether or not the browser had a session.
        """
        try:
            session = self.store.get(request, self.session_name)
        except SessionIOError as e:
            logger.info('Replacing unreadable session on logout: %s', e.detail)
            session = self.store.new(request, self.session_name)
        session.values = codec.encode(domain.AuthenticatedSession())

        response = RedirectResponse('/', status_code=302)
        self.store.save(response, session)
        return response
