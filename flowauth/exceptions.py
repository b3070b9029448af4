"""Exceptions raised while authenticating and authorizing requests.

Each exception class carries the HTTP status it maps to and a short
``message`` that is safe to show to the client. The ``detail`` passed when
raising, and any chained cause, are only ever logged server-side.
"""


class FlowAuthError(RuntimeError):
    """Base class for errors that terminate a request."""

    status_code = 500
    message = 'Authentication failed'

    def __init__(self, detail: str = None) -> None:
        self.detail = detail or self.message
        super().__init__(self.detail)


class ConfigurationError(FlowAuthError):
    """A required configuration parameter is missing or invalid."""

    message = 'Service is misconfigured'


class SessionIOError(FlowAuthError):
    """The session store could not read or write a session."""

    message = 'Could not read or write session'


class SessionExpired(SessionIOError):
    """A session cookie was presented after its expiry."""

    message = 'Session has expired'


class MalformedSession(FlowAuthError):
    """Session payload does not have the expected shape or schema."""

    message = 'Session data is malformed'


class InvalidRedirect(FlowAuthError):
    """A post-login destination was rejected."""

    message = 'Invalid redirect URL'


class InvalidFlowError(FlowAuthError):
    """The ``state`` parameter does not match a live flow session.

    Either the login took longer than the flow lifetime, the flow cookie was
    lost, or the callback was forged.
    """

    message = 'invalid state parameter. try logging in again.'


class ExchangeError(FlowAuthError):
    """The provider rejected the authorization code."""

    message = 'could not get auth token'


class ProfileFetchError(FlowAuthError):
    """The provider profile could not be fetched with the new token."""

    message = 'could not fetch provider profile'


class IdentityResolutionError(FlowAuthError):
    """The user directory failed to look up or create the local user."""

    message = 'could not resolve user'


class AuthorizationDenied(FlowAuthError):
    """The request does not carry a user with the required role."""

    status_code = 403
    message = 'Forbidden'
