"""Client for the identity provider's OAuth2 endpoints.

Defaults point at Google. Any provider that speaks the authorization-code
grant and exposes an OIDC-style userinfo endpoint can be used by overriding
the endpoint URLs.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from .domain import OAuthToken, ProviderProfile
from .exceptions import ExchangeError, ProfileFetchError

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URL = 'http://localhost:8080/oauth2callback'
GOOGLE_AUTH_URL = 'https://accounts.google.com/o/oauth2/auth'
GOOGLE_TOKEN_URL = 'https://oauth2.googleapis.com/token'
GOOGLE_USERINFO_URL = 'https://openidconnect.googleapis.com/v1/userinfo'
DEFAULT_SCOPES = ['openid', 'email', 'profile']


class OAuthClient(object):
    """Read-only OAuth2 client configuration plus the calls made with it.

    One instance is shared by all requests. It holds no per-request state:
    by default each call goes through the module-level ``requests`` functions,
    which use a fresh session (and cookie jar) per call, with a bounded
    timeout.
    """

    def __init__(self, client_id: str, client_secret: str,
                 redirect_url: Optional[str] = None,
                 scopes: Optional[List[str]] = None,
                 auth_url: str = GOOGLE_AUTH_URL,
                 token_url: str = GOOGLE_TOKEN_URL,
                 userinfo_url: str = GOOGLE_USERINFO_URL,
                 timeout: float = 10.0,
                 http: Any = None) -> None:
        if not redirect_url:
            redirect_url = DEFAULT_REDIRECT_URL
        self.client_id = (client_id or '').strip()
        self.client_secret = (client_secret or '').strip()
        self.redirect_url = redirect_url.strip()
        self.scopes = list(scopes) if scopes else list(DEFAULT_SCOPES)
        self.auth_url = auth_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.timeout = timeout
        self._http = http or requests

    def auth_code_url(self, state: str) -> str:
        """URL of the provider consent page for a new flow.

        Always asks the user to re-approve (``prompt=consent``) and requests
        online access only, since tokens are never refreshed.
        """
        params = {
            'client_id': self.client_id,
            'redirect_uri': self.redirect_url,
            'response_type': 'code',
            'scope': ' '.join(self.scopes),
            'state': state,
            'prompt': 'consent',
            'access_type': 'online',
        }
        sep = '&' if '?' in self.auth_url else '?'
        return f'{self.auth_url}{sep}{urlencode(params)}'

    def exchange(self, code: str) -> OAuthToken:
        """Trade an authorization code for a token.

        Codes are single-use, so a failed exchange is never retried.

        Raises
        ------
        :class:`.ExchangeError`

        """
        if not code:
            raise ExchangeError('could not get auth token: missing code')
        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_url,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }
        try:
            resp = self._http.post(self.token_url, data=data,
                                   headers={'Accept': 'application/json'},
                                   timeout=self.timeout)
        except requests.RequestException as e:
            raise ExchangeError(f'could not get auth token: {e}') from e

        if resp.status_code != 200:
            raise ExchangeError(
                f'could not get auth token: provider returned {resp.status_code}'
                f' {_error_code(resp)}')
        try:
            return OAuthToken.from_token_response(_json_object(resp))
        except (ValueError, KeyError, TypeError, OverflowError) as e:
            raise ExchangeError('could not get auth token: bad token response') from e

    def fetch_profile(self, token: OAuthToken) -> ProviderProfile:
        """Get the identity profile of the user that granted ``token``.

        Raises
        ------
        :class:`.ProfileFetchError`

        """
        try:
            resp = self._http.get(self.userinfo_url,
                                  headers={'Authorization': token.authorization,
                                           'Accept': 'application/json'},
                                  timeout=self.timeout)
        except requests.RequestException as e:
            raise ProfileFetchError(f'could not fetch provider profile: {e}') from e

        if resp.status_code != 200:
            raise ProfileFetchError(
                f'could not fetch provider profile: provider returned {resp.status_code}')
        try:
            profile = ProviderProfile.from_userinfo(_json_object(resp))
        except (ValueError, TypeError) as e:
            raise ProfileFetchError('could not fetch provider profile: bad response') from e
        if not profile.id:
            raise ProfileFetchError('could not fetch provider profile: no subject')
        return profile


def _json_object(resp: requests.Response) -> Dict[str, Any]:
    data = resp.json()
    if not isinstance(data, dict):
        raise TypeError(f'expected a JSON object, got {type(data).__name__}')
    return data


def _error_code(resp: requests.Response) -> str:
    """The OAuth2 ``error`` field of a failed response, if there is one."""
    try:
        return str(resp.json().get('error', ''))
    except (ValueError, AttributeError):
        return ''
