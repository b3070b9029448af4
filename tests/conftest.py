"""Fixtures shared by the app-level tests.

The provider is faked with a mock; everything else is real: the signed cookie
store and a SQL user directory on an in-memory SQLite database.
"""
from unittest import mock
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from flowauth.config import Settings
from flowauth.domain import OAuthToken, ProviderProfile
from flowauth.factory import create_app
from flowauth.provider import OAuthClient
from flowauth.sessions import CookieSessionStore
from flowauth.sessions import codec
from flowauth.users import SQLUserDirectory

SECRET = 'testing_secret_at_least_32_bytes_long'
SESSION_COOKIE = 'flowauth_session'
PROVIDER_AUTH_URL = 'https://provider.example/auth'


@pytest.fixture
def settings():
    return Settings(session_secret=SECRET, secure=False,
                    users_db_uri='sqlite://', log_level='DEBUG')


@pytest.fixture
def store():
    return CookieSessionStore(SECRET, secure=False)


@pytest.fixture
def directory():
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False},
                           poolclass=StaticPool)
    _directory = SQLUserDirectory(engine, default_role='user')
    _directory.create_tables()
    return _directory


@pytest.fixture
def provider():
    """A provider that accepts any code."""
    client = mock.MagicMock(spec=OAuthClient)
    client.auth_code_url.side_effect = \
        lambda state: f'{PROVIDER_AUTH_URL}?{urlencode({"state": state})}'
    client.exchange.return_value = OAuthToken(access_token='provider-token')
    client.fetch_profile.return_value = ProviderProfile(id='provider-42',
                                                        email='foo@bar.org')
    return client


@pytest.fixture
def app(settings, store, provider, directory):
    return create_app(settings, store=store, client=provider, directory=directory)


@pytest.fixture
def client(app):
    return TestClient(app, follow_redirects=False)


def state_from(response) -> str:
    """The ``state`` sent to the provider by a ``/login`` response."""
    return parse_qs(urlsplit(response.headers['location']).query)['state'][0]


def start_login(client, redirect: str = '/dashboard'):
    """Hit ``/login`` and return the response and the flow state."""
    response = client.get('/login', params={'redirect': redirect})
    assert response.status_code == 302
    return response, state_from(response)


def log_in(client, redirect: str = '/dashboard'):
    """Complete a login against the fake provider."""
    _, state = start_login(client, redirect)
    response = client.get('/oauth2callback', params={'state': state, 'code': 'good'})
    assert response.status_code == 302, response.text
    return response


def session_values(store, client) -> dict:
    """Decoded values of the persistent session cookie held by ``client``."""
    return store.decode(SESSION_COOKIE, client.cookies[SESSION_COOKIE])


def authenticated_session(store, client):
    return codec.decode(session_values(store, client))


def set_cookie_headers(response) -> list:
    return response.headers.get_list('set-cookie')


def sets_cookie(response, name: str) -> bool:
    return any(h.startswith(f'{name}=') for h in set_cookie_headers(response))


def cookie_value(response, name: str) -> str:
    """Value of the ``name`` cookie set by ``response``."""
    for header in set_cookie_headers(response):
        key, _, rest = header.partition('=')
        if key == name:
            return rest.split(';', 1)[0]
    raise KeyError(name)
