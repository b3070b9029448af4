"""Tests for :mod:`flowauth.sessions`."""

import time
from unittest import TestCase, mock

import jwt
from starlette.responses import Response

from flowauth.exceptions import ConfigurationError, SessionExpired, SessionIOError
from flowauth.sessions import CookieSessionStore, Session

SECRET = 'testing_secret_at_least_32_bytes_long'


def request_with(cookies: dict) -> mock.MagicMock:
    request = mock.MagicMock()
    request.cookies = cookies
    return request


def cookie_from(response: Response, name: str) -> str:
    """Value of the ``name`` cookie set on ``response``."""
    for header in response.headers.getlist('set-cookie'):
        key, _, rest = header.partition('=')
        if key == name:
            return rest.split(';', 1)[0]
    raise KeyError(name)


class TestCookieSessionStore(TestCase):
    """Sessions survive a save and load, and nothing else gets in."""

    def setUp(self):
        self.store = CookieSessionStore(SECRET, max_age=3600, secure=False)

    def test_secret_required(self):
        """A store cannot be built without a secret."""
        with self.assertRaises(ConfigurationError):
            CookieSessionStore('')

    def test_get_without_cookie(self):
        """No cookie means a new, empty session."""
        session = self.store.get(request_with({}), 'foo')
        self.assertTrue(session.is_new)
        self.assertEqual(session.values, {})
        self.assertEqual(session.name, 'foo')

    def test_save_and_get(self):
        """A saved session is read back from its cookie."""
        session = self.store.new(request_with({}), 'foo')
        session.values['redirect'] = '/dashboard'
        response = Response()
        self.store.save(response, session)

        header = response.headers['set-cookie']
        self.assertIn('Max-Age=3600', header)
        self.assertIn('HttpOnly', header)
        self.assertIn('SameSite=lax', header)

        loaded = self.store.get(request_with({'foo': cookie_from(response, 'foo')}), 'foo')
        self.assertFalse(loaded.is_new)
        self.assertEqual(loaded.values, {'redirect': '/dashboard'})

    def test_cookie_bound_to_name(self):
        """A cookie copied under another name is not accepted."""
        response = Response()
        self.store.save(response, Session('foo', {'a': 1}, max_age=600))
        value = cookie_from(response, 'foo')
        with self.assertRaises(SessionIOError):
            self.store.get(request_with({'bar': value}), 'bar')

    def test_tampered_cookie(self):
        """A cookie signed with another secret is rejected."""
        forged = CookieSessionStore('not-the-secret-but-just-as-long-as-it').encode(
            Session('foo', {'a': 1}, max_age=600))
        with self.assertRaises(SessionIOError):
            self.store.get(request_with({'foo': forged}), 'foo')

    def test_garbage_cookie(self):
        """Something that is not a JWT is rejected."""
        with self.assertRaises(SessionIOError):
            self.store.get(request_with({'foo': 'definitelynotatoken'}), 'foo')

    def test_wrong_payload_version(self):
        """Payloads from an unknown version are rejected."""
        now = int(time.time())
        token = jwt.encode({'v': 99, 'name': 'foo', 'iat': now,
                            'exp': now + 60, 'values': {}},
                           SECRET, algorithm='HS256')
        with self.assertRaises(SessionIOError):
            self.store.get(request_with({'foo': token}), 'foo')

    def test_expired(self):
        """A cookie past its max age is rejected by the server."""
        issued_long_ago = CookieSessionStore(SECRET, now=lambda: time.time() - 601)
        cookie = issued_long_ago.encode(Session('foo', {'a': 1}, max_age=600))
        with self.assertRaises(SessionExpired):
            self.store.get(request_with({'foo': cookie}), 'foo')

    def test_not_yet_expired(self):
        """A cookie inside its max age is accepted."""
        issued_recently = CookieSessionStore(SECRET, now=lambda: time.time() - 590)
        cookie = issued_recently.encode(Session('foo', {'a': 1}, max_age=600))
        self.assertEqual(self.store.get(request_with({'foo': cookie}), 'foo').values,
                         {'a': 1})

    def test_delete(self):
        """Deleting a session expires its cookie."""
        response = Response()
        self.store.delete(response, 'foo')
        header = response.headers['set-cookie']
        self.assertTrue(header.startswith('foo='))
        self.assertIn('Max-Age=0', header)

    def test_save_failure(self):
        """Values that cannot be encoded fail the save."""
        session = Session('foo', {'bad': object()}, max_age=60)
        with self.assertRaises(SessionIOError):
            self.store.save(Response(), session)
