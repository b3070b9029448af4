"""Tests for :mod:`flowauth.sessions.codec`."""

from unittest import TestCase

from flowauth.domain import AuthenticatedSession, OAuthToken, User
from flowauth.exceptions import MalformedSession
from flowauth.sessions import codec


class TestCodec(TestCase):
    """The persistent session payload is explicit and versioned."""

    def test_encode(self):
        """Encoding writes the schema version next to token and user."""
        values = codec.encode(AuthenticatedSession(
            token=OAuthToken(access_token='abc'),
            user=User(id='u1', role='admin')))
        self.assertEqual(values['schema'], codec.SCHEMA_VERSION)
        self.assertEqual(values['user'], {'id': 'u1', 'role': 'admin'})
        self.assertEqual(values['token']['access_token'], 'abc')

    def test_decode(self):
        """Encoded values decode to the same session."""
        session = AuthenticatedSession(token=OAuthToken(access_token='abc'),
                                       user=User(id='u1', role='user'))
        self.assertEqual(codec.decode(codec.encode(session)), session)

    def test_decode_empty(self):
        """Nothing stored means no session."""
        self.assertIsNone(codec.decode({}))

    def test_decode_logged_out(self):
        """A cleared session decodes as anonymous."""
        session = codec.decode(codec.encode(AuthenticatedSession()))
        self.assertTrue(session.is_anonymous)
        self.assertIsNone(session.token)

    def test_unknown_schema(self):
        """Payloads from a future schema are malformed."""
        with self.assertRaises(MalformedSession):
            codec.decode({'schema': 7, 'token': None, 'user': None})

    def test_wrong_shape(self):
        """A user that is not a user record is malformed."""
        for user in ['u1', {'id': 'u1'}, ['u1', 'admin'], 5]:
            with self.assertRaises(MalformedSession):
                codec.decode({'schema': 1, 'token': None, 'user': user})

    def test_schema_0_migrated(self):
        """Sessions written before the schema field existed still load."""
        session = codec.decode({'oauth_token': {'access_token': 'abc'},
                                'google_profile': {'id': 'u1', 'role': 'admin'}})
        self.assertEqual(session.user, User(id='u1', role='admin'))
        self.assertEqual(session.token.access_token, 'abc')
