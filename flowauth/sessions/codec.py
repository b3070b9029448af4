"""Versioned encoding of :class:`.AuthenticatedSession` values.

The persistent session cookie holds::

    {"schema": 1, "token": {...} | null, "user": {"id": ..., "role": ...} | null}

Payloads written under an older schema are upgraded by the functions in
:data:`MIGRATIONS` before being validated, so existing logins survive a
schema change instead of being silently dropped.
"""

from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from ..domain import AuthenticatedSession
from ..exceptions import MalformedSession

SCHEMA_VERSION = 1


def _from_schema_0(values: Dict[str, Any]) -> Dict[str, Any]:
    """Schema 0 stored the token and user under their earlier key names."""
    return {'schema': 1,
            'token': values.get('oauth_token'),
            'user': values.get('google_profile')}


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _from_schema_0,
}


def encode(session: AuthenticatedSession) -> Dict[str, Any]:
    """Serialize an authenticated session to JSON-safe session values."""
    data = session.model_dump(mode='json')
    return {'schema': SCHEMA_VERSION,
            'token': data['token'],
            'user': data['user']}


def decode(values: Dict[str, Any]) -> Optional[AuthenticatedSession]:
    """Validate session values and build an :class:`.AuthenticatedSession`.

    Returns ``None`` when there is nothing stored (an anonymous browser).

    Raises
    ------
    :class:`.MalformedSession`
        The values have an unknown schema or do not validate.

    """
    if not values:
        return None
    if not isinstance(values, dict):
        raise MalformedSession(f'Expected a mapping, got {type(values).__name__}')

    schema = values.get('schema', 0)
    while isinstance(schema, int) and schema in MIGRATIONS:
        values = MIGRATIONS[schema](values)
        schema = values.get('schema')
    if schema != SCHEMA_VERSION:
        raise MalformedSession(f'Unknown session schema {schema!r}')

    try:
        return AuthenticatedSession.model_validate(
            {'token': values.get('token'), 'user': values.get('user')})
    except ValidationError as e:
        raise MalformedSession(f'Session payload does not validate: {e}') from e
