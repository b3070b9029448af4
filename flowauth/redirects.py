"""Post-login redirect handling."""
import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .exceptions import InvalidRedirect

DEFAULT_REDIRECT = '/'

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')
_BAD_ESCAPE = re.compile(r'%(?![0-9a-fA-F]{2})')


def validate_redirect(path: str) -> Tuple[str, Optional[InvalidRedirect]]:
    """Check that ``path`` is safe to redirect to after login.

    Only relative references are allowed, so that the login flow cannot be
    used to bounce users to another host.

    Parameters
    ----------
    path : str
        Destination requested by the client.

    Returns
    -------
    tuple
        ``(safe_path, error)``. ``safe_path`` is ``path`` if it passes, or
        ``"/"`` otherwise. ``error`` is ``None`` unless ``path`` was rejected.

    """
    if not path:
        return DEFAULT_REDIRECT, None

    if (_CONTROL_CHARS.search(path) or _BAD_ESCAPE.search(path)
            or path[0].isspace()):
        return DEFAULT_REDIRECT, InvalidRedirect(
            f'unparseable redirect URL {path!r}')
    try:
        parsed = urlsplit(path)
    except ValueError as e:
        return DEFAULT_REDIRECT, InvalidRedirect(
            f'unparseable redirect URL {path!r}: {e}')
    if not parsed.scheme and ':' in parsed.path.split('/', 1)[0]:
        return DEFAULT_REDIRECT, InvalidRedirect(
            f'unparseable redirect URL {path!r}: colon in first path segment')

    # Browsers read "/\host" and "\\host" as "//host".
    if parsed.scheme or parsed.netloc or path.startswith(('//', '/\\', '\\')):
        return DEFAULT_REDIRECT, InvalidRedirect('URL must not be absolute')
    return path, None
