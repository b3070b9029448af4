"""Service configuration, read from the environment.

Only ``SESSION_SECRET`` is required. For local development without HTTPS set
``SECURE=false``, otherwise the browser will not send the cookies back.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .exceptions import ConfigurationError
from .provider import (DEFAULT_REDIRECT_URL, DEFAULT_SCOPES, GOOGLE_AUTH_URL,
                       GOOGLE_TOKEN_URL, GOOGLE_USERINFO_URL)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    session_secret: str = ''
    session_cookie_name: str = 'flowauth_session'
    session_duration: int = 86400 * 30
    flow_duration: int = 600
    secure: bool = True
    domain: Optional[str] = None
    samesite: str = 'lax'

    oauth_client_id: str = ''
    oauth_client_secret: str = ''
    oauth_redirect_url: str = DEFAULT_REDIRECT_URL
    oauth_auth_url: str = GOOGLE_AUTH_URL
    oauth_token_url: str = GOOGLE_TOKEN_URL
    oauth_userinfo_url: str = GOOGLE_USERINFO_URL
    oauth_scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    provider_timeout: float = 10.0

    admin_role: str = 'admin'
    default_role: str = 'user'
    users_db_uri: str = 'sqlite:///./flowauth.db'
    login_strict_redirect: bool = False

    log_level: str = 'INFO'
    server_root_path: str = ''


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == '':
        return default
    return value.strip().lower() not in ('false', 'no', '0', 'off')


def _samesite(value: str, secure: bool) -> str:
    """The provider redirects back cross-site, so ``strict`` would drop the
    flow cookie on the callback."""
    value = value.strip().lower()
    if value not in ('lax', 'none'):
        raise ConfigurationError(f'SAMESITE must be lax or none, not {value!r}')
    if value == 'none' and not secure:
        raise ConfigurationError('SAMESITE=none requires SECURE')
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (``os.environ`` by default)."""
    env: Mapping[str, str] = os.environ if environ is None else environ
    defaults = Settings()

    domain = env.get('DOMAIN') or None
    if domain and domain[0] != '.':
        domain = '.' + domain
        logger.warning('DOMAIN did not have the leading dot. %s', domain)

    secure = _flag(env.get('SECURE'), True)
    samesite = _samesite(env.get('SAMESITE', defaults.samesite), secure)

    scopes = [s for s in env.get('OAUTH_SCOPES', '').replace(',', ' ').split() if s]

    return Settings(
        session_secret=env.get('SESSION_SECRET', ''),
        session_cookie_name=env.get('SESSION_COOKIE_NAME', defaults.session_cookie_name),
        session_duration=int(env.get('SESSION_DURATION', defaults.session_duration)),
        flow_duration=int(env.get('FLOW_DURATION', defaults.flow_duration)),
        secure=secure,
        domain=domain,
        samesite=samesite,
        oauth_client_id=env.get('OAUTH_CLIENT_ID', ''),
        oauth_client_secret=env.get('OAUTH_CLIENT_SECRET', ''),
        oauth_redirect_url=env.get('OAUTH_REDIRECT_URL') or DEFAULT_REDIRECT_URL,
        oauth_auth_url=env.get('OAUTH_AUTH_URL', GOOGLE_AUTH_URL),
        oauth_token_url=env.get('OAUTH_TOKEN_URL', GOOGLE_TOKEN_URL),
        oauth_userinfo_url=env.get('OAUTH_USERINFO_URL', GOOGLE_USERINFO_URL),
        oauth_scopes=scopes or list(DEFAULT_SCOPES),
        provider_timeout=float(env.get('PROVIDER_TIMEOUT', defaults.provider_timeout)),
        admin_role=env.get('ADMIN_ROLE', defaults.admin_role),
        default_role=env.get('DEFAULT_ROLE', defaults.default_role),
        users_db_uri=env.get('USERS_DB_URI', defaults.users_db_uri),
        login_strict_redirect=_flag(env.get('LOGIN_STRICT_REDIRECT'), False),
        log_level=env.get('LOG_LEVEL', defaults.log_level).upper(),
        server_root_path=env.get('SERVER_ROOT_PATH', defaults.server_root_path),
    )


def public_settings(settings: Settings) -> Dict[str, object]:
    """Settings that are safe to log."""
    return {
        'session_cookie_name': settings.session_cookie_name,
        'session_duration': settings.session_duration,
        'flow_duration': settings.flow_duration,
        'secure': settings.secure,
        'domain': settings.domain,
        'oauth_redirect_url': settings.oauth_redirect_url,
        'oauth_scopes': settings.oauth_scopes,
        'admin_role': settings.admin_role,
    }
