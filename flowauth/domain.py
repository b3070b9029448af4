"""Core data structures for the login flow and authenticated sessions."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Dict

from pydantic import BaseModel


class User(BaseModel):
    """A local user record, as resolved by the user directory."""

    id: str
    """Local user ID."""

    role: str
    """Role used for access control, e.g. ``admin``."""


class OAuthToken(BaseModel):
    """Credential issued by the provider in exchange for a code."""

    access_token: str
    token_type: str = 'Bearer'
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    id_token: Optional[str] = None

    @classmethod
    def from_token_response(cls, data: Dict[str, Any]) -> 'OAuthToken':
        """Build a token from the JSON body of a token endpoint response."""
        expiry = None
        if data.get('expires_in'):
            expiry = datetime.now(tz=timezone.utc) \
                + timedelta(seconds=int(data['expires_in']))
        return cls(access_token=data['access_token'],
                   token_type=data.get('token_type') or 'Bearer',
                   refresh_token=data.get('refresh_token'),
                   expiry=expiry,
                   id_token=data.get('id_token'))

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f'Bearer {self.access_token}'


class ProviderProfile(BaseModel):
    """Identity profile returned by the provider's userinfo endpoint."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None

    @classmethod
    def from_userinfo(cls, data: Dict[str, Any]) -> 'ProviderProfile':
        """OIDC providers return ``sub``; older Google APIs return ``id``."""
        return cls(id=str(data.get('sub') or data.get('id') or ''),
                   email=data.get('email'),
                   name=data.get('name'),
                   picture=data.get('picture'))


class FlowSession(BaseModel):
    """Short-lived state bridging ``/login`` and the provider callback."""

    flow_id: str
    redirect_target: str = '/'


class AuthenticatedSession(BaseModel):
    """Persistent session established after a successful login.

    Both fields are ``None`` for an anonymous (or logged-out) browser.
    """

    token: Optional[OAuthToken] = None
    user: Optional[User] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user is None or not self.user.id
