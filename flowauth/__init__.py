"""OAuth2 authorization-code login with cookie sessions and role gates."""
