"""
Swiftly: Token Plugin
======================

What:  Signs and verifies bearer tokens, exposed as `ctx.jwt`.
How:   Thin wrapper over PyJWT. Tokens carry `iat` and `exp`; verification
       maps PyJWT failures onto the kernel's token error codes:
           jwt.ExpiredSignatureError → TokenExpiredError (31)
           jwt.InvalidTokenError     → TokenInvalidError (32)
Who:   The auth plugin verifies incoming tokens; login handlers call
       `ctx.jwt.sign(payload)`.

Secrets:
    JWT_SECRET set         → used as-is
    unset, development     → random per-process secret, logged as a warning
    unset, production      → ConfigurationError at startup
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from swiftly.exceptions import ConfigurationError, TokenExpiredError, TokenInvalidError
from swiftly.plugins.base import Plugin

logger = logging.getLogger(__name__)


class TokenService:
    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: int = 7 * 24 * 3600):
        if not secret:
            raise ConfigurationError("Token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def sign(self, payload: Dict[str, Any], expires_in: Optional[int] = None) -> str:
        """Create a signed token. `expires_in` (seconds) overrides the default lifetime."""
        now = datetime.now(timezone.utc)
        to_encode = dict(payload)
        to_encode.update({
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=expires_in or self.expires_in)).timestamp()),
        })
        return jwt.encode(to_encode, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """Decode and verify a token, raising the matching ApiError on failure."""
        try:
            return jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError() from None
        except jwt.InvalidTokenError as e:
            logger.debug("Invalid token: %s", e)
            raise TokenInvalidError() from None

    def decode_unverified(self, token: str) -> Dict[str, Any]:
        """Read claims without checking the signature. Never trust the result."""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            raise TokenInvalidError() from None


class JwtPlugin(Plugin):
    name = "jwt"
    order = 5

    def on_init(self, app_ctx) -> TokenService:
        config = app_ctx.config
        secret = config.jwt_secret
        if not secret:
            if config.is_production:
                raise ConfigurationError("JWT_SECRET must be set in production")
            secret = secrets.token_urlsafe(32)
            logger.warning("JWT_SECRET is not set; using a random secret. Tokens will not survive a restart.")
        return TokenService(secret, config.jwt_algorithm, config.jwt_expires_in)
