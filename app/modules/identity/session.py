"""
Session token validation strategies.

SupabaseSessionValidator asks Supabase Auth who owns the token and merges the
user record over the token payload.
LocalJWTSessionValidator verifies the platform-signed JWT with the project's
JWT secret and exposes the full claim payload (including root-level claims).
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from joserfc import jws, jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey
from supabase import Client

from app.core.exceptions import AuthError, AuthErrorKind
from app.modules.identity.schemas import SessionIdentity

logger = logging.getLogger(__name__)

# In-memory cache for Supabase user lookups (e.g. many parallel requests with same token)
_SESSION_CACHE: Dict[str, tuple] = {}
_SESSION_CACHE_TTL_SEC = 60
_SESSION_CACHE_MAX_SIZE = 500


def clear_session_cache() -> None:
    _SESSION_CACHE.clear()


class SessionValidator(ABC):
    @abstractmethod
    def validate(self, token: str) -> SessionIdentity:
        """Return the session's identity or raise a malformed-credential AuthError."""
        raise NotImplementedError


class SupabaseSessionValidator(SessionValidator):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def validate(self, token: str) -> SessionIdentity:
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _SESSION_CACHE:
            identity, expiry = _SESSION_CACHE[cache_key]
            if now < expiry:
                return identity
            del _SESSION_CACHE[cache_key]

        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.warning("Supabase rejected session token: %s", e)
            raise AuthError(AuthErrorKind.MALFORMED_CREDENTIAL, "Invalid or expired session token")
        if not user_response or not user_response.user:
            raise AuthError(AuthErrorKind.MALFORMED_CREDENTIAL, "Invalid or expired session token")

        user = user_response.user
        identity = SessionIdentity(
            user_id=user.id,
            email=user.email,
            claims={
                **_token_payload(token),
                "sub": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
            },
        )
        if len(_SESSION_CACHE) < _SESSION_CACHE_MAX_SIZE:
            _SESSION_CACHE[cache_key] = (identity, now + _SESSION_CACHE_TTL_SEC)
        return identity


class LocalJWTSessionValidator(SessionValidator):
    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = "authenticated"):
        self._key = OctKey.import_key(secret)
        self._algorithm = algorithm
        self._audience = audience

    def validate(self, token: str) -> SessionIdentity:
        registry_options = {"exp": {"essential": True}, "sub": {"essential": True}}
        if self._audience:
            registry_options["aud"] = {"essential": True, "value": self._audience}
        try:
            token_obj = jwt.decode(token, self._key, algorithms=[self._algorithm])
            jwt.JWTClaimsRegistry(**registry_options).validate(token_obj.claims)
        except (JoseError, ValueError) as e:
            logger.warning("Session JWT verification failed: %s", e)
            raise AuthError(AuthErrorKind.MALFORMED_CREDENTIAL, "Invalid or expired session token")

        claims = dict(token_obj.claims)
        return SessionIdentity(user_id=str(claims["sub"]), email=claims.get("email"), claims=claims)


def _token_payload(token: str) -> Dict[str, Any]:
    """Claims of a session JWT that Supabase Auth has already accepted.

    Only called after get_user succeeded, so the signature is not checked
    again here. Root-level claims (e.g. wallet_address) are not part of the
    user record and are only visible through the payload.
    """
    try:
        payload = json.loads(jws.extract_compact(token.encode()).payload)
    except (JoseError, ValueError) as e:
        logger.debug("Session token payload not readable: %s", e)
        return {}
    return payload if isinstance(payload, dict) else {}
