"""
Wallet credential verification.

A wallet credential is the pair of X-Wallet-Address / X-Wallet-Auth-Token
headers. Only enumerated token shapes are accepted: a token that merely
accompanies a matching address proves nothing, so anything outside the
allow-list is rejected as malformed. Every accepted shape carries a signature
made with a server-side secret.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey

from app.core.exceptions import AuthError, AuthErrorKind
from app.modules.identity.claims import DEFAULT_WALLET_CLAIM_LOCATIONS, ClaimLocation, extract_wallet_claim

logger = logging.getLogger(__name__)


def _reject(detail: str) -> AuthError:
    return AuthError(AuthErrorKind.MALFORMED_CREDENTIAL, detail)


class WalletTokenFormat(ABC):
    name: str
    pattern: re.Pattern

    def matches(self, token: str) -> bool:
        return self.pattern.match(token) is not None

    @abstractmethod
    def verify(self, token: str, address: str, now: float) -> None:
        """Raise AuthError if a token of this shape does not prove `address`."""
        raise NotImplementedError


class SignedTokenFormat(WalletTokenFormat):
    """Shapes whose signature is an HMAC issued by the wallet sign-in function."""

    def __init__(self, signing_secret: str):
        if not signing_secret:
            raise ValueError(f"{self.name} wallet tokens require a signing secret")
        self.signing_secret = signing_secret

    def _check_signature(self, address: str, stamp: str, signature: str) -> None:
        expected = sign_wallet_token(address, stamp, self.signing_secret)
        if not hmac.compare_digest(expected, signature):
            raise _reject("wallet token signature mismatch")


class VerifiedTokenFormat(SignedTokenFormat):
    """WALLET_VERIFIED_<address>_EXP_<epoch-ms>_SIG_<hmac(address:expiry)>"""

    name = "verified"
    pattern = re.compile(r"^WALLET_VERIFIED_(?P<address>[^_]+)_EXP_(?P<expires>\d+)_SIG_(?P<signature>[^_]+)$")

    def verify(self, token: str, address: str, now: float) -> None:
        match = self.pattern.match(token)
        if match["address"] != address:
            raise _reject("wallet token was issued for a different address")
        self._check_signature(address, match["expires"], match["signature"])
        if int(match["expires"]) < int(now * 1000):
            raise _reject("wallet token expired")


class SignatureTokenFormat(SignedTokenFormat):
    """WALLET_AUTH_SIGNATURE_<address>_TIMESTAMP_<epoch-seconds>_SIG_<hmac(address:timestamp)>"""

    name = "signature"
    pattern = re.compile(
        r"^WALLET_AUTH_SIGNATURE_(?P<address>[^_]+)_TIMESTAMP_(?P<timestamp>\d+(?:\.\d+)?)_SIG_(?P<signature>[^_]+)$"
    )

    def __init__(self, signing_secret: str, max_age_sec: int, clock_skew_sec: int = 0):
        super().__init__(signing_secret)
        self.max_age_sec = max_age_sec
        self.clock_skew_sec = clock_skew_sec

    def verify(self, token: str, address: str, now: float) -> None:
        match = self.pattern.match(token)
        if match["address"] != address:
            raise _reject("wallet token was issued for a different address")
        self._check_signature(address, match["timestamp"], match["signature"])
        issued_at = float(match["timestamp"])
        if issued_at > now + self.clock_skew_sec:
            raise _reject("wallet token issued in the future")
        if now - issued_at > self.max_age_sec:
            raise _reject("wallet token expired")


class JWTTokenFormat(WalletTokenFormat):
    """Compact JWS signed with the wallet JWT secret, carrying a wallet claim."""

    name = "jwt"
    pattern = re.compile(r"^ey[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        claim_locations: Sequence[ClaimLocation] = DEFAULT_WALLET_CLAIM_LOCATIONS,
    ):
        self._key = OctKey.import_key(secret)
        self._algorithm = algorithm
        self._claim_locations = claim_locations

    def verify(self, token: str, address: str, now: float) -> None:
        try:
            token_obj = jwt.decode(token, self._key, algorithms=[self._algorithm])
            jwt.JWTClaimsRegistry(exp={"essential": True}).validate(token_obj.claims)
        except (JoseError, ValueError) as e:
            raise _reject(f"wallet JWT rejected: {e}")
        if extract_wallet_claim(token_obj.claims, self._claim_locations) != address:
            raise _reject("wallet JWT was issued for a different address")


def sign_wallet_token(address: str, stamp, secret: str) -> str:
    """Hex HMAC-SHA256 of `<address>:<stamp>`, the signature carried by the signed token shapes."""
    message = f"{address}:{stamp}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class WalletTokenVerifier:
    def __init__(self, formats: Sequence[WalletTokenFormat], address_pattern: str):
        self.formats = list(formats)
        self.address_pattern = re.compile(address_pattern)

    @property
    def format_names(self) -> List[str]:
        return [f.name for f in self.formats]

    def verify(self, address: Optional[str], token: Optional[str], now: Optional[float] = None) -> str:
        """Return the verified wallet address or raise a malformed-credential AuthError."""
        address = (address or "").strip()
        token = (token or "").strip()
        if not address or not token:
            raise _reject("wallet credential requires both address and token")
        if not self.address_pattern.match(address):
            raise _reject("wallet address has an unrecognized shape")

        now = time.time() if now is None else now
        for token_format in self.formats:
            if token_format.matches(token):
                token_format.verify(token, address, now)
                return address
        raise _reject("wallet token has an unrecognized shape")


_SECRET_FOR_FORMAT = {
    "verified": "WALLET_SIGNING_SECRET",
    "signature": "WALLET_SIGNING_SECRET",
    "jwt": "WALLET_JWT_SECRET",
}


def build_wallet_verifier(settings) -> WalletTokenVerifier:
    """Assemble the verifier from the enabled format names in settings.

    A format is only registered when its secret is configured; with no
    secrets at all every wallet token is rejected.
    """
    if not settings.wallet_signing_secret and not settings.wallet_jwt_secret:
        logger.warning("No wallet token secrets configured: wallet credentials will be rejected")
    available: Dict[str, WalletTokenFormat] = {}
    if settings.wallet_signing_secret:
        available["verified"] = VerifiedTokenFormat(settings.wallet_signing_secret)
        available["signature"] = SignatureTokenFormat(
            settings.wallet_signing_secret,
            settings.wallet_signature_max_age_sec,
            settings.wallet_clock_skew_sec
        )
    if settings.wallet_jwt_secret:
        available["jwt"] = JWTTokenFormat(settings.wallet_jwt_secret, settings.wallet_jwt_algorithm)

    formats = []
    for name in settings.get_wallet_token_formats():
        if name in available:
            formats.append(available[name])
        elif name in _SECRET_FOR_FORMAT:
            logger.info("Wallet %s format disabled: %s is not configured", name, _SECRET_FOR_FORMAT[name])
        else:
            logger.warning("Ignoring unknown wallet token format %r", name)
    return WalletTokenVerifier(formats, settings.wallet_address_pattern)
