"""
Wallet-address extraction from token claims.

The claim shape changed several times on the auth platform, so the wallet
address may sit at the top level or under one of the metadata objects.
Each location is a strategy; they are tried in order and the first non-empty
value wins. Supporting a new shape means appending a strategy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence

WALLET_CLAIM = "wallet_address"


class ClaimLocation(ABC):
    name: str

    @abstractmethod
    def extract(self, claims: Mapping[str, Any]) -> Optional[str]:
        raise NotImplementedError


class RootClaim(ClaimLocation):
    def __init__(self, key: str = WALLET_CLAIM):
        self.key = key
        self.name = key

    def extract(self, claims: Mapping[str, Any]) -> Optional[str]:
        return _as_text(claims.get(self.key))


class NestedClaim(ClaimLocation):
    def __init__(self, container: str, key: str = WALLET_CLAIM):
        self.container = container
        self.key = key
        self.name = f"{container}.{key}"

    def extract(self, claims: Mapping[str, Any]) -> Optional[str]:
        nested = claims.get(self.container)
        if not isinstance(nested, Mapping):
            return None
        return _as_text(nested.get(self.key))


DEFAULT_WALLET_CLAIM_LOCATIONS: Sequence[ClaimLocation] = (
    RootClaim(),
    NestedClaim("user_metadata"),
    NestedClaim("app_metadata"),
)


def extract_wallet_claim(
    claims: Optional[Mapping[str, Any]],
    locations: Sequence[ClaimLocation] = DEFAULT_WALLET_CLAIM_LOCATIONS,
) -> Optional[str]:
    if not claims:
        return None
    for location in locations:
        value = location.extract(claims)
        if value:
            return value
    return None


def extract_role_hint(claims: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Role stored by the server in app_metadata.

    user_metadata is writable by the user and is never consulted for roles.
    """
    if not claims:
        return None
    app_metadata = claims.get("app_metadata")
    if not isinstance(app_metadata, Mapping):
        return None
    return _as_text(app_metadata.get("role"))


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None
