import logging
from typing import Optional, Sequence

from app.core.exceptions import AuthError, AuthErrorKind
from app.modules.identity.claims import (
    DEFAULT_WALLET_CLAIM_LOCATIONS, ClaimLocation, extract_role_hint, extract_wallet_claim
)
from app.modules.identity.schemas import CredentialBundle, Principal, SessionIdentity
from app.modules.identity.session import SessionValidator
from app.modules.identity.wallet_tokens import WalletTokenVerifier
from app.modules.roles.schemas import Role
from app.modules.roles.service import AdminIdentities

logger = logging.getLogger(__name__)

# Roles a session claim may suggest; admin only ever comes from configuration
_CLAIMABLE_ROLES = {Role.MERCHANT.value, Role.USER.value}


class IdentityResolver:
    def __init__(
        self,
        session_validator: SessionValidator,
        wallet_verifier: WalletTokenVerifier,
        admins: AdminIdentities,
        claim_locations: Sequence[ClaimLocation] = DEFAULT_WALLET_CLAIM_LOCATIONS,
    ):
        self.session_validator = session_validator
        self.wallet_verifier = wallet_verifier
        self.admins = admins
        self.claim_locations = claim_locations

    def resolve(self, bundle: CredentialBundle) -> Principal:
        """
        Resolve the caller behind a credential bundle.

        No credentials yields the anonymous principal. A credential of an
        unrecognized or unverifiable shape raises MALFORMED_CREDENTIAL; session
        and header wallets that disagree raise CONFLICTING_IDENTITY.
        """
        if bundle.is_empty:
            return Principal.anonymous()

        session: Optional[SessionIdentity] = None
        if bundle.has_session:
            session = self.session_validator.validate(bundle.session_token)

        header_wallet: Optional[str] = None
        if bundle.has_wallet_headers:
            header_wallet = self.wallet_verifier.verify(bundle.wallet_address, bundle.wallet_token)

        if session is None:
            return Principal.wallet_holder(header_wallet)

        claim_wallet = extract_wallet_claim(session.claims, self.claim_locations)
        if claim_wallet and header_wallet and claim_wallet != header_wallet:
            raise AuthError(
                AuthErrorKind.CONFLICTING_IDENTITY,
                "Session wallet claim does not match the wallet credential"
            )

        if self.admins.matches(session.user_id, session.email):
            role = Role.ADMIN
        else:
            hint = extract_role_hint(session.claims)
            role = Role(hint) if hint in _CLAIMABLE_ROLES else Role.USER

        return Principal.session_user(
            user_id=session.user_id,
            role=role,
            email=session.email,
            wallet_address=header_wallet or claim_wallet,
        )

    def resolve_identified(self, bundle: CredentialBundle) -> Principal:
        """Like resolve, but an anonymous caller is an error."""
        principal = self.resolve(bundle)
        if principal.is_anonymous:
            raise AuthError(AuthErrorKind.NO_CREDENTIAL, "Not authenticated")
        return principal

    def resolve_for_decision(self, bundle: CredentialBundle) -> Principal:
        """
        Resolve for an access decision: malformed credentials count as no
        credential, conflicting identities still raise (and must deny).
        """
        try:
            return self.resolve(bundle)
        except AuthError as e:
            if e.kind == AuthErrorKind.CONFLICTING_IDENTITY:
                logger.warning("Conflicting identity channels: %s", e.detail)
                raise
            logger.warning("Rejected credential treated as anonymous: %s", e.detail)
            return Principal.anonymous()
