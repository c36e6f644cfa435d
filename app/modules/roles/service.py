import logging
from typing import Iterable, Optional

from app.core.exceptions import AccessStoreUnavailable
from app.modules.access.store import AccessStore
from app.modules.identity.schemas import Principal, PrincipalKind
from app.modules.roles.schemas import Role

logger = logging.getLogger(__name__)


class AdminIdentities:
    """Configured administrator set: user ids, plus legacy email fallback."""

    def __init__(self, user_ids: Iterable[str] = (), emails: Iterable[str] = ()):
        self.user_ids = frozenset(u for u in user_ids if u)
        self.emails = frozenset(e.lower() for e in emails if e)

    @classmethod
    def from_settings(cls, settings) -> "AdminIdentities":
        return cls(settings.get_admin_user_ids(), settings.get_admin_emails())

    def matches(self, user_id: Optional[str], email: Optional[str] = None) -> bool:
        if user_id and user_id in self.user_ids:
            return True
        return bool(email) and email.lower() in self.emails

    def __bool__(self) -> bool:
        return bool(self.user_ids or self.emails)


class RoleClassifier:
    def __init__(self, admins: AdminIdentities, store: AccessStore):
        self.admins = admins
        self.store = store

    def classify(self, principal: Principal) -> Role:
        """Map a resolved principal to admin / merchant / user"""
        if principal.kind != PrincipalKind.SESSION_USER:
            # Wallet-only and anonymous callers never hold catalog privileges
            return Role.USER

        if self.admins.matches(principal.user_id, principal.email):
            return Role.ADMIN

        if principal.role == Role.MERCHANT:
            return Role.MERCHANT

        try:
            if self.store.owns_any_collection(principal.user_id):
                return Role.MERCHANT
        except AccessStoreUnavailable as e:
            logger.error("Could not check collection ownership for %s, classifying as user: %s", principal.user_id, e)
        return Role.USER

    def apply(self, principal: Principal) -> Principal:
        role = self.classify(principal)
        if role == principal.role:
            return principal
        return principal.with_role(role)
