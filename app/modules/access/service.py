import logging
from typing import Optional

from app.config.access_config import MAX_NON_ADMIN_LEVEL
from app.core.exceptions import AccessStoreUnavailable
from app.modules.access.schemas import AccessLevel, ResourceKind, ResourceRef
from app.modules.access.store import AccessStore
from app.modules.identity.schemas import Principal

logger = logging.getLogger(__name__)


class PermissionResolver:
    """
    Decides access on any node of the collection hierarchy.

    Rights compose downward: whatever a principal holds on a collection it
    holds on every category and product beneath it. Orders are capped at view
    for everyone but admins, and a buyer's wallet reaches only its own orders.
    """

    def __init__(self, store: AccessStore):
        self.store = store

    def effective_level(self, principal: Principal, ref: ResourceRef) -> Optional[AccessLevel]:
        """Highest level the principal holds on ref, or None. Store failures yield None."""
        if principal.is_admin:
            return AccessLevel.MANAGE

        try:
            level = self._resolve(principal, ref)
        except AccessStoreUnavailable as e:
            logger.error("Denying %s on %s: %s", _who(principal), ref, e)
            return None

        cap = MAX_NON_ADMIN_LEVEL.get(ref.kind.value)
        if level is not None and cap is not None:
            level = AccessLevel.lowest(level, AccessLevel(cap))
        return level

    def authorize(self, principal: Principal, ref: ResourceRef, required: AccessLevel) -> bool:
        level = self.effective_level(principal, ref)
        allowed = level is not None and level.implies(required)
        logger.debug(
            "Access %s: %s %s on %s (effective=%s)",
            "allowed" if allowed else "denied", _who(principal), required.value, ref,
            level.value if level else None
        )
        return allowed

    def _resolve(self, principal: Principal, ref: ResourceRef) -> Optional[AccessLevel]:
        collection_id = self.store.ancestor_collection(ref)
        if collection_id is None:
            logger.warning("broken_ancestor_chain: %s does not resolve to a collection", ref)
            return None

        if principal.user_id:
            if self.store.owner_of(collection_id) == principal.user_id:
                return AccessLevel.MANAGE

            grant = self.store.grant_for(principal.user_id, collection_id)
            if grant is not None:
                return grant

        if ref.kind == ResourceKind.ORDER and principal.wallet_address:
            order_wallet = self.store.order_wallet(ref.id)
            if order_wallet and order_wallet == principal.wallet_address:
                return AccessLevel.VIEW

        return None


def _who(principal: Principal) -> str:
    if principal.user_id:
        return f"user:{principal.user_id}"
    if principal.wallet_address:
        return f"wallet:{principal.wallet_address}"
    return "anonymous"
