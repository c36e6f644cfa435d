"""
Policy enforcement point.

Services call this before touching persistence instead of relying on
mutation-time database hooks. Single-resource checks go through authorize /
enforce / require; listings go through filter.
"""

import logging
from enum import Enum
from typing import Iterable, List

from app.config.access_config import PUBLICLY_BROWSABLE_KINDS
from app.core.exceptions import AccessDenied, AccessStoreUnavailable
from app.modules.access.schemas import AccessLevel, ResourceRef
from app.modules.access.service import PermissionResolver
from app.modules.access.store import AccessStore
from app.modules.identity.schemas import Principal

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class PolicyEnforcementPoint:
    def __init__(self, resolver: PermissionResolver, store: AccessStore):
        self.resolver = resolver
        self.store = store

    def authorize(self, principal: Principal, ref: ResourceRef, level: AccessLevel) -> bool:
        if self._is_public_view(principal, ref, level):
            return True
        return self.resolver.authorize(principal, ref, level)

    def enforce(self, principal: Principal, ref: ResourceRef, level: AccessLevel) -> Decision:
        return Decision.ALLOW if self.authorize(principal, ref, level) else Decision.DENY

    def require(self, principal: Principal, ref: ResourceRef, level: AccessLevel) -> None:
        """Raise AccessDenied unless the principal holds `level` on `ref`."""
        if not self.authorize(principal, ref, level):
            raise AccessDenied(str(ref), level.value)

    def filter(self, principal: Principal, refs: Iterable[ResourceRef], level: AccessLevel) -> List[ResourceRef]:
        """Keep the candidates the principal may access, in their original order."""
        return [ref for ref in refs if self.authorize(principal, ref, level)]

    def _is_public_view(self, principal: Principal, ref: ResourceRef, level: AccessLevel) -> bool:
        # Visibility is a property of the collection, not an access-control fact
        if principal.is_admin or level != AccessLevel.VIEW:
            return False
        if ref.kind.value not in PUBLICLY_BROWSABLE_KINDS:
            return False
        try:
            collection_id = self.store.ancestor_collection(ref)
            return collection_id is not None and self.store.collection_visible(collection_id)
        except AccessStoreUnavailable as e:
            logger.error("Visibility check for %s failed: %s", ref, e)
            return False
