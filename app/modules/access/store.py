"""
Read-only access store used by the permission resolver.

AccessStore is the seam between the decision engine and persistence: the
hierarchy lookup (ancestor chains, order wallets, collection visibility) and
the grant/ownership facts. SupabaseAccessStore is the production adapter.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from supabase import Client

from app.config import settings
from app.config.access_config import HIERARCHY, GRANTABLE_LEVELS
from app.core.exceptions import AccessStoreUnavailable
from app.modules.access.schemas import AccessLevel, ResourceKind, ResourceRef

logger = logging.getLogger(__name__)


class AccessStore(ABC):
    @abstractmethod
    def ancestor_collection(self, ref: ResourceRef) -> Optional[str]:
        """Collection id at the top of ref's chain, or None if the chain is broken."""
        raise NotImplementedError

    @abstractmethod
    def owner_of(self, collection_id: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def grant_for(self, user_id: str, collection_id: str) -> Optional[AccessLevel]:
        raise NotImplementedError

    @abstractmethod
    def order_wallet(self, order_id: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def collection_visible(self, collection_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def owns_any_collection(self, user_id: str) -> bool:
        raise NotImplementedError


# Extra columns read alongside the parent link, so one row fetch serves several lookups
_EXTRA_COLUMNS = {
    "collection": ["user_id", "visible"],
    "order": ["wallet_address"],
}

_MISSING = object()

# Set in the request cache once a read exhausts its retries; later reads in the request fail fast
_UNAVAILABLE_KEY = "store:unavailable"


class SupabaseAccessStore(AccessStore):
    def __init__(
        self,
        supabase: Client,
        cache: Optional[Dict[str, Any]] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff_sec: Optional[float] = None,
    ):
        self.supabase = supabase
        # Request-scoped; gives each decision a consistent snapshot of the rows it read
        self.cache = cache if cache is not None else {}
        attempts = settings.access_store_retry_attempts if retry_attempts is None else retry_attempts
        self.retry_attempts = max(1, attempts)
        self.retry_backoff_sec = settings.access_store_retry_backoff_sec if retry_backoff_sec is None else retry_backoff_sec

    def _execute(self, operation: str, query):
        outage = self.cache.get(_UNAVAILABLE_KEY)
        if outage is not None:
            raise AccessStoreUnavailable(operation, outage)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return query.execute()
            except Exception as e:
                last_error = e
                logger.warning(
                    "Access store %s failed (attempt %d/%d): %s",
                    operation, attempt, self.retry_attempts, e
                )
                if attempt < self.retry_attempts:
                    time.sleep(self.retry_backoff_sec * (2 ** (attempt - 1)))
        self.cache[_UNAVAILABLE_KEY] = last_error
        logger.error("Access store unavailable for %s after %d attempts", operation, self.retry_attempts)
        raise AccessStoreUnavailable(operation, last_error)

    def _row(self, kind: str, row_id: str) -> Optional[Dict[str, Any]]:
        config = HIERARCHY[kind]
        cache_key = f"row:{config['table']}:{row_id}"
        cached = self.cache.get(cache_key, _MISSING)
        if cached is not _MISSING:
            return cached

        columns = ["id"]
        if config["parent_column"]:
            columns.append(config["parent_column"])
        columns.extend(_EXTRA_COLUMNS.get(kind, []))

        result = self._execute(
            f"{config['table']} lookup",
            self.supabase.table(config["table"])
                .select(", ".join(columns))
                .eq("id", row_id)
                .limit(1)
        )
        row = result.data[0] if result.data else None
        self.cache[cache_key] = row
        return row

    def ancestor_collection(self, ref: ResourceRef) -> Optional[str]:
        kind = ref.kind.value
        row_id = ref.id
        while True:
            row = self._row(kind, row_id)
            if row is None:
                return None
            parent_kind = HIERARCHY[kind]["parent_kind"]
            if parent_kind is None:
                return row["id"]
            parent_id = row.get(HIERARCHY[kind]["parent_column"])
            if not parent_id:
                return None
            kind, row_id = parent_kind, parent_id

    def owner_of(self, collection_id: str) -> Optional[str]:
        row = self._row(ResourceKind.COLLECTION.value, collection_id)
        return row.get("user_id") if row else None

    def collection_visible(self, collection_id: str) -> bool:
        row = self._row(ResourceKind.COLLECTION.value, collection_id)
        return bool(row and row.get("visible"))

    def order_wallet(self, order_id: str) -> Optional[str]:
        row = self._row(ResourceKind.ORDER.value, order_id)
        return row.get("wallet_address") if row else None

    def grant_for(self, user_id: str, collection_id: str) -> Optional[AccessLevel]:
        cache_key = f"grant:{user_id}:{collection_id}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        result = self._execute(
            "collection_access lookup",
            self.supabase.table("collection_access")
                .select("access_type")
                .eq("collection_id", collection_id)
                .eq("user_id", user_id)
                .limit(1)
        )
        level = None
        if result.data:
            access_type = result.data[0].get("access_type")
            if access_type in GRANTABLE_LEVELS:
                level = AccessLevel(access_type)
            else:
                logger.warning(
                    "Ignoring collection_access row with unsupported access_type %r (user=%s, collection=%s)",
                    access_type, user_id, collection_id
                )
        self.cache[cache_key] = level
        return level

    def owns_any_collection(self, user_id: str) -> bool:
        cache_key = f"owns_any:{user_id}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        result = self._execute(
            "collections ownership lookup",
            self.supabase.table("collections")
                .select("id")
                .eq("user_id", user_id)
                .limit(1)
        )
        owns = bool(result.data)
        self.cache[cache_key] = owns
        return owns
