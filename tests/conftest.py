"""
Shared fixtures for the access engine test suite.
"""

import time
from types import SimpleNamespace

import pytest

from app.core.exceptions import AccessStoreUnavailable, AuthError, AuthErrorKind
from app.modules.access.enforcement import PolicyEnforcementPoint
from app.modules.access.schemas import AccessLevel, ResourceKind, ResourceRef
from app.modules.access.service import PermissionResolver
from app.modules.access.store import AccessStore
from app.modules.identity.session import SessionValidator, clear_session_cache
from app.modules.identity.wallet_tokens import (
    SignatureTokenFormat, VerifiedTokenFormat, WalletTokenVerifier, sign_wallet_token
)
from app.modules.roles.service import AdminIdentities

ADDRESS_PATTERN = r"^[1-9A-HJ-NP-Za-km-z]{1,64}$"

OWNER_ID = "merchant-m"
ADMIN_ID = "admin-1"
BUYER_WALLET = "Addr123"
WALLET_SIGNING_SECRET = "wallet-signing-secret-for-tests"


class FakeAccessStore(AccessStore):
    """In-memory hierarchy and grant facts."""

    def __init__(self):
        self.collections = {}  # id -> {"user_id": ..., "visible": ...}
        self.categories = {}   # id -> collection_id
        self.products = {}     # id -> category_id
        self.orders = {}       # id -> {"product_id": ..., "wallet_address": ...}
        self.grants = {}       # (user_id, collection_id) -> AccessLevel
        self.unavailable = False
        self.calls = []

    def _record(self, operation):
        self.calls.append(operation)
        if self.unavailable:
            raise AccessStoreUnavailable(operation, TimeoutError("read timed out"))

    def ancestor_collection(self, ref):
        self._record("ancestor_collection")
        kind, node_id = ref.kind, ref.id
        if kind == ResourceKind.ORDER:
            order = self.orders.get(node_id)
            if order is None:
                return None
            kind, node_id = ResourceKind.PRODUCT, order["product_id"]
        if kind == ResourceKind.PRODUCT:
            node_id = self.products.get(node_id)
            kind = ResourceKind.CATEGORY
        if kind == ResourceKind.CATEGORY and node_id is not None:
            node_id = self.categories.get(node_id)
        return node_id if node_id in self.collections else None

    def owner_of(self, collection_id):
        self._record("owner_of")
        collection = self.collections.get(collection_id)
        return collection["user_id"] if collection else None

    def grant_for(self, user_id, collection_id):
        self._record("grant_for")
        return self.grants.get((user_id, collection_id))

    def order_wallet(self, order_id):
        self._record("order_wallet")
        order = self.orders.get(order_id)
        return order["wallet_address"] if order else None

    def collection_visible(self, collection_id):
        self._record("collection_visible")
        collection = self.collections.get(collection_id)
        return bool(collection and collection["visible"])

    def owns_any_collection(self, user_id):
        self._record("owns_any_collection")
        return any(c["user_id"] == user_id for c in self.collections.values())


class FakeQuery:
    """Just enough of the postgrest fluent builder for the services under test."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.filters = []
        self.payload = None
        self.on_conflict = ""
        self.limit_n = None

    def select(self, columns="*"):
        self.action = "select"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def order(self, column, desc=False):
        return self

    def upsert(self, payload, on_conflict=""):
        self.action = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def delete(self):
        self.action = "delete"
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        self.db.executed.append((self.table, self.action, tuple(self.filters)))
        if self.db.failures.get(self.table, 0) > 0:
            self.db.failures[self.table] -= 1
            raise ConnectionError("connection reset by peer")

        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "select":
            data = [dict(r) for r in rows if self._matches(r)]
            if self.limit_n is not None:
                data = data[:self.limit_n]
        elif self.action == "upsert":
            keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()]
            existing = next(
                (r for r in rows if keys and all(r.get(k) == self.payload.get(k) for k in keys)),
                None
            )
            if existing is not None:
                existing.update(self.payload)
                data = [dict(existing)]
            else:
                rows.append(dict(self.payload))
                data = [dict(self.payload)]
        else:
            data = [dict(r) for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
        return SimpleNamespace(data=data)


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = tables or {}
        self.executed = []
        self.failures = {}  # table -> number of executes that raise before succeeding

    def table(self, name):
        return FakeQuery(self, name)


class FakeSessionValidator(SessionValidator):
    def __init__(self, sessions):
        self.sessions = sessions

    def validate(self, token):
        try:
            return self.sessions[token]
        except KeyError:
            raise AuthError(AuthErrorKind.MALFORMED_CREDENTIAL, "unknown session token")


def signature_token(address, issued_at=None, secret=WALLET_SIGNING_SECRET):
    issued_at = int(time.time()) if issued_at is None else issued_at
    signature = sign_wallet_token(address, issued_at, secret)
    return f"WALLET_AUTH_SIGNATURE_{address}_TIMESTAMP_{issued_at}_SIG_{signature}"


def storefront_tables(visible=True):
    """C1 (owner M) > Cat1 > P1 > O1 (wallet Addr123), plus a hidden C2 and an orphan category."""
    return {
        "collections": [
            {"id": "C1", "user_id": OWNER_ID, "visible": visible},
            {"id": "C2", "user_id": "merchant-other", "visible": False},
        ],
        "categories": [
            {"id": "Cat1", "collection_id": "C1"},
            {"id": "Cat2", "collection_id": "C2"},
            {"id": "CatOrphan", "collection_id": "C-deleted"},
        ],
        "products": [
            {"id": "P1", "category_id": "Cat1"},
            {"id": "P2", "category_id": "Cat2"},
            {"id": "POrphan", "category_id": "CatOrphan"},
        ],
        "orders": [
            {"id": "O1", "product_id": "P1", "wallet_address": BUYER_WALLET},
            {"id": "O2", "product_id": "P2", "wallet_address": "Addr999"},
        ],
        "collection_access": [],
    }


@pytest.fixture(autouse=True)
def _reset_session_cache():
    clear_session_cache()
    yield
    clear_session_cache()


@pytest.fixture
def store():
    store = FakeAccessStore()
    for row in storefront_tables()["collections"]:
        store.collections[row["id"]] = {"user_id": row["user_id"], "visible": row["visible"]}
    store.categories = {"Cat1": "C1", "Cat2": "C2", "CatOrphan": "C-deleted"}
    store.products = {"P1": "Cat1", "P2": "Cat2", "POrphan": "CatOrphan"}
    store.orders = {
        "O1": {"product_id": "P1", "wallet_address": BUYER_WALLET},
        "O2": {"product_id": "P2", "wallet_address": "Addr999"},
        "OOrphan": {"product_id": "P-deleted", "wallet_address": BUYER_WALLET},
    }
    return store


@pytest.fixture
def resolver(store):
    return PermissionResolver(store)


@pytest.fixture
def pep(resolver, store):
    return PolicyEnforcementPoint(resolver, store)


@pytest.fixture
def admins():
    return AdminIdentities(user_ids=[ADMIN_ID], emails=["Admin420@merchant.local"])


@pytest.fixture
def wallet_verifier():
    return WalletTokenVerifier(
        [
            VerifiedTokenFormat(WALLET_SIGNING_SECRET),
            SignatureTokenFormat(WALLET_SIGNING_SECRET, max_age_sec=3600, clock_skew_sec=60),
        ],
        ADDRESS_PATTERN,
    )


ALL_REFS = [
    ResourceRef.collection("C1"),
    ResourceRef.category("Cat1"),
    ResourceRef.product("P1"),
    ResourceRef.order("O1"),
    ResourceRef.collection("C2"),
    ResourceRef.category("CatOrphan"),
    ResourceRef.order("OOrphan"),
    ResourceRef.product("missing"),
]

ALL_LEVELS = list(AccessLevel)
