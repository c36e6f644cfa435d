import pytest
from fastapi import HTTPException

from app.modules.access.enforcement import PolicyEnforcementPoint
from app.modules.access.service import PermissionResolver
from app.modules.access.store import SupabaseAccessStore
from app.modules.collection_access.schemas import CollectionAccessGrant
from app.modules.collection_access.service import CollectionAccessService
from app.modules.identity.schemas import Principal
from app.modules.roles.schemas import Role
from tests.conftest import ADMIN_ID, OWNER_ID, FakeSupabase, storefront_tables

OWNER = Principal.session_user(OWNER_ID, role=Role.MERCHANT)
ADMIN = Principal.session_user(ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def db():
    return FakeSupabase(storefront_tables())


@pytest.fixture
def service(db, admins):
    access_store = SupabaseAccessStore(db, retry_attempts=1, retry_backoff_sec=0)
    pep = PolicyEnforcementPoint(PermissionResolver(access_store), access_store)
    return CollectionAccessService(db, pep, admins)


def _status(excinfo):
    return excinfo.value.status_code


def test_owner_grants_edit(service, db):
    response = service.grant_access(OWNER, "C1", CollectionAccessGrant(user_id="editor", access_type="edit"))
    assert response.user_id == "editor"
    assert response.access_type == "edit"
    assert response.granted_by == OWNER_ID
    assert db.tables["collection_access"] == [
        {"collection_id": "C1", "user_id": "editor", "access_type": "edit", "granted_by": OWNER_ID}
    ]


def test_regrant_updates_existing_row(service, db):
    service.grant_access(OWNER, "C1", CollectionAccessGrant(user_id="editor", access_type="edit"))
    service.grant_access(ADMIN, "C1", CollectionAccessGrant(user_id="editor", access_type="view"))
    rows = db.tables["collection_access"]
    assert len(rows) == 1
    assert rows[0]["access_type"] == "view"
    assert rows[0]["granted_by"] == ADMIN_ID


def test_grant_defaults_to_view(service):
    assert service.grant_access(OWNER, "C1", CollectionAccessGrant(user_id="viewer")).access_type == "view"


@pytest.mark.parametrize("grant,detail", [
    (CollectionAccessGrant(user_id="u", access_type="manage"), "view or edit"),
    (CollectionAccessGrant(user_id=ADMIN_ID, access_type="view"), "administrator"),
    (CollectionAccessGrant(user_id=OWNER_ID, access_type="edit"), "own owner"),
])
def test_invalid_grants_rejected(service, db, grant, detail):
    with pytest.raises(HTTPException) as exc_info:
        service.grant_access(OWNER, "C1", grant)
    assert _status(exc_info) == 400
    assert detail in exc_info.value.detail
    assert db.tables["collection_access"] == []


def test_grantee_cannot_manage_access(service, db):
    db.tables["collection_access"].append({"collection_id": "C1", "user_id": "editor", "access_type": "edit"})
    editor = Principal.session_user("editor")
    with pytest.raises(HTTPException) as exc_info:
        service.grant_access(editor, "C1", CollectionAccessGrant(user_id="friend", access_type="view"))
    assert _status(exc_info) == 403


def test_wallet_holder_cannot_manage_access(service):
    with pytest.raises(HTTPException) as exc_info:
        service.list_access(Principal.wallet_holder("Addr123"), "C1")
    assert _status(exc_info) == 403


def test_unknown_collection(service):
    with pytest.raises(HTTPException) as exc_info:
        service.grant_access(ADMIN, "missing", CollectionAccessGrant(user_id="u"))
    assert _status(exc_info) == 404


def test_list_access(service, db):
    db.tables["collection_access"] = [
        {"collection_id": "C1", "user_id": "editor", "access_type": "edit", "granted_by": OWNER_ID},
        {"collection_id": "C2", "user_id": "other", "access_type": "view", "granted_by": ADMIN_ID},
    ]
    grants = service.list_access(OWNER, "C1")
    assert [(g.user_id, g.access_type) for g in grants] == [("editor", "edit")]


def test_revoke(service, db):
    db.tables["collection_access"].append({"collection_id": "C1", "user_id": "editor", "access_type": "edit"})
    assert service.revoke_access(OWNER, "C1", "editor") is True
    assert db.tables["collection_access"] == []


def test_revoke_missing_grant(service):
    with pytest.raises(HTTPException) as exc_info:
        service.revoke_access(OWNER, "C1", "nobody")
    assert _status(exc_info) == 404


def test_revoke_admin_rejected(service):
    with pytest.raises(HTTPException) as exc_info:
        service.revoke_access(ADMIN, "C1", ADMIN_ID)
    assert _status(exc_info) == 400


def test_database_failure_is_500(service, db):
    db.failures["collection_access"] = 1
    with pytest.raises(HTTPException) as exc_info:
        service.grant_access(OWNER, "C1", CollectionAccessGrant(user_id="editor", access_type="edit"))
    assert _status(exc_info) == 500
