from app.config.settings import Settings
from app.modules.identity.schemas import Principal
from app.modules.roles.schemas import Role
from app.modules.roles.service import AdminIdentities, RoleClassifier
from tests.conftest import ADMIN_ID, OWNER_ID


def test_admin_identities_from_settings():
    settings = Settings(admin_user_ids=" a-1, ,a-2 ", admin_emails="Root@Example.com")
    admins = AdminIdentities.from_settings(settings)
    assert admins.matches("a-1")
    assert admins.matches("a-2")
    assert admins.matches("someone", "root@example.COM")
    assert not admins.matches("a-3", "user@example.com")
    assert not admins.matches(None)


def test_empty_admin_set_is_falsy():
    assert not AdminIdentities()
    assert AdminIdentities(user_ids=["a-1"])


def test_configured_admin(admins, store):
    classifier = RoleClassifier(admins, store)
    assert classifier.classify(Principal.session_user(ADMIN_ID)) == Role.ADMIN


def test_collection_owner_is_merchant(admins, store):
    assert RoleClassifier(admins, store).classify(Principal.session_user(OWNER_ID)) == Role.MERCHANT


def test_merchant_hint_kept_without_store_lookup(admins, store):
    principal = Principal.session_user("new-merchant", role=Role.MERCHANT)
    assert RoleClassifier(admins, store).classify(principal) == Role.MERCHANT
    assert "owns_any_collection" not in store.calls


def test_plain_user(admins, store):
    assert RoleClassifier(admins, store).classify(Principal.session_user("user-1")) == Role.USER


def test_wallet_holders_and_anonymous_are_users(admins, store):
    classifier = RoleClassifier(admins, store)
    assert classifier.classify(Principal.wallet_holder("Addr123")) == Role.USER
    assert classifier.classify(Principal.anonymous()) == Role.USER
    assert store.calls == []


def test_store_failure_classifies_as_user(admins, store):
    store.unavailable = True
    assert RoleClassifier(admins, store).classify(Principal.session_user(OWNER_ID)) == Role.USER


def test_apply_demotes_unconfigured_admin(admins, store):
    principal = Principal.session_user("user-1", role=Role.ADMIN)
    applied = RoleClassifier(admins, store).apply(principal)
    assert applied.role == Role.USER
    assert applied.user_id == "user-1"


def test_apply_returns_same_principal_when_unchanged(admins, store):
    principal = Principal.session_user(ADMIN_ID, role=Role.ADMIN)
    assert RoleClassifier(admins, store).apply(principal) is principal
