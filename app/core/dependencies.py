"""
Core dependencies for identity resolution and route protection
"""

from fastapi import Depends, Header, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from functools import lru_cache
from supabase import Client
from typing import Any, Dict, Optional
import logging

from app.config import settings
from app.core.exceptions import AuthError
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.access.enforcement import PolicyEnforcementPoint
from app.modules.access.service import PermissionResolver
from app.modules.access.store import AccessStore, SupabaseAccessStore
from app.modules.identity.schemas import CredentialBundle, Principal
from app.modules.identity.service import IdentityResolver
from app.modules.identity.session import LocalJWTSessionValidator, SessionValidator, SupabaseSessionValidator
from app.modules.identity.wallet_tokens import WalletTokenVerifier, build_wallet_verifier
from app.modules.roles.service import AdminIdentities, RoleClassifier

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access store rows (collections, grants, orders)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_access_store(request: Request, supabase: Client = Depends(get_service_supabase)) -> AccessStore:
    return SupabaseAccessStore(supabase, cache=_get_request_cache(request))


def get_admin_identities() -> AdminIdentities:
    return AdminIdentities.from_settings(settings)


@lru_cache
def get_wallet_verifier() -> WalletTokenVerifier:
    return build_wallet_verifier(settings)


def get_session_validator(supabase: Client = Depends(get_supabase)) -> SessionValidator:
    if settings.supabase_jwt_secret:
        return LocalJWTSessionValidator(settings.supabase_jwt_secret)
    return SupabaseSessionValidator(supabase)


def get_identity_resolver(
    session_validator: SessionValidator = Depends(get_session_validator),
    wallet_verifier: WalletTokenVerifier = Depends(get_wallet_verifier),
    admins: AdminIdentities = Depends(get_admin_identities)
) -> IdentityResolver:
    return IdentityResolver(session_validator, wallet_verifier, admins)


def get_role_classifier(
    store: AccessStore = Depends(get_access_store),
    admins: AdminIdentities = Depends(get_admin_identities)
) -> RoleClassifier:
    return RoleClassifier(admins, store)


def get_permission_resolver(store: AccessStore = Depends(get_access_store)) -> PermissionResolver:
    return PermissionResolver(store)


def get_enforcement_point(
    resolver: PermissionResolver = Depends(get_permission_resolver),
    store: AccessStore = Depends(get_access_store)
) -> PolicyEnforcementPoint:
    return PolicyEnforcementPoint(resolver, store)


def get_credential_bundle(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    x_wallet_address: Optional[str] = Header(None),
    x_wallet_auth_token: Optional[str] = Header(None)
) -> CredentialBundle:
    """Collect session and wallet credentials from request headers"""
    session_token = credentials.credentials if credentials else None
    # Clients send the project's anon key as bearer when no one is logged in
    if session_token and settings.supabase_key and session_token == settings.supabase_key:
        session_token = None
    return CredentialBundle(
        session_token=session_token,
        wallet_address=x_wallet_address,
        wallet_token=x_wallet_auth_token
    )


def get_current_principal(
    bundle: CredentialBundle = Depends(get_credential_bundle),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    classifier: RoleClassifier = Depends(get_role_classifier)
) -> Principal:
    """Resolve the caller; anonymous when no usable credential was supplied"""
    try:
        principal = resolver.resolve_for_decision(bundle)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Conflicting identity credentials"
        ) from e
    return classifier.apply(principal)


def get_identified_principal(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return principal

