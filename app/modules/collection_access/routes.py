from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.core.dependencies import get_admin_identities, get_enforcement_point, get_identified_principal
from app.modules.access.enforcement import PolicyEnforcementPoint
from app.modules.collection_access.schemas import CollectionAccessGrant, CollectionAccessResponse
from app.modules.collection_access.service import CollectionAccessService
from app.modules.identity.schemas import Principal
from app.modules.roles.service import AdminIdentities
from supabase import Client
from typing import List

router = APIRouter(prefix="/collections", tags=["collection-access"])


def get_collection_access_service(
    supabase: Client = Depends(get_service_supabase),
    pep: PolicyEnforcementPoint = Depends(get_enforcement_point),
    admins: AdminIdentities = Depends(get_admin_identities)
) -> CollectionAccessService:
    return CollectionAccessService(supabase, pep, admins)


@router.get("/{collection_id}/access", response_model=List[CollectionAccessResponse])
def list_collection_access(
    collection_id: str,
    principal: Principal = Depends(get_identified_principal),
    service: CollectionAccessService = Depends(get_collection_access_service)
):
    """List users with explicit access to a collection"""
    return service.list_access(principal, collection_id)


@router.put("/{collection_id}/access", response_model=CollectionAccessResponse)
def grant_collection_access(
    collection_id: str,
    grant_data: CollectionAccessGrant,
    principal: Principal = Depends(get_identified_principal),
    service: CollectionAccessService = Depends(get_collection_access_service)
):
    """Grant or update view/edit access to a collection"""
    return service.grant_access(principal, collection_id, grant_data)


@router.delete("/{collection_id}/access/{user_id}", status_code=204)
def revoke_collection_access(
    collection_id: str,
    user_id: str,
    principal: Principal = Depends(get_identified_principal),
    service: CollectionAccessService = Depends(get_collection_access_service)
):
    """Revoke a user's access to a collection"""
    service.revoke_access(principal, collection_id, user_id)
