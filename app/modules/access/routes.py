from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_principal, get_enforcement_point, get_permission_resolver
from app.modules.access.enforcement import PolicyEnforcementPoint
from app.modules.access.schemas import (
    AccessCheckRequest, AccessCheckResponse, AccessFilterRequest, AccessFilterResponse,
    EffectiveAccessResponse, ResourceKind, ResourceRef
)
from app.modules.access.service import PermissionResolver
from app.modules.identity.schemas import Principal

router = APIRouter(prefix="/access", tags=["access"])

# Store reads block (retries sleep), so handlers are plain def and run in the threadpool


@router.post("/check", response_model=AccessCheckResponse)
def check_access(
    check: AccessCheckRequest,
    principal: Principal = Depends(get_current_principal),
    pep: PolicyEnforcementPoint = Depends(get_enforcement_point)
):
    """Decide whether the caller may perform `level` on a single resource"""
    allowed = pep.authorize(principal, check.resource, check.level)
    return AccessCheckResponse(resource=check.resource, level=check.level, allowed=allowed)


@router.post("/filter", response_model=AccessFilterResponse)
def filter_access(
    request: AccessFilterRequest,
    principal: Principal = Depends(get_current_principal),
    pep: PolicyEnforcementPoint = Depends(get_enforcement_point)
):
    """Reduce a candidate list to the resources the caller may access"""
    allowed = pep.filter(principal, request.resources, request.level)
    return AccessFilterResponse(
        level=request.level,
        allowed=allowed,
        denied_count=len(request.resources) - len(allowed)
    )


@router.get("/{kind}/{resource_id}", response_model=EffectiveAccessResponse)
def get_effective_access(
    kind: ResourceKind,
    resource_id: str,
    principal: Principal = Depends(get_current_principal),
    resolver: PermissionResolver = Depends(get_permission_resolver)
):
    """Highest level the caller holds on a resource (public visibility not included)"""
    ref = ResourceRef(kind=kind, id=resource_id)
    return EffectiveAccessResponse(resource=ref, effective_level=resolver.effective_level(principal, ref))
