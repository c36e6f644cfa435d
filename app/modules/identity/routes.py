from fastapi import APIRouter, Depends
from app.config.access_config import ACCESS_MATRIX
from app.core.dependencies import get_current_principal
from app.modules.identity.schemas import Principal, PrincipalResponse
from typing import List

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=PrincipalResponse)
def get_current_identity(principal: Principal = Depends(get_current_principal)):
    """Get the resolved caller and, for admins, the full access matrix (for frontend UI)."""
    if principal.is_admin:
        permissions: List[str] = list(ACCESS_MATRIX["permissions"])
    else:
        permissions = []
    return PrincipalResponse(
        kind=principal.kind,
        user_id=principal.user_id,
        wallet_address=principal.wallet_address,
        email=principal.email,
        role=principal.role,
        permissions=permissions
    )
