from supabase import Client
from app.config.access_config import GRANTABLE_LEVELS
from app.core.exceptions import AccessDenied
from app.modules.access.enforcement import PolicyEnforcementPoint
from app.modules.access.schemas import AccessLevel, ResourceRef
from app.modules.collection_access.schemas import CollectionAccessGrant, CollectionAccessResponse
from app.modules.identity.schemas import Principal
from app.modules.roles.service import AdminIdentities
from typing import Any, Dict, List
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class CollectionAccessService:
    def __init__(self, supabase: Client, pep: PolicyEnforcementPoint, admins: AdminIdentities):
        self.supabase = supabase
        self.pep = pep
        self.admins = admins

    def _get_collection(self, collection_id: str) -> Dict[str, Any]:
        result = self.supabase.table("collections")\
            .select("id, user_id")\
            .eq("id", collection_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Collection not found")
        return result.data[0]

    def _require_manage(self, actor: Principal, collection_id: str) -> None:
        try:
            self.pep.require(actor, ResourceRef.collection(collection_id), AccessLevel.MANAGE)
        except AccessDenied:
            raise HTTPException(
                status_code=403,
                detail="Only administrators or the collection owner can manage access"
            )

    def list_access(self, actor: Principal, collection_id: str) -> List[CollectionAccessResponse]:
        """List grants on a collection (admin or owner)"""
        try:
            self._get_collection(collection_id)
            self._require_manage(actor, collection_id)
            result = self.supabase.table("collection_access")\
                .select("collection_id, user_id, access_type, granted_by, created_at")\
                .eq("collection_id", collection_id)\
                .order("created_at", desc=True)\
                .execute()
            return [CollectionAccessResponse(**row) for row in result.data]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def grant_access(
        self,
        actor: Principal,
        collection_id: str,
        grant_data: CollectionAccessGrant
    ) -> CollectionAccessResponse:
        """Add or update a user's grant on a collection"""
        try:
            collection = self._get_collection(collection_id)
            self._require_manage(actor, collection_id)

            if grant_data.access_type not in GRANTABLE_LEVELS:
                raise HTTPException(status_code=400, detail="Users can only receive view or edit access")
            if self.admins.matches(grant_data.user_id):
                raise HTTPException(status_code=400, detail="Cannot modify the designated administrator's access")
            if collection.get("user_id") == grant_data.user_id:
                raise HTTPException(status_code=400, detail="Cannot grant access to the collection's own owner")

            result = self.supabase.table("collection_access").upsert({
                "collection_id": collection_id,
                "user_id": grant_data.user_id,
                "access_type": grant_data.access_type,
                "granted_by": actor.user_id
            }, on_conflict="collection_id,user_id").execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to grant access")

            logger.info(
                "Granted %s on collection %s to %s (by %s)",
                grant_data.access_type, collection_id, grant_data.user_id, actor.user_id
            )
            return CollectionAccessResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def revoke_access(self, actor: Principal, collection_id: str, user_id: str) -> bool:
        """Remove a user's grant on a collection"""
        try:
            self._get_collection(collection_id)
            self._require_manage(actor, collection_id)

            if self.admins.matches(user_id):
                raise HTTPException(status_code=400, detail="Cannot modify the designated administrator's access")

            result = self.supabase.table("collection_access")\
                .delete()\
                .eq("collection_id", collection_id)\
                .eq("user_id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Access grant not found")

            logger.info("Revoked access on collection %s from %s (by %s)", collection_id, user_id, actor.user_id)
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
