from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class CollectionAccessGrant(BaseModel):
    user_id: str
    access_type: str = "view"


class CollectionAccessResponse(BaseModel):
    collection_id: str
    user_id: str
    access_type: str
    granted_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
