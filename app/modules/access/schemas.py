from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from enum import Enum

from app.config.access_config import level_rank


class ResourceKind(str, Enum):
    COLLECTION = "collection"
    CATEGORY = "category"
    PRODUCT = "product"
    ORDER = "order"


class AccessLevel(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    MANAGE = "manage"

    def implies(self, required: "AccessLevel") -> bool:
        """edit implies view, manage implies edit; never the other way."""
        return level_rank(self.value) >= level_rank(required.value)

    @classmethod
    def lowest(cls, a: "AccessLevel", b: "AccessLevel") -> "AccessLevel":
        return a if level_rank(a.value) <= level_rank(b.value) else b


class ResourceRef(BaseModel):
    """Reference to one node of the collection -> category -> product -> order hierarchy."""
    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    id: str = Field(min_length=1)

    @classmethod
    def collection(cls, id: str) -> "ResourceRef":
        return cls(kind=ResourceKind.COLLECTION, id=id)

    @classmethod
    def category(cls, id: str) -> "ResourceRef":
        return cls(kind=ResourceKind.CATEGORY, id=id)

    @classmethod
    def product(cls, id: str) -> "ResourceRef":
        return cls(kind=ResourceKind.PRODUCT, id=id)

    @classmethod
    def order(cls, id: str) -> "ResourceRef":
        return cls(kind=ResourceKind.ORDER, id=id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class AccessCheckRequest(BaseModel):
    resource: ResourceRef
    level: AccessLevel = AccessLevel.VIEW


class AccessCheckResponse(BaseModel):
    resource: ResourceRef
    level: AccessLevel
    allowed: bool


class AccessFilterRequest(BaseModel):
    resources: List[ResourceRef]
    level: AccessLevel = AccessLevel.VIEW


class AccessFilterResponse(BaseModel):
    level: AccessLevel
    allowed: List[ResourceRef]
    denied_count: int


class EffectiveAccessResponse(BaseModel):
    resource: ResourceRef
    effective_level: Optional[AccessLevel] = None
