from pydantic import BaseModel, ConfigDict, model_validator
from typing import Optional, Dict, Any, List
from enum import Enum

from app.modules.roles.schemas import Role


class PrincipalKind(str, Enum):
    SESSION_USER = "session_user"
    WALLET_HOLDER = "wallet_holder"
    ANONYMOUS = "anonymous"


class Principal(BaseModel):
    """Resolved caller for a single request. Built per request, never persisted."""
    model_config = ConfigDict(frozen=True)

    kind: PrincipalKind
    user_id: Optional[str] = None
    wallet_address: Optional[str] = None
    role: Role = Role.USER
    email: Optional[str] = None

    @model_validator(mode="after")
    def _check_kind(self) -> "Principal":
        if self.kind == PrincipalKind.SESSION_USER and not self.user_id:
            raise ValueError("session_user principal requires user_id")
        if self.kind != PrincipalKind.SESSION_USER and self.user_id:
            raise ValueError(f"{self.kind.value} principal cannot carry user_id")
        if self.kind == PrincipalKind.WALLET_HOLDER and not self.wallet_address:
            raise ValueError("wallet_holder principal requires a verified wallet_address")
        if self.kind == PrincipalKind.ANONYMOUS and (self.wallet_address or self.role != Role.USER):
            raise ValueError("anonymous principal carries no wallet or elevated role")
        return self

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(kind=PrincipalKind.ANONYMOUS)

    @classmethod
    def wallet_holder(cls, wallet_address: str) -> "Principal":
        return cls(kind=PrincipalKind.WALLET_HOLDER, wallet_address=wallet_address)

    @classmethod
    def session_user(
        cls,
        user_id: str,
        role: Role = Role.USER,
        email: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> "Principal":
        return cls(
            kind=PrincipalKind.SESSION_USER,
            user_id=user_id,
            role=role,
            email=email,
            wallet_address=wallet_address,
        )

    @property
    def is_anonymous(self) -> bool:
        return self.kind == PrincipalKind.ANONYMOUS

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def with_role(self, role: Role) -> "Principal":
        return self.model_copy(update={"role": role})


class CredentialBundle(BaseModel):
    """Raw credential material taken from a request."""
    session_token: Optional[str] = None
    wallet_address: Optional[str] = None
    wallet_token: Optional[str] = None

    @property
    def has_session(self) -> bool:
        return bool(self.session_token)

    @property
    def has_wallet_headers(self) -> bool:
        return bool(self.wallet_address) or bool(self.wallet_token)

    @property
    def is_empty(self) -> bool:
        return not self.has_session and not self.has_wallet_headers


class SessionIdentity(BaseModel):
    """Output of a session validator: who the session token belongs to, plus its claims."""
    user_id: str
    email: Optional[str] = None
    claims: Dict[str, Any] = {}


class PrincipalResponse(BaseModel):
    kind: PrincipalKind
    user_id: Optional[str] = None
    wallet_address: Optional[str] = None
    email: Optional[str] = None
    role: Role
    permissions: List[str]
