"""
Domain exceptions for identity resolution and access decisions.

These never leak to API callers directly: dependencies in app.core.dependencies
translate them to HTTP responses, and the enforcement point collapses them to deny.
"""

from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    NO_CREDENTIAL = "no_credential"
    MALFORMED_CREDENTIAL = "malformed_credential"
    CONFLICTING_IDENTITY = "conflicting_identity"


class AuthError(Exception):
    def __init__(self, kind: AuthErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail or kind.value
        super().__init__(f"{kind.value}: {self.detail}")


class AccessStoreUnavailable(Exception):
    """The grant/hierarchy store failed or timed out after bounded retries."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Access store unavailable during {operation}: {cause}")


class AccessDenied(Exception):
    def __init__(self, resource: str, level: str):
        self.resource = resource
        self.level = level
        super().__init__(f"Access denied: {level} on {resource}")
