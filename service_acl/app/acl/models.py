"""
ACL data models for the ACL decision service.
"""

import builtins
from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field


class AccessType(str, Enum):
    """Access kinds. ALL is a wildcard, not a real kind."""
    ALL = "*"
    READ = "READ"
    WRITE = "WRITE"
    EXECUTE = "EXECUTE"


class Permission(str, Enum):
    """Permission outcomes of an ACL entry."""
    DEFAULT = "DEFAULT"
    ALLOW = "ALLOW"
    ALARM = "ALARM"
    AUDIT = "AUDIT"
    DENY = "DENY"

    @property
    def strength(self) -> int:
        return PERMISSION_ORDER[self]


# DENY is the strongest, DEFAULT means "not specified"
PERMISSION_ORDER: Dict[Permission, int] = {
    Permission.DEFAULT: 0,
    Permission.ALLOW: 1,
    Permission.ALARM: 2,
    Permission.AUDIT: 3,
    Permission.DENY: 4,
}


class PrincipalType(str, Enum):
    """Principal types."""
    USER = "USER"
    APPLICATION = "APP"
    ROLE = "ROLE"
    SCOPE = "SCOPE"


ALL = AccessType.ALL.value


def _coerce_access_type(value: Union[AccessType, str, None]) -> AccessType:
    if value is None or value == "":
        return AccessType.ALL
    return AccessType(value)


def _coerce_permission(value: Union[Permission, str, None], default: Permission) -> Permission:
    if value is None or value == "":
        return default
    return Permission(value)


@dataclass(frozen=True, eq=False)
class Principal:
    """An authorization subject.

    Two principals are equal when their types match and their ids compare
    equal as strings, so ``Principal(USER, 1)`` equals ``Principal(USER, "1")``.
    """
    type: PrincipalType
    id: Any
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "type", PrincipalType(self.type))

    def equals(self, principal_type: Union[PrincipalType, str], principal_id: Any) -> bool:
        return self.type == PrincipalType(principal_type) and str(self.id) == str(principal_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Principal):
            return NotImplemented
        return self.equals(other.type, other.id)

    def __hash__(self) -> int:
        return hash((self.type, str(self.id)))


@dataclass(frozen=True)
class ACLRule:
    """A single ACL entry.

    ``model``, ``property`` and ``access_type`` left unset match anything.
    ``permission`` left unset grants access.
    """
    model: Optional[str] = ALL
    property: Optional[str] = ALL
    access_type: Union[AccessType, str, None] = AccessType.ALL
    permission: Union[Permission, str, None] = Permission.ALLOW
    principal_type: Union[PrincipalType, str, None] = None
    principal_id: Any = None
    id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "model", self.model or ALL)
        object.__setattr__(self, "property", self.property or ALL)
        object.__setattr__(self, "access_type", _coerce_access_type(self.access_type))
        object.__setattr__(self, "permission", _coerce_permission(self.permission, Permission.ALLOW))
        if self.principal_type is not None:
            object.__setattr__(self, "principal_type", PrincipalType(self.principal_type))

    def names(self, principal: Principal) -> bool:
        """Whether this entry is granted directly to ``principal``."""
        return self.principal_type is not None and principal.equals(self.principal_type, self.principal_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "model": self.model,
            "property": self.property,
            "access_type": self.access_type.value,
            "permission": self.permission.value,
            "principal_type": self.principal_type.value if self.principal_type else None,
            "principal_id": None if self.principal_id is None else str(self.principal_id),
        }


@dataclass(frozen=True)
class AccessRequest:
    """What is being asked: a model, a property and an access type.

    ``permission`` is only meaningful on a request returned by resolution.
    """
    model: Optional[str] = ALL
    property: Optional[str] = ALL
    access_type: Union[AccessType, str, None] = AccessType.ALL
    permission: Union[Permission, str, None] = Permission.DEFAULT

    def __post_init__(self):
        object.__setattr__(self, "model", self.model or ALL)
        object.__setattr__(self, "property", self.property or ALL)
        object.__setattr__(self, "access_type", _coerce_access_type(self.access_type))
        object.__setattr__(self, "permission", _coerce_permission(self.permission, Permission.DEFAULT))

    @builtins.property
    def is_wildcard(self) -> bool:
        return self.property == ALL or self.access_type == AccessType.ALL

    @builtins.property
    def allowed(self) -> bool:
        return self.permission != Permission.DENY


@dataclass(frozen=True)
class AccessToken:
    """Access token presented by a caller."""
    id: str
    user_id: Any = None
    app_id: Any = None
    ttl: Optional[int] = None


@dataclass(frozen=True)
class Scope:
    """Named bundle of permissions delegated to a client application."""
    id: Any
    name: str
    description: Optional[str] = None


@dataclass
class AccessContext:
    """Everything known about a caller and the operation it attempts."""
    principals: List[Principal] = field(default_factory=list)
    model: Optional[str] = None
    model_id: Any = None
    property: Optional[str] = ALL
    method: Optional[str] = None
    access_type: Union[AccessType, str, None] = AccessType.ALL
    access_token: Optional[AccessToken] = None

    def __post_init__(self):
        self.property = self.property or ALL
        self.access_type = _coerce_access_type(self.access_type)

        principals, self.principals = self.principals, []
        for principal in principals:
            self.add_principal(principal.type, principal.id, principal.name)

        if self.access_token is not None:
            if self.access_token.user_id is not None:
                self.add_principal(PrincipalType.USER, self.access_token.user_id)
            if self.access_token.app_id is not None:
                self.add_principal(PrincipalType.APPLICATION, self.access_token.app_id)

    def add_principal(self, principal_type: Union[PrincipalType, str], principal_id: Any,
                      principal_name: Optional[str] = None) -> bool:
        """Add a principal unless an equal one is already present."""
        principal = Principal(principal_type, principal_id, principal_name)
        if principal in self.principals:
            return False
        self.principals.append(principal)
        return True

    def _first_id(self, principal_type: PrincipalType) -> Any:
        for principal in self.principals:
            if principal.type == principal_type:
                return principal.id
        return None

    def get_user_id(self) -> Any:
        return self._first_id(PrincipalType.USER)

    def get_app_id(self) -> Any:
        return self._first_id(PrincipalType.APPLICATION)

    def is_authenticated(self) -> bool:
        return self.get_user_id() is not None or self.get_app_id() is not None

    def to_request(self) -> AccessRequest:
        return AccessRequest(self.model, self.property, self.access_type)


@dataclass
class ModelDefinition:
    """Static ACL configuration declared for one model."""
    name: str
    acls: List[ACLRule] = field(default_factory=list)
    property_acls: Dict[str, List[ACLRule]] = field(default_factory=dict)
    default_permission: Optional[Permission] = None
    method_access_types: Dict[str, AccessType] = field(default_factory=dict)


class PrincipalModel(BaseModel):
    """Principal as carried on the wire."""
    type: PrincipalType = Field(..., description="Principal type")
    id: str = Field(..., description="Principal ID")
    name: Optional[str] = Field(None, description="Display name")


class PermissionCheckRequest(BaseModel):
    """Request model for a single-principal permission check."""
    principal_type: PrincipalType = Field(..., description="Principal type")
    principal_id: str = Field(..., description="Principal ID")
    model: str = Field(..., description="Model name")
    property: Optional[str] = Field(None, description="Property, method or relation name")
    access_type: Optional[AccessType] = Field(None, description="Access type")


class ScopeCheckRequest(BaseModel):
    """Request model for a scope permission check."""
    model: str = Field(..., description="Model name")
    property: Optional[str] = Field(None, description="Property, method or relation name")
    access_type: Optional[AccessType] = Field(None, description="Access type")


class PermissionCheckResponse(BaseModel):
    """Response model for permission and scope checks."""
    permission: Permission = Field(..., description="Effective permission")
    allowed: bool = Field(..., description="Whether access is granted")


class AccessCheckRequest(BaseModel):
    """Request model for a multi-principal access check."""
    principals: List[PrincipalModel] = Field(default_factory=list, description="Principals of the caller")
    model: str = Field(..., description="Model name")
    model_id: Optional[str] = Field(None, description="Model instance ID")
    property: Optional[str] = Field(None, description="Property, method or relation name")
    access_type: Optional[AccessType] = Field(None, description="Access type")


class AccessCheckResponse(BaseModel):
    """Response model for a multi-principal access check."""
    model: str
    property: str
    access_type: AccessType
    permission: Permission
    allowed: bool


class TokenCheckRequest(BaseModel):
    """Request model for an access token check."""
    token_id: Optional[str] = Field(None, description="Access token ID")
    user_id: Optional[str] = Field(None, description="User the token was issued to")
    app_id: Optional[str] = Field(None, description="Application the token was issued to")
    model: str = Field(..., description="Model name")
    model_id: Optional[str] = Field(None, description="Model instance ID")
    method: str = Field(..., description="Method name")


class TokenCheckResponse(BaseModel):
    """Response model for an access token check."""
    allowed: bool = Field(..., description="Whether the token may invoke the method")
