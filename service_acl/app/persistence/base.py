"""
Store contracts consumed by the ACL engine.
"""

from enum import Enum
from typing import Any, List, Optional, Protocol, Tuple

from ..acl.models import ACLRule, PrincipalType, Scope, ALL

# None means "unconstrained"; otherwise the set of accepted column values
ValueFilter = Optional[Tuple[str, ...]]


def plain_value(value: Any) -> str:
    """Column value of an enum member or any other identifier."""
    if isinstance(value, Enum):
        return value.value
    return str(value)


def inclusion_filter(value: Optional[str]) -> ValueFilter:
    """Build a store filter accepting ``value`` or the wildcard.

    A wildcard request is left unconstrained.
    """
    value = value or ALL
    if value == ALL:
        return None
    return (plain_value(value), ALL)


def matches_filter(value: Optional[str], value_filter: ValueFilter) -> bool:
    if value_filter is None:
        return True
    return plain_value(value or ALL) in value_filter


class ACLStore(Protocol):
    async def find_acls(
        self,
        model: str,
        property_filter: ValueFilter = None,
        access_type_filter: ValueFilter = None,
        principal_type: Optional[PrincipalType] = None,
        principal_id: Any = None,
    ) -> List[ACLRule]:
        ...


class ScopeStore(Protocol):
    async def find_scope_by_name(self, name: str) -> Optional[Scope]:
        ...
