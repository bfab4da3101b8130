"""
In-memory rule and scope stores.

Used for local runs and tests; the PostgreSQL store is the durable backend.
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional

from shared.logging import get_logger
from ..acl.models import ACLRule, PrincipalType, Scope
from .base import ValueFilter, matches_filter, plain_value


class InMemoryACLStore:
    """Dictionary-backed rule store."""

    def __init__(self, acls: Optional[Iterable[ACLRule]] = None):
        self.logger = get_logger("acl.persistence.memory")
        self.acls: Dict[str, ACLRule] = {}
        for acl in acls or ():
            self.add_acl(acl)

    def add_acl(self, acl: ACLRule) -> ACLRule:
        """Store a rule, assigning an id if it has none."""
        if acl.id is None:
            acl = ACLRule(
                model=acl.model,
                property=acl.property,
                access_type=acl.access_type,
                permission=acl.permission,
                principal_type=acl.principal_type,
                principal_id=acl.principal_id,
                id=str(uuid.uuid4()),
            )
        self.acls[acl.id] = acl
        self.logger.debug("ACL added", acl_id=acl.id, model=acl.model)
        return acl

    def remove_acl(self, acl_id: str) -> bool:
        """Remove a rule by id."""
        return self.acls.pop(acl_id, None) is not None

    async def find_acls(
        self,
        model: str,
        property_filter: ValueFilter = None,
        access_type_filter: ValueFilter = None,
        principal_type: Optional[PrincipalType] = None,
        principal_id: Any = None,
    ) -> List[ACLRule]:
        """Find rules for a model, in insertion order."""
        results = []
        for acl in self.acls.values():
            if acl.model != model:
                continue
            if not matches_filter(acl.property, property_filter):
                continue
            if not matches_filter(acl.access_type, access_type_filter):
                continue
            if principal_type is not None and acl.principal_type != PrincipalType(principal_type):
                continue
            if principal_id is not None and plain_value(acl.principal_id) != plain_value(principal_id):
                continue
            results.append(acl)
        return results


class InMemoryScopeStore:
    """Dictionary-backed scope store keyed by name."""

    def __init__(self, scopes: Optional[Iterable[Scope]] = None):
        self.scopes: Dict[str, Scope] = {}
        for scope in scopes or ():
            self.add_scope(scope)

    def add_scope(self, scope: Scope) -> Scope:
        self.scopes[scope.name] = scope
        return scope

    async def find_scope_by_name(self, name: str) -> Optional[Scope]:
        return self.scopes.get(name)
