"""
Role membership resolution.

Dynamic roles are computed from the access context by registered resolver
functions. Static roles are resolved from explicit role mappings.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from shared.logging import get_logger
from shared.errors import AccessLayerException, ResolverError
from ..acl.models import AccessContext, Principal, PrincipalType

EVERYONE = "$everyone"
AUTHENTICATED = "$authenticated"
UNAUTHENTICATED = "$unauthenticated"
OWNER = "$owner"

RoleFunction = Callable[[str, AccessContext], Awaitable[bool]]

# (model name, model instance id) -> owner user id
OwnerLookup = Callable[[str, Any], Awaitable[Any]]


class RoleResolver:
    """Decides whether an access context belongs to a named role."""

    def __init__(self, owner_lookup: Optional[OwnerLookup] = None):
        self.logger = get_logger("acl.roles")
        self.owner_lookup = owner_lookup
        self.resolvers: Dict[str, RoleFunction] = {}
        self.mappings: Dict[str, Set[Principal]] = {}

        self.register_resolver(EVERYONE, self._is_everyone)
        self.register_resolver(AUTHENTICATED, self._is_authenticated)
        self.register_resolver(UNAUTHENTICATED, self._is_unauthenticated)
        self.register_resolver(OWNER, self._is_owner)

    def register_resolver(self, role: str, resolver: RoleFunction):
        """Register a function computing membership of a dynamic role."""
        self.resolvers[role] = resolver

    def add_mapping(self, role: str, principal_type: PrincipalType, principal_id: Any):
        """Map a principal into a static role."""
        self.mappings.setdefault(role, set()).add(Principal(principal_type, principal_id))

    def remove_mapping(self, role: str, principal_type: PrincipalType, principal_id: Any) -> bool:
        members = self.mappings.get(role)
        principal = Principal(principal_type, principal_id)
        if not members or principal not in members:
            return False
        members.discard(principal)
        return True

    def load_mappings(self, mappings: List[Tuple[str, PrincipalType, Any]]):
        for role, principal_type, principal_id in mappings:
            self.add_mapping(role, principal_type, principal_id)

    async def is_in_role(self, role: str, context: AccessContext) -> bool:
        """Whether ``context`` is a member of ``role``.

        A registered resolver decides on its own; otherwise a ROLE principal
        carried by the context, then the static mappings, grant membership.
        """
        resolver = self.resolvers.get(role)
        if resolver is not None:
            try:
                in_role = await resolver(role, context)
            except AccessLayerException:
                raise
            except Exception as e:
                self.logger.error("Role resolver failed", role=role, error=str(e))
                raise ResolverError(f"Resolver for role '{role}' failed", {"role": role, "error": str(e)}) from e
            self.logger.debug("Dynamic role resolved", role=role, in_role=in_role)
            return bool(in_role)

        for principal in context.principals:
            if principal.equals(PrincipalType.ROLE, role):
                return True

        members = self.mappings.get(role, set())
        in_role = any(principal in members for principal in context.principals)
        self.logger.debug("Static role resolved", role=role, in_role=in_role)
        return in_role

    async def _is_everyone(self, role: str, context: AccessContext) -> bool:
        return True

    async def _is_authenticated(self, role: str, context: AccessContext) -> bool:
        return context.is_authenticated()

    async def _is_unauthenticated(self, role: str, context: AccessContext) -> bool:
        return not context.is_authenticated()

    async def _is_owner(self, role: str, context: AccessContext) -> bool:
        user_id = context.get_user_id()
        if self.owner_lookup is None or context.model is None or context.model_id is None or user_id is None:
            return False
        owner_id = await self.owner_lookup(context.model, context.model_id)
        return owner_id is not None and str(owner_id) == str(user_id)
