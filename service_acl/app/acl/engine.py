"""
ACL engine: gathers candidate rules and resolves effective permissions.

Static rules come from the model registry, dynamic rules from the rule store.
Store and resolver failures are never converted into a decision; they
propagate to the caller.
"""

import asyncio
from typing import Any, List, Optional, Protocol, Union

from shared.logging import get_logger
from shared.errors import AccessLayerException, InvalidRequestError, NotFoundError, ResolverError
from ..persistence.base import ACLStore, ScopeStore, inclusion_filter
from .matching import resolve_permission
from .models import (
    ACLRule, AccessContext, AccessRequest, AccessToken, AccessType,
    Permission, PrincipalType, ALL
)


class RuleRegistry(Protocol):
    def get_static_acls(self, model: str, property: Optional[str] = None) -> List[ACLRule]:
        ...

    def get_default_permission(self, model: str) -> Optional[Permission]:
        ...

    def get_access_type_for_method(self, model: str, method: str) -> AccessType:
        ...


class MembershipResolver(Protocol):
    async def is_in_role(self, role: str, context: AccessContext) -> bool:
        ...


class ACLEngine:
    """Authorization decisions over static and dynamic ACL entries."""

    def __init__(
        self,
        registry: RuleRegistry,
        acl_store: ACLStore,
        role_resolver: MembershipResolver,
        scope_store: Optional[ScopeStore] = None,
        role_check_timeout: Optional[float] = None,
    ):
        self.logger = get_logger("acl.engine")
        self.registry = registry
        self.acl_store = acl_store
        self.role_resolver = role_resolver
        self.scope_store = scope_store
        self.role_check_timeout = role_check_timeout

    async def check_permission(
        self,
        principal_type: Union[PrincipalType, str],
        principal_id: Any,
        model: str,
        property: Optional[str] = None,
        access_type: Union[AccessType, str, None] = None,
    ) -> Permission:
        """Effective permission of a single principal on a model property."""
        property = property or ALL
        access_type = AccessType(access_type or AccessType.ALL)
        request = AccessRequest(model, property, access_type)

        static_acls = self.registry.get_static_acls(model, property)
        resolved = resolve_permission(static_acls, request)

        if resolved.permission == Permission.DENY:
            # Static denials cannot be overridden by dynamic grants
            self.logger.debug(
                "Static ACLs denied access",
                principal_type=PrincipalType(principal_type).value,
                principal_id=str(principal_id),
                model=model,
                property=property,
                access_type=access_type.value
            )
            return resolved.permission

        dynamic_acls = await self.acl_store.find_acls(
            model,
            property_filter=inclusion_filter(property),
            access_type_filter=inclusion_filter(access_type),
            principal_type=PrincipalType(principal_type),
            principal_id=principal_id,
        )

        resolved = resolve_permission(static_acls + list(dynamic_acls), request)
        permission = resolved.permission
        if permission == Permission.DEFAULT:
            permission = self.registry.get_default_permission(model) or Permission.ALLOW

        self.logger.debug(
            "Permission checked",
            principal_type=PrincipalType(principal_type).value,
            principal_id=str(principal_id),
            model=model,
            property=property,
            access_type=access_type.value,
            permission=permission.value,
            static_acls=len(static_acls),
            dynamic_acls=len(dynamic_acls)
        )
        return permission

    async def check_scope_permission(
        self,
        scope_name: str,
        model: str,
        property: Optional[str] = None,
        access_type: Union[AccessType, str, None] = None,
    ) -> Permission:
        """Effective permission of a named scope on a model property."""
        if self.scope_store is None:
            raise NotFoundError(f"Scope '{scope_name}' not found", {"scope": scope_name})

        scope = await self.scope_store.find_scope_by_name(scope_name)
        if scope is None:
            raise NotFoundError(f"Scope '{scope_name}' not found", {"scope": scope_name})

        return await self.check_permission(PrincipalType.SCOPE, scope.id, model, property, access_type)

    async def check_access(self, context: AccessContext) -> AccessRequest:
        """Resolve the permission of all principals in ``context``.

        Rules granted directly to one of the principals apply outright. Role
        rules apply when the context is a member of the role; all membership
        checks run concurrently and any failure aborts the evaluation.
        """
        request = context.to_request()

        static_acls = self.registry.get_static_acls(request.model, request.property)
        dynamic_acls = await self.acl_store.find_acls(
            request.model,
            property_filter=inclusion_filter(request.property),
            access_type_filter=inclusion_filter(request.access_type),
        )
        candidates = static_acls + list(dynamic_acls)

        direct: List[bool] = []
        role_checks = {}
        for index, acl in enumerate(candidates):
            if any(acl.names(principal) for principal in context.principals):
                direct.append(True)
                continue
            direct.append(False)
            if acl.principal_type == PrincipalType.ROLE:
                role_checks[index] = self._check_role(acl.principal_id, context)

        memberships = dict(zip(role_checks, await self._gather_role_checks(list(role_checks.values()))))

        # Keep candidate order regardless of the order role checks completed in
        effective = [
            acl for index, acl in enumerate(candidates)
            if direct[index] or memberships.get(index, False)
        ]

        resolved = resolve_permission(effective, request)
        self.logger.debug(
            "Access checked",
            model=request.model,
            model_id=None if context.model_id is None else str(context.model_id),
            property=request.property,
            access_type=request.access_type.value,
            principals=len(context.principals),
            candidates=len(candidates),
            effective=len(effective),
            role_checks=len(role_checks),
            permission=resolved.permission.value
        )
        return resolved

    async def check_access_for_token(
        self,
        token: Optional[AccessToken],
        model: str,
        model_id: Any,
        method: str,
    ) -> bool:
        """Whether the holder of ``token`` may invoke ``method`` on a model instance."""
        if token is None:
            raise InvalidRequestError("Access token is required")

        context = AccessContext(
            model=model,
            model_id=model_id,
            property=method,
            method=method,
            access_type=self.registry.get_access_type_for_method(model, method),
            access_token=token,
        )
        resolved = await self.check_access(context)
        return resolved.permission != Permission.DENY

    async def _check_role(self, role: Any, context: AccessContext) -> bool:
        role = str(role)
        try:
            if self.role_check_timeout is None:
                return await self.role_resolver.is_in_role(role, context)
            return await asyncio.wait_for(self.role_resolver.is_in_role(role, context), self.role_check_timeout)
        except AccessLayerException:
            raise
        except asyncio.TimeoutError as e:
            raise ResolverError(f"Role check for '{role}' timed out", {"role": role}) from e
        except Exception as e:
            raise ResolverError(f"Role check for '{role}' failed", {"role": role, "error": str(e)}) from e

    async def _gather_role_checks(self, checks: List) -> List[bool]:
        if not checks:
            return []
        tasks = [asyncio.ensure_future(check) for check in checks]
        try:
            return await asyncio.gather(*tasks)
        except Exception as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.error("Role check failed, access evaluation aborted", error=str(e))
            raise
