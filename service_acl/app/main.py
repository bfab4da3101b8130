"""
ACL decision service.
"""

from typing import Dict, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.logging import set_user_context

from .acl.engine import ACLEngine
from .acl.models import (
    AccessContext, AccessToken, AccessType, Permission, Principal, PrincipalType,
    PermissionCheckRequest, PermissionCheckResponse,
    AccessCheckRequest, AccessCheckResponse,
    ScopeCheckRequest, TokenCheckRequest, TokenCheckResponse,
    ALL
)
from .cache.redis_cache import DecisionCache
from .persistence.memory import InMemoryACLStore, InMemoryScopeStore
from .persistence.postgres import PostgreSQLACLStore
from .registry.model_registry import ModelRegistry
from .roles.resolver import RoleResolver


class ACLService(BaseService):
    """ACL service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        registry: Optional[ModelRegistry] = None,
        acl_store=None,
        scope_store=None,
        role_resolver: Optional[RoleResolver] = None,
        cache: Optional[DecisionCache] = None,
    ):
        super().__init__("acl", 8013, config=config)

        self.registry = registry or ModelRegistry()
        if registry is None and self.config.models_file:
            self.registry.load_file(self.config.models_file)

        self.postgres: Optional[PostgreSQLACLStore] = None
        if acl_store is None and self.config.store_backend == "postgres":
            self.postgres = PostgreSQLACLStore(
                self.config.postgres_dsn,
                command_timeout=self.config.store_command_timeout
            )
            acl_store = self.postgres
            scope_store = scope_store or self.postgres
        self.acl_store = acl_store or InMemoryACLStore()
        self.scope_store = scope_store or InMemoryScopeStore()

        self.role_resolver = role_resolver or RoleResolver()

        self.cache = cache
        if self.cache is None and self.config.decision_cache_enabled:
            self.cache = DecisionCache(self.config.redis_url, self.config.decision_cache_ttl_seconds)

        self.engine = ACLEngine(
            self.registry,
            self.acl_store,
            self.role_resolver,
            scope_store=self.scope_store,
            role_check_timeout=self.config.role_check_timeout_seconds,
        )

        @self.app.on_event("startup")
        async def _startup():
            if self.postgres:
                await self.postgres.start()
            if self.cache:
                await self.cache.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self.cache:
                await self.cache.stop()
            if self.postgres:
                await self.postgres.stop()

        self._setup_acl_routes()

    def _setup_acl_routes(self):
        """Set up ACL-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "acl",
                "message": "ACL decision service",
                "version": "1.0.0",
                "capabilities": ["check_permission", "check_access", "scopes", "tokens"],
                "models": sorted(self.registry.models)
            }

        @self.app.post("/acl/check-permission", response_model=PermissionCheckResponse)
        async def check_permission(request: PermissionCheckRequest):
            """Check the permission of a single principal."""
            if request.principal_type == PrincipalType.USER:
                set_user_context(request.principal_id)
            property = request.property or ALL
            access_type = request.access_type or AccessType.ALL

            permission = None
            if self.cache:
                permission = await self.cache.get_permission(
                    request.principal_type, request.principal_id, request.model, property, access_type
                )
                self.metrics.increment_counter(
                    "decision_cache_total", result="hit" if permission is not None else "miss"
                )

            if permission is None:
                with self.metrics.time_operation("acl_check_duration_seconds", operation="check_permission"):
                    permission = await self.engine.check_permission(
                        request.principal_type, request.principal_id, request.model, property, access_type
                    )
                if self.cache:
                    await self.cache.set_permission(
                        request.principal_type, request.principal_id, request.model, property, access_type,
                        permission
                    )

            self.metrics.record_decision("check_permission", permission.value)
            return PermissionCheckResponse(permission=permission, allowed=permission != Permission.DENY)

        @self.app.post("/acl/check-access", response_model=AccessCheckResponse)
        async def check_access(request: AccessCheckRequest):
            """Check access for every principal of a caller."""
            context = AccessContext(
                principals=[Principal(p.type, p.id, p.name) for p in request.principals],
                model=request.model,
                model_id=request.model_id,
                property=request.property,
                access_type=request.access_type,
            )
            set_user_context(context.get_user_id())

            with self.metrics.time_operation("acl_check_duration_seconds", operation="check_access"):
                resolved = await self.engine.check_access(context)

            self.metrics.record_decision("check_access", resolved.permission.value)
            return AccessCheckResponse(
                model=resolved.model,
                property=resolved.property,
                access_type=resolved.access_type,
                permission=resolved.permission,
                allowed=resolved.allowed
            )

        @self.app.post("/acl/scopes/{scope_name}/check", response_model=PermissionCheckResponse)
        async def check_scope(scope_name: str, request: ScopeCheckRequest):
            """Check the permission delegated to a named scope."""
            with self.metrics.time_operation("acl_check_duration_seconds", operation="check_scope"):
                permission = await self.engine.check_scope_permission(
                    scope_name, request.model, request.property, request.access_type
                )

            self.metrics.record_decision("check_scope", permission.value)
            return PermissionCheckResponse(permission=permission, allowed=permission != Permission.DENY)

        @self.app.post("/acl/check-token", response_model=TokenCheckResponse)
        async def check_token(request: TokenCheckRequest):
            """Check whether an access token may invoke a method."""
            token = None
            if request.token_id:
                token = AccessToken(id=request.token_id, user_id=request.user_id, app_id=request.app_id)
            set_user_context(request.user_id)

            with self.metrics.time_operation("acl_check_duration_seconds", operation="check_token"):
                allowed = await self.engine.check_access_for_token(
                    token, request.model, request.model_id, request.method
                )

            self.metrics.record_decision("check_token", "ALLOW" if allowed else "DENY")
            return TokenCheckResponse(allowed=allowed)

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies = {}
        if self.postgres:
            dependencies["postgres"] = "ok" if await self.postgres.health_check() else "error"
        if self.cache:
            dependencies["redis"] = "ok" if await self.cache.health_check() else "error"
        return dependencies


def create_app(**kwargs):
    """Create ACL service application."""
    service = ACLService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = ACLService()
    service.run()
