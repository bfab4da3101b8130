"""
PostgreSQL persistence layer for dynamically granted ACL entries and scopes.
"""

import asyncio
import uuid
from typing import Any, List, Optional

import asyncpg
from shared.logging import get_logger
from shared.errors import StoreError
from ..acl.models import ACLRule, PrincipalType, Scope
from .base import ValueFilter, plain_value

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class PostgreSQLACLStore:
    """PostgreSQL-backed rule store and scope store."""

    def __init__(self, dsn: str, command_timeout: float = 30.0):
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.logger = get_logger("acl.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=self.command_timeout
            )

            await self._create_tables()

            self.logger.info("PostgreSQL ACL store started")

        except STORE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL ACL store", error=str(e))
            raise StoreError("PostgreSQL ACL store failed to start", {"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL ACL store stopped")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreError("PostgreSQL ACL store is not started")
        return self.pool

    async def _create_tables(self):
        """Create database tables."""
        async with self._require_pool().acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS acls (
                    acl_id VARCHAR(255) PRIMARY KEY,
                    model VARCHAR(255) NOT NULL,
                    property VARCHAR(255) NOT NULL DEFAULT '*',
                    access_type VARCHAR(20) NOT NULL DEFAULT '*',
                    permission VARCHAR(20) NOT NULL DEFAULT 'ALLOW',
                    principal_type VARCHAR(20),
                    principal_id VARCHAR(255),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_acls_model ON acls(model, property, access_type);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_acls_principal ON acls(principal_type, principal_id);
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS scopes (
                    scope_id VARCHAR(255) PRIMARY KEY,
                    name VARCHAR(255) NOT NULL UNIQUE,
                    description TEXT
                );
            """)

    async def save_acl(self, acl: ACLRule) -> ACLRule:
        """Insert or update an ACL entry, assigning an id if it has none."""
        acl_id = acl.id or str(uuid.uuid4())
        try:
            async with self._require_pool().acquire() as conn:
                await conn.execute("""
                    INSERT INTO acls (
                        acl_id, model, property, access_type, permission, principal_type, principal_id
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ON CONFLICT (acl_id) DO UPDATE SET
                        model = EXCLUDED.model,
                        property = EXCLUDED.property,
                        access_type = EXCLUDED.access_type,
                        permission = EXCLUDED.permission,
                        principal_type = EXCLUDED.principal_type,
                        principal_id = EXCLUDED.principal_id
                """,
                    acl_id, acl.model, acl.property, acl.access_type.value, acl.permission.value,
                    acl.principal_type.value if acl.principal_type else None,
                    None if acl.principal_id is None else plain_value(acl.principal_id)
                )
        except STORE_ERRORS as e:
            self.logger.error("Error saving ACL", acl_id=acl_id, error=str(e))
            raise StoreError("Failed to save ACL", {"acl_id": acl_id, "error": str(e)}) from e

        self.logger.info("ACL saved", acl_id=acl_id, model=acl.model)
        return ACLRule(
            model=acl.model,
            property=acl.property,
            access_type=acl.access_type,
            permission=acl.permission,
            principal_type=acl.principal_type,
            principal_id=acl.principal_id,
            id=acl_id,
        )

    async def delete_acl(self, acl_id: str) -> bool:
        """Delete an ACL entry."""
        try:
            async with self._require_pool().acquire() as conn:
                result = await conn.execute("""
                    DELETE FROM acls WHERE acl_id = $1
                """, acl_id)
        except STORE_ERRORS as e:
            self.logger.error("Error deleting ACL", acl_id=acl_id, error=str(e))
            raise StoreError("Failed to delete ACL", {"acl_id": acl_id, "error": str(e)}) from e

        if result == "DELETE 1":
            self.logger.info("ACL deleted", acl_id=acl_id)
            return True
        self.logger.warning("ACL not found for deletion", acl_id=acl_id)
        return False

    async def find_acls(
        self,
        model: str,
        property_filter: ValueFilter = None,
        access_type_filter: ValueFilter = None,
        principal_type: Optional[PrincipalType] = None,
        principal_id: Any = None,
    ) -> List[ACLRule]:
        """Find ACL entries for a model, oldest first."""
        clauses = ["model = $1"]
        args: List[Any] = [model]

        def add_clause(column: str, value: Any, many: bool = False):
            args.append(value)
            if many:
                clauses.append(f"{column} = ANY(${len(args)}::text[])")
            else:
                clauses.append(f"{column} = ${len(args)}")

        if property_filter is not None:
            add_clause("property", list(property_filter), many=True)
        if access_type_filter is not None:
            add_clause("access_type", list(access_type_filter), many=True)
        if principal_type is not None:
            add_clause("principal_type", PrincipalType(principal_type).value)
        if principal_id is not None:
            add_clause("principal_id", plain_value(principal_id))

        query = f"""
            SELECT * FROM acls
            WHERE {' AND '.join(clauses)}
            ORDER BY created_at ASC, acl_id ASC
        """

        try:
            async with self._require_pool().acquire() as conn:
                rows = await conn.fetch(query, *args)
        except STORE_ERRORS as e:
            self.logger.error("Error loading ACLs", model=model, error=str(e))
            raise StoreError("Failed to load ACLs", {"model": model, "error": str(e)}) from e

        return [self._row_to_acl(row) for row in rows]

    async def save_scope(self, scope: Scope) -> Scope:
        """Insert or update a scope."""
        try:
            async with self._require_pool().acquire() as conn:
                await conn.execute("""
                    INSERT INTO scopes (scope_id, name, description) VALUES ($1, $2, $3)
                    ON CONFLICT (scope_id) DO UPDATE SET
                        name = EXCLUDED.name,
                        description = EXCLUDED.description
                """, plain_value(scope.id), scope.name, scope.description)
        except STORE_ERRORS as e:
            self.logger.error("Error saving scope", scope=scope.name, error=str(e))
            raise StoreError("Failed to save scope", {"scope": scope.name, "error": str(e)}) from e
        return scope

    async def find_scope_by_name(self, name: str) -> Optional[Scope]:
        """Look up a scope by name."""
        try:
            async with self._require_pool().acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT * FROM scopes WHERE name = $1
                """, name)
        except STORE_ERRORS as e:
            self.logger.error("Error loading scope", scope=name, error=str(e))
            raise StoreError("Failed to load scope", {"scope": name, "error": str(e)}) from e

        if not row:
            return None
        return Scope(id=row['scope_id'], name=row['name'], description=row['description'])

    def _row_to_acl(self, row) -> ACLRule:
        """Convert database row to ACLRule object."""
        return ACLRule(
            id=row['acl_id'],
            model=row['model'],
            property=row['property'],
            access_type=row['access_type'],
            permission=row['permission'],
            principal_type=row['principal_type'],
            principal_id=row['principal_id'],
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._require_pool().acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except (StoreError, *STORE_ERRORS):
            return False
