"""
ACL decision service package.

Decides whether a principal (user, application, role or scope) may perform
an operation on a model property. It provides:

- app.main: API surface for permission, access, scope and token checks.
- app.acl: ACL model, scoring, resolution and the decision engine.
- app.registry: Statically declared model ACLs and method access types.
- app.roles: Role membership resolution.
- app.persistence: In-memory and PostgreSQL rule/scope stores.
- app.cache: Redis-backed caching for permission decisions.

Guidelines:
- Store and resolver failures propagate; they are never turned into DENY.
- Scoring and resolution stay pure; all I/O lives in the engine's collaborators.
"""
