"""
ACL core package.

Defines the ACL data model, the pure scoring/resolution functions and the
engine that gathers candidate rules from the model registry and the rule
store before resolving an effective permission.

Modules of interest:
- models: Access types, permissions, principals, rules, requests and contexts.
- matching: Specificity scoring and permission resolution.
- engine: Permission, access, scope and token checks.
"""
