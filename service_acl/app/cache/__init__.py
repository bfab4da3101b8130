"""
Cache package for the ACL service.

Provides a Redis-backed cache for single-principal permission decisions.
Cache failures degrade to a miss; they never produce a decision.
"""
