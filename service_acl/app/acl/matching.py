"""
Rule scoring and permission resolution.

Both functions are pure: they never suspend and never mutate their inputs.

A rule is scored against a request one dimension at a time (model, then
property, then access type). Each dimension contributes a base-4 digit:

- 3: rule and request values are equal
- 2: rule is a wildcard, request is concrete
- 1: rule is concrete, request is a wildcard
- any concrete mismatch makes the whole rule non-matching (-1)

The permission strength of the rule is appended as the least significant
digit so that, at equal specificity, the stronger permission sorts first.
"""

from typing import Iterable, List

from shared.logging import get_logger
from .models import ACLRule, AccessRequest, Permission, ALL

logger = get_logger("acl.matching")

MATCHED_PROPERTIES = ("model", "property", "access_type")

NO_MATCH = -1


def get_matching_score(rule: ACLRule, request: AccessRequest) -> int:
    """Calculate the matching score of ``rule`` for ``request``."""
    score = 0
    for prop in MATCHED_PROPERTIES:
        # Shift by 4 for each property as the weight
        score *= 4
        rule_value = getattr(rule, prop) or ALL
        request_value = getattr(request, prop) or ALL
        if rule_value == request_value:
            score += 3
        elif rule_value == ALL:
            score += 2
        elif request_value == ALL:
            score += 1
        else:
            return NO_MATCH
    score *= 4
    score += (rule.permission or Permission.ALLOW).strength - 1
    return score


def _is_exact_match(rule: ACLRule, request: AccessRequest) -> bool:
    return all(getattr(rule, prop) == getattr(request, prop) for prop in MATCHED_PROPERTIES)


def sort_by_score(rules: Iterable[ACLRule], request: AccessRequest) -> List[ACLRule]:
    """Order rules from most to least specific for ``request``.

    The sort is stable, so equally scored rules keep their candidate order.
    """
    return sorted(rules, key=lambda rule: get_matching_score(rule, request), reverse=True)


def resolve_permission(rules: Iterable[ACLRule], request: AccessRequest) -> AccessRequest:
    """Collapse ``rules`` into the effective permission for ``request``.

    For a concrete request the most specific matching rule wins. For a
    wildcard request an exact structural match wins; failing that, the
    strongest permission among all matching rules is used.
    """
    ranked = sort_by_score(rules, request)
    permission = Permission.DEFAULT

    for rule in ranked:
        score = get_matching_score(rule, request)
        if score < 0:
            break
        if not request.is_wildcard:
            # First match wins for concrete requests
            permission = rule.permission
            break
        if _is_exact_match(rule, request):
            permission = rule.permission
            break
        if rule.permission.strength > permission.strength:
            permission = rule.permission

    resolved = AccessRequest(request.model, request.property, request.access_type, permission)
    logger.debug(
        "Permission resolved",
        model=resolved.model,
        property=resolved.property,
        access_type=resolved.access_type.value,
        permission=resolved.permission.value,
        candidates=len(ranked)
    )
    return resolved
