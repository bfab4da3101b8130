"""
Unit tests for ACL scoring and permission resolution.
"""

import pytest

from service_acl.app.acl.matching import get_matching_score, resolve_permission, sort_by_score
from service_acl.app.acl.models import (
    ACLRule, AccessRequest, AccessType, Permission, PrincipalType, ALL
)


def rule(model=ALL, property=ALL, access_type=AccessType.ALL, permission=Permission.ALLOW):
    return ACLRule(
        model=model,
        property=property,
        access_type=access_type,
        permission=permission,
        principal_type=PrincipalType.ROLE,
        principal_id="$everyone",
    )


class TestMatchingScore:
    """Test cases for get_matching_score."""

    @pytest.fixture
    def request_(self):
        """Concrete request on Album.name for READ."""
        return AccessRequest("Album", "name", AccessType.READ)

    def test_exact_match_score(self, request_):
        """All three dimensions exact, ALLOW strength."""
        score = get_matching_score(rule("Album", "name", AccessType.READ), request_)

        # ((3*4 + 3)*4 + 3)*4 + (1 - 1)
        assert score == 252

    def test_wildcard_rule_score(self, request_):
        """Fully wildcard rule against a concrete request."""
        score = get_matching_score(rule(), request_)

        assert score == ((2 * 4 + 2) * 4 + 2) * 4

    def test_wildcard_request_score(self):
        """Concrete rule against a wildcard request."""
        request_ = AccessRequest("Album", ALL, AccessType.ALL)

        score = get_matching_score(rule("Album", "name", AccessType.READ), request_)

        assert score == ((3 * 4 + 1) * 4 + 1) * 4

    @pytest.mark.parametrize("acl", [
        rule("Photo", "name", AccessType.READ),
        rule("Album", "title", AccessType.READ),
        rule("Album", "name", AccessType.WRITE),
        rule(ALL, ALL, AccessType.WRITE, Permission.DENY),
        rule("Photo"),
    ])
    def test_concrete_mismatch_is_no_match(self, request_, acl):
        """Any concrete mismatch yields -1."""
        assert get_matching_score(acl, request_) == -1

    def test_exact_beats_partial_wildcard(self, request_):
        """Three exact dimensions outrank two exact and one wildcard."""
        exact = get_matching_score(rule("Album", "name", AccessType.READ), request_)
        partial = get_matching_score(rule("Album", "name", AccessType.ALL), request_)

        assert exact > partial >= 0

    def test_permission_strength_breaks_ties(self, request_):
        """At equal specificity the stronger permission scores higher."""
        scores = [
            get_matching_score(rule(permission=permission), request_)
            for permission in (Permission.ALLOW, Permission.ALARM, Permission.AUDIT, Permission.DENY)
        ]

        assert scores == sorted(scores)
        assert len(set(scores)) == 4

    def test_unset_fields_read_as_wildcard(self, request_):
        """Unset rule fields behave like ALL."""
        unset = ACLRule(model=None, property=None, access_type=None, permission=None)

        assert get_matching_score(unset, request_) == get_matching_score(rule(), request_)


class TestResolvePermission:
    """Test cases for resolve_permission."""

    def test_empty_rules_resolve_to_default(self):
        """No rules means DEFAULT."""
        for request_ in (AccessRequest("Album", "name", AccessType.READ), AccessRequest("Album")):
            resolved = resolve_permission([], request_)

            assert resolved.permission == Permission.DEFAULT

    def test_deny_beats_allow_at_equal_specificity(self):
        """Two fully wildcard rules: DENY wins."""
        rules = [rule(permission=Permission.DENY), rule(permission=Permission.ALLOW)]

        resolved = resolve_permission(rules, AccessRequest("Album", "name", AccessType.READ))

        assert resolved.permission == Permission.DENY

    def test_deny_beats_allow_regardless_of_order(self):
        """Candidate order does not change the outcome of a strength tie."""
        rules = [rule(permission=Permission.ALLOW), rule(permission=Permission.DENY)]

        resolved = resolve_permission(rules, AccessRequest("Album", "name", AccessType.READ))

        assert resolved.permission == Permission.DENY

    def test_specificity_beats_strength(self):
        """Exact ALLOW wins over a fully wildcard DENY."""
        rules = [
            rule(permission=Permission.DENY),
            rule("Album", "name", AccessType.READ, Permission.ALLOW),
        ]

        resolved = resolve_permission(rules, AccessRequest("Album", "name", AccessType.READ))

        assert resolved.permission == Permission.ALLOW

    def test_non_matching_rules_ignored(self):
        """Rules for other models never apply."""
        rules = [rule("Photo", permission=Permission.DENY)]

        resolved = resolve_permission(rules, AccessRequest("Album", "name", AccessType.READ))

        assert resolved.permission == Permission.DEFAULT

    def test_wildcard_request_uses_exact_match(self):
        """A structurally exact rule wins for a wildcard request."""
        request_ = AccessRequest("Album", ALL, AccessType.READ)
        rules = [
            rule("Album", "name", AccessType.READ, Permission.DENY),
            rule("Album", ALL, AccessType.READ, Permission.ALLOW),
        ]

        resolved = resolve_permission(rules, request_)

        assert resolved.permission == Permission.ALLOW

    def test_wildcard_request_takes_strongest(self):
        """Without an exact match the strongest permission wins."""
        request_ = AccessRequest("Album", ALL, AccessType.READ)
        rules = [
            rule("Album", "name", AccessType.READ, Permission.ALLOW),
            rule("Album", "title", AccessType.ALL, Permission.AUDIT),
            rule("Album", "cover", AccessType.READ, Permission.ALARM),
        ]

        resolved = resolve_permission(rules, request_)

        assert resolved.permission == Permission.AUDIT

    def test_wildcard_request_ignores_non_matching(self):
        """Strongest-wins only considers matching rules."""
        request_ = AccessRequest("Album", ALL, AccessType.READ)
        rules = [
            rule("Album", "name", AccessType.READ, Permission.ALLOW),
            rule("Album", "name", AccessType.WRITE, Permission.DENY),
        ]

        resolved = resolve_permission(rules, request_)

        assert resolved.permission == Permission.ALLOW

    def test_inputs_not_mutated(self):
        """Resolution returns a new request and leaves the rule list untouched."""
        request_ = AccessRequest("Album", "name", AccessType.READ)
        rules = [rule(permission=Permission.ALLOW), rule("Album", "name", AccessType.READ, Permission.DENY)]
        original = list(rules)

        resolved = resolve_permission(rules, request_)

        assert rules == original
        assert request_.permission == Permission.DEFAULT
        assert resolved is not request_
        assert (resolved.model, resolved.property, resolved.access_type) == ("Album", "name", AccessType.READ)
        assert resolved.permission == Permission.DENY

    def test_sort_is_stable_for_equal_scores(self):
        """Equally scored rules keep their candidate order."""
        first = ACLRule(principal_type=PrincipalType.USER, principal_id="a")
        second = ACLRule(principal_type=PrincipalType.USER, principal_id="b")

        ranked = sort_by_score([first, second], AccessRequest("Album", "name", AccessType.READ))

        assert ranked == [first, second]
