"""
Tests for Accreditation and AccreditationSet

Evaluation of an entity's grants: which single values it may attest, and
whether a requested constraint is fully covered before it may be passed on.

Fun fact: "Covered" here is the same subset check a wine appellation makes -
a sub-region may only label grapes the parent appellation already allows!
"""

import pytest

from tests.helpers import (
    DAY_MS,
    NOW_MS,
    accreditation,
    accreditation_set,
    constraint,
    name,
    value,
)
from trust_hierarchies.accreditation.models import Accreditation, AccreditationSet
from trust_hierarchies.kernel.errors import AccreditationNotFound
from trust_hierarchies.statements.models import PatternExpression


# =============================================================================
# Accreditation
# =============================================================================


def test_accreditation_keeps_last_constraint_per_name() -> None:
    acc = accreditation(
        "acc-1",
        constraint("org.name", "Acme"),
        constraint("age", expression=PatternExpression.greater_than(18)),
        constraint("org.name", "Globex"),
    )

    assert len(acc.constraints) == 2
    assert acc.get(name("org.name")) == constraint("org.name", "Globex")
    assert acc.statement_names() == [name("org.name"), name("age")]


def test_accreditation_get_is_exact() -> None:
    acc = accreditation("acc-1", constraint("company", allow_any=True))

    assert acc.get(name("company")) is not None
    assert acc.get(name("company.example")) is None


def test_accreditation_roundtrip() -> None:
    acc = accreditation("acc-1", constraint("org.name", "Acme", 7))
    assert Accreditation.model_validate(acc.model_dump(mode="json")) == acc


# =============================================================================
# Membership
# =============================================================================


def test_empty_set() -> None:
    empty = AccreditationSet()

    assert empty.is_empty()
    assert len(empty) == 0
    assert not empty.is_allowed(name("org.name"), value("Acme"), NOW_MS)


def test_remove_by_id() -> None:
    held = accreditation_set(constraint("a", "1"), constraint("b", "2"))

    removed = held.remove_by_id("acc-1", "bob")

    assert removed.accreditation_id == "acc-1"
    assert [a.accreditation_id for a in held] == ["acc-2"]


def test_remove_unknown_id_raises() -> None:
    held = accreditation_set(constraint("a", "1"))

    with pytest.raises(AccreditationNotFound) as exc_info:
        held.remove_by_id("acc-404", "bob")

    assert exc_info.value.entity_id == "bob"
    assert len(held) == 1


def test_set_roundtrip() -> None:
    held = accreditation_set(constraint("a", "1"), constraint("b", allow_any=True))
    restored = AccreditationSet.from_dict(held.to_dict())

    assert list(restored) == list(held)


# =============================================================================
# is_allowed
# =============================================================================


def test_allowed_by_any_accreditation() -> None:
    held = accreditation_set(constraint("org.name", "Acme"), constraint("org.name", "Globex"))

    assert held.is_allowed(name("org.name"), value("Acme"), NOW_MS)
    assert held.is_allowed(name("org.name"), value("Globex"), NOW_MS)
    assert not held.is_allowed(name("org.name"), value("Initech"), NOW_MS)


def test_allowed_ignores_expired_entries() -> None:
    held = accreditation_set(constraint("org.name", "Acme", valid_until_ms=NOW_MS - 1))
    assert not held.is_allowed(name("org.name"), value("Acme"), NOW_MS)


def test_allowed_only_looks_at_exact_name() -> None:
    held = accreditation_set(constraint("company", allow_any=True))
    assert not held.is_allowed(name("company.example"), value("x"), NOW_MS)


def test_are_values_allowed() -> None:
    held = accreditation_set(constraint("org.name", "Acme"), constraint("age", 30))

    assert held.are_values_allowed(
        {name("org.name"): value("Acme"), name("age"): value(30)}, NOW_MS
    )
    assert not held.are_values_allowed(
        {name("org.name"): value("Acme"), name("age"): value(31)}, NOW_MS
    )


# =============================================================================
# is_compliant
# =============================================================================


def test_compliant_subset_of_values() -> None:
    held = accreditation_set(constraint("org.name", "Acme", "Globex"))

    assert held.is_compliant(constraint("org.name", "Acme"), NOW_MS)
    assert held.is_compliant(constraint("org.name", "Acme", "Globex"), NOW_MS)
    assert not held.is_compliant(constraint("org.name", "Acme", "Initech"), NOW_MS)


def test_compliant_values_may_be_spread_across_accreditations() -> None:
    held = accreditation_set(constraint("org.name", "Acme"), constraint("org.name", "Globex"))
    assert held.is_compliant(constraint("org.name", "Acme", "Globex"), NOW_MS)


def test_compliance_needs_an_entry_under_the_name() -> None:
    held = accreditation_set(constraint("org.name", "Acme"))
    assert not held.is_compliant(constraint("org.city", "Paris"), NOW_MS)


def test_expression_entry_covers_matching_values() -> None:
    held = accreditation_set(constraint("age", expression=PatternExpression.greater_than(18)))

    assert held.is_compliant(constraint("age", 21, 40), NOW_MS)
    assert not held.is_compliant(constraint("age", 12), NOW_MS)


def test_allow_any_request_needs_allow_any_entry() -> None:
    narrow = accreditation_set(constraint("org.name", "Acme"))
    broad = accreditation_set(constraint("org.name", allow_any=True))

    assert not narrow.is_compliant(constraint("org.name", allow_any=True), NOW_MS)
    assert broad.is_compliant(constraint("org.name", allow_any=True), NOW_MS)


def test_expression_request_needs_same_expression_or_allow_any() -> None:
    over_18 = PatternExpression.greater_than(18)
    held = accreditation_set(constraint("age", expression=over_18))

    assert held.is_compliant(constraint("age", expression=over_18), NOW_MS)
    assert not held.is_compliant(
        constraint("age", expression=PatternExpression.greater_than(10)), NOW_MS
    )
    assert accreditation_set(constraint("age", allow_any=True)).is_compliant(
        constraint("age", expression=PatternExpression.greater_than(10)), NOW_MS
    )


def test_compliance_ignores_entries_outside_their_timespan() -> None:
    held = accreditation_set(
        constraint("org.name", "Acme", valid_from_ms=NOW_MS + DAY_MS),
    )
    requested = constraint("org.name", "Acme", valid_from_ms=NOW_MS + DAY_MS)

    assert not held.is_compliant(requested, NOW_MS)
    assert held.is_compliant(requested, NOW_MS + DAY_MS)


def test_compliant_grant_cannot_outlive_the_covering_entry() -> None:
    expires = NOW_MS + DAY_MS
    held = accreditation_set(constraint("org.name", "Acme", valid_until_ms=expires))

    assert held.is_compliant(constraint("org.name", "Acme", valid_until_ms=expires), NOW_MS)
    assert held.is_compliant(
        constraint("org.name", "Acme", valid_from_ms=NOW_MS, valid_until_ms=NOW_MS + 1), NOW_MS
    )
    assert not held.is_compliant(constraint("org.name", "Acme"), NOW_MS)
    assert not held.is_compliant(
        constraint("org.name", "Acme", valid_until_ms=expires + 1), NOW_MS
    )


def test_compliant_grant_cannot_start_before_the_covering_entry() -> None:
    starts = NOW_MS - DAY_MS
    held = accreditation_set(constraint("org.name", "Acme", valid_from_ms=starts))

    assert held.is_compliant(constraint("org.name", "Acme", valid_from_ms=starts), NOW_MS)
    assert not held.is_compliant(constraint("org.name", "Acme"), NOW_MS)
    assert not held.is_compliant(
        constraint("org.name", "Acme", valid_from_ms=starts - 1), NOW_MS
    )


def test_unbounded_entry_covers_any_window() -> None:
    held = accreditation_set(constraint("org.name", allow_any=True))

    assert held.is_compliant(
        constraint("org.name", "Acme", valid_from_ms=NOW_MS, valid_until_ms=NOW_MS + DAY_MS),
        NOW_MS,
    )
    assert held.is_compliant(constraint("org.name", "Acme"), NOW_MS)


def test_first_non_compliant_reports_the_failing_constraint() -> None:
    held = accreditation_set(constraint("a", "1"))
    requested = [constraint("a", "1"), constraint("b", "2")]

    assert not held.are_constraints_compliant(requested, NOW_MS)
    assert held.first_non_compliant(requested, NOW_MS) == constraint("b", "2")
    assert held.are_constraints_compliant(requested[:1], NOW_MS)


def test_granted_accreditation_covers_every_subset_of_the_grant() -> None:
    granted = [
        constraint("org.name", "Acme", "Globex"),
        constraint("age", expression=PatternExpression.greater_than(18)),
    ]
    receiver = AccreditationSet([accreditation("acc-1", *granted)])

    assert receiver.are_constraints_compliant(granted, NOW_MS)
    assert receiver.is_compliant(constraint("org.name", "Globex"), NOW_MS)
    assert receiver.is_compliant(granted[1], NOW_MS)
    assert receiver.is_compliant(constraint("age", 30), NOW_MS)
