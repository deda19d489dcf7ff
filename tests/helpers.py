"""
Test Helper Functions - Builders and Assertions

Small builders for constraints and accreditations so tests read like the
delegation rules they exercise.

Fun fact: The Builder pattern was formalized by the Gang of Four in 1994,
but test data builders were popularized by the growing programmer test
movement in the 2000s - we use them to keep tests readable and maintainable!
"""

from trust_hierarchies.accreditation.models import Accreditation, AccreditationSet
from trust_hierarchies.kernel.events import Event
from trust_hierarchies.statements.models import (
    PatternExpression,
    StatementConstraint,
    StatementName,
    StatementValue,
    Timespan,
)

# 2025-01-15 12:00:00 UTC, the conftest test_time default
NOW_MS = 1736942400000
DAY_MS = 24 * 60 * 60 * 1000


def name(text: str) -> StatementName:
    return StatementName.parse(text)


def value(raw: str | int) -> StatementValue:
    return StatementValue.of(raw)


def constraint(
    statement: str,
    *values: str | int,
    allow_any: bool = False,
    expression: PatternExpression | None = None,
    valid_from_ms: int | None = None,
    valid_until_ms: int | None = None,
) -> StatementConstraint:
    """
    Builder for statement constraints

    Example:
        >>> constraint("org.name", "Acme", "Globex")
        >>> constraint("age", expression=PatternExpression.greater_than(18))
    """
    return StatementConstraint(
        name=statement,
        allowed_values=list(values),
        allow_any=allow_any,
        expression=expression,
        timespan=Timespan(valid_from_ms=valid_from_ms, valid_until_ms=valid_until_ms),
    )


def accreditation(
    accreditation_id: str, *constraints: StatementConstraint, by: str = "alice"
) -> Accreditation:
    return Accreditation(
        accreditation_id=accreditation_id,
        accredited_by=by,
        constraints=list(constraints),
    )


def accreditation_set(*constraints: StatementConstraint) -> AccreditationSet:
    """One accreditation per constraint, ids acc-1, acc-2, ..."""
    return AccreditationSet(
        accreditation(f"acc-{i}", c) for i, c in enumerate(constraints, start=1)
    )


def event_types(events: list[Event]) -> list[str]:
    return [e.event_type for e in events]
