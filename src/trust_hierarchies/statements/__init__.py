"""
Statements Module - names, values and constraints

This module holds the value types every other part of the registry is
built from:
- StatementName / StatementValue (what is being said)
- PatternExpression / Timespan (how and when a value is acceptable)
- StatementConstraint (the full policy for one name)
- StatementRegistry (the federation's catalogue of constraints)
"""

from trust_hierarchies.statements.models import (
    MAX_NUMBER,
    PatternExpression,
    PatternKind,
    StatementConstraint,
    StatementName,
    StatementValue,
    Timespan,
)
from trust_hierarchies.statements.registry import StatementRegistry

__all__ = [
    "MAX_NUMBER",
    "StatementName",
    "StatementValue",
    "PatternKind",
    "PatternExpression",
    "Timespan",
    "StatementConstraint",
    "StatementRegistry",
]
