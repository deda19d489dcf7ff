"""
Federation Commands - Intentions to change a trust domain

Commands represent what callers want to do. They are validated against
invariants and converted to events by handlers. The capability is passed
alongside the command, never inside it, so a command can be logged
without leaking a bearer token.

Fun fact: Commands can fail (invariant violations), but events never
fail - they're facts that already happened!
"""

from pydantic import BaseModel, Field

from trust_hierarchies.statements.models import (
    PatternExpression,
    StatementConstraint,
    StatementName,
    StatementValue,
    Timespan,
)


class CreateFederation(BaseModel):
    """Create a new federation with the creator as its only root authority"""

    creator: str = Field(..., min_length=1)


# Statement registry commands


class AddStatement(BaseModel):
    """
    Register (or overwrite) the constraint for a statement name

    allow_any and allowed_values are mutually exclusive.
    """

    federation_id: str
    name: StatementName
    allowed_values: frozenset[StatementValue] = Field(default_factory=frozenset)
    allow_any: bool = False
    expression: PatternExpression | None = None
    timespan: Timespan = Field(default_factory=Timespan)

    def to_constraint(self) -> StatementConstraint:
        return StatementConstraint(
            name=self.name,
            allowed_values=self.allowed_values,
            allow_any=self.allow_any,
            expression=self.expression,
            timespan=self.timespan,
        )


class RevokeStatement(BaseModel):
    """Close a statement's validity window (now, when valid_to_ms is omitted)"""

    federation_id: str
    name: StatementName
    valid_to_ms: int | None = None


class RemoveStatement(BaseModel):
    """Delete a statement from the registry outright"""

    federation_id: str
    name: StatementName


# Root authority commands


class AddRootAuthority(BaseModel):
    federation_id: str
    account_id: str = Field(..., min_length=1)


class RevokeRootAuthority(BaseModel):
    federation_id: str
    account_id: str = Field(..., min_length=1)


class ReinstateRootAuthority(BaseModel):
    federation_id: str
    account_id: str = Field(..., min_length=1)


# Accreditation commands


class CreateAccreditation(BaseModel):
    """
    Grant constraints to a receiver

    Base for the attest and accredit variants, which differ only in the
    map they write to and the capability they need.
    """

    federation_id: str
    receiver: str = Field(..., min_length=1)
    constraints: list[StatementConstraint]


class CreateAccreditationToAttest(CreateAccreditation):
    pass


class CreateAccreditationToAccredit(CreateAccreditation):
    pass


class RevokeAccreditation(BaseModel):
    """Remove one accreditation from an entity's set"""

    federation_id: str
    entity_id: str
    accreditation_id: str


class RevokeAccreditationToAttest(RevokeAccreditation):
    pass


class RevokeAccreditationToAccredit(RevokeAccreditation):
    pass
