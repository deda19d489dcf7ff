"""
Governance Policy - tunable safeguards around delegation

The GovernancePolicy holds the knobs that decide how strict a Hierarchies
instance is about configuration: how many root authorities must survive a
revocation, whether grants must name registered statements, and how large
a single accreditation may be.

Fun fact: Two-person integrity rules (never fewer than two keyholders) date
back to nuclear launch procedures - min_root_authorities=2 is the same idea.
"""

from pydantic import BaseModel, Field


class GovernancePolicy(BaseModel):
    """
    Safety parameters for federation governance

    The defaults reproduce the plain engine behaviour: a federation may
    shrink to a single root, grants must name registered statements and
    constraints that could never match are rejected.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    min_root_authorities: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Distinct root authorities that must remain after a revocation",
    )

    require_registered_statements: bool = Field(
        default=True,
        description="Reject grants naming statements not covered by the registry",
    )

    reject_unmatchable_constraints: bool = Field(
        default=True,
        description="Reject constraints with no values, no expression and allow_any off",
    )

    max_constraints_per_accreditation: int = Field(
        default=256,
        ge=1,
        description="Upper bound on constraints carried by one accreditation",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "description": "Safety parameters governing trust federations"
        },
    }


default_governance_policy = GovernancePolicy()
