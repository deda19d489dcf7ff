"""
Federation Invariants - rules every accepted operation must satisfy

Invariants are pure functions over the current Federation state. They
raise on violation and return nothing otherwise, so a handler can run
them in sequence before emitting a single event.

Fun fact: The central rule here - you may only grant what you could
yourself attest - is the same "no escalation" rule X.509 enforces with
name constraints on intermediate certificates!
"""

from collections.abc import Sequence

from trust_hierarchies.accreditation.models import Accreditation, AccreditationSet
from trust_hierarchies.federation.models import Capability, CapabilityKind, Federation
from trust_hierarchies.kernel.errors import (
    AccreditationNotFound,
    CannotRevokeLastRootAuthority,
    InsufficientAccreditationToAccredit,
    InsufficientAccreditationToAttest,
    InvalidConstraintConfiguration,
    InvalidStatement,
    RevokedRootAuthority,
    RootAuthorityNotFound,
    RootAuthorityNotRevoked,
    UnknownCapability,
    WrongCapability,
    WrongFederation,
)
from trust_hierarchies.kernel.policy import GovernancePolicy
from trust_hierarchies.statements.models import StatementConstraint


# Capability invariants


def validate_capability(
    cap: Capability, federation: Federation, *accepted: CapabilityKind
) -> None:
    """
    Check a presented capability against the target federation

    Runs on every privileged call. The token must be one the federation
    actually minted, field for field; a hand-built Capability naming a
    root as holder is refused. A RootAuthorityCap is only usable while its
    holder is still a root authority.

    Raises:
        WrongFederation: Token bound to another federation
        UnknownCapability: Token never minted here, or altered since
        WrongCapability: Token of a kind not in accepted
        RevokedRootAuthority: Root token held by a revoked account
    """
    if cap.federation_id != federation.federation_id:
        raise WrongFederation(cap.capability_id, cap.federation_id, federation.federation_id)

    if not federation.minted(cap):
        raise UnknownCapability(cap.capability_id, federation.federation_id)

    if cap.kind not in accepted:
        raise WrongCapability(
            cap.capability_id, cap.kind.value, " or ".join(kind.value for kind in accepted)
        )

    if cap.kind == CapabilityKind.ROOT_AUTHORITY and not federation.is_root_authority(
        cap.holder
    ):
        raise RevokedRootAuthority(federation.federation_id, cap.holder)


# Constraint invariants


def validate_constraint_configuration(
    constraint: StatementConstraint, policy: GovernancePolicy
) -> None:
    """
    Reject constraints that contradict themselves or can never match

    Raises:
        InvalidConstraintConfiguration
    """
    if constraint.is_contradictory():
        raise InvalidConstraintConfiguration(
            str(constraint.name), "allow_any cannot be combined with allowed values"
        )
    span = constraint.timespan
    if (
        span.valid_from_ms is not None
        and span.valid_until_ms is not None
        and span.valid_from_ms > span.valid_until_ms
    ):
        raise InvalidConstraintConfiguration(
            str(constraint.name), "timespan ends before it starts"
        )
    if policy.reject_unmatchable_constraints and constraint.is_unmatchable():
        raise InvalidConstraintConfiguration(
            str(constraint.name),
            "needs allowed values, an expression or allow_any",
        )


def validate_grant_constraints(
    constraints: Sequence[StatementConstraint],
    federation: Federation,
    policy: GovernancePolicy,
) -> None:
    """
    Shape checks for the constraints of a new accreditation

    Raises:
        InvalidConstraintConfiguration: Empty, oversized or malformed
        InvalidStatement: A name the registry does not cover
    """
    if not constraints:
        raise InvalidConstraintConfiguration("<none>", "an accreditation needs constraints")

    if len(constraints) > policy.max_constraints_per_accreditation:
        raise InvalidConstraintConfiguration(
            str(constraints[0].name),
            f"more than {policy.max_constraints_per_accreditation} constraints",
        )

    registry = federation.governance.registry
    for constraint in constraints:
        validate_constraint_configuration(constraint, policy)
        if policy.require_registered_statements and not registry.is_covered(constraint.name):
            raise InvalidStatement(str(constraint.name))


# Compliance invariants


def _set_of(
    federation: Federation, entity_id: str, kind: CapabilityKind
) -> AccreditationSet:
    if kind == CapabilityKind.ATTEST:
        held = federation.attest_set(entity_id)
    else:
        held = federation.accredit_set(entity_id)
    return held if held is not None else AccreditationSet()


def _insufficient(kind: CapabilityKind, caller: str, statement_name: str | None) -> Exception:
    if kind == CapabilityKind.ATTEST:
        return InsufficientAccreditationToAttest(caller, statement_name)
    return InsufficientAccreditationToAccredit(caller, statement_name)


def validate_compliance(
    federation: Federation,
    caller: str,
    constraints: Sequence[StatementConstraint],
    kind: CapabilityKind,
    now_ms: int,
) -> None:
    """
    Non-root callers may only hand out what their accredit set covers

    Handing out rights of either kind is accrediting, so the caller's
    accreditations to accredit are evaluated for attest grants too; attest
    rights only let an entity attest. kind picks the error raised. Root
    authorities are exempt whatever their sets contain.

    Raises:
        InsufficientAccreditationToAttest / InsufficientAccreditationToAccredit
    """
    if federation.is_root_authority(caller):
        return

    held = _set_of(federation, caller, CapabilityKind.ACCREDIT)
    failing = held.first_non_compliant(constraints, now_ms)
    if failing is not None:
        raise _insufficient(kind, caller, str(failing.name))


def find_accreditation(
    federation: Federation, entity_id: str, accreditation_id: str, kind: CapabilityKind
) -> Accreditation:
    """
    Look up a revoke target

    Raises:
        AccreditationNotFound: Entity not enrolled or id not in its set
    """
    target_set = _set_of(federation, entity_id, kind)
    accreditation = target_set.find_by_id(accreditation_id)
    if accreditation is None:
        raise AccreditationNotFound(entity_id, accreditation_id)
    return accreditation


# Root authority invariants


def validate_root_revocation(
    federation: Federation, account_id: str, policy: GovernancePolicy
) -> None:
    """
    Raises:
        RootAuthorityNotFound: Account is not a current root
        CannotRevokeLastRootAuthority: Too few distinct roots would remain
    """
    if not federation.is_root_authority(account_id):
        raise RootAuthorityNotFound(federation.federation_id, account_id)

    remaining = [a for a in federation.distinct_root_ids() if a != account_id]
    if len(remaining) < policy.min_root_authorities:
        raise CannotRevokeLastRootAuthority(
            federation.federation_id, account_id, policy.min_root_authorities
        )


def validate_root_reinstatement(federation: Federation, account_id: str) -> None:
    """
    Raises:
        RootAuthorityNotRevoked: Account is not on the revoked list
    """
    if not federation.is_revoked_root_authority(account_id):
        raise RootAuthorityNotRevoked(federation.federation_id, account_id)
