"""
Federation Handlers - Command→Event transformation

Handlers are the decision-making layer. They:
1. Read the current Federation (from the projection)
2. Validate the capability and invariants
3. Generate events if valid
4. Return events for append to the event store

Nothing here mutates a Federation; a raised error therefore means no
change at all.

Fun fact: Handlers should be "almost boring" - the interesting logic
lives in invariants (testable) and projections (rebuildable).
"""

from collections.abc import Sequence

from pydantic import BaseModel

from trust_hierarchies.accreditation.models import Accreditation
from trust_hierarchies.federation.commands import (
    AddRootAuthority,
    AddStatement,
    CreateAccreditation,
    CreateAccreditationToAttest,
    CreateFederation,
    ReinstateRootAuthority,
    RemoveStatement,
    RevokeAccreditation,
    RevokeAccreditationToAttest,
    RevokeRootAuthority,
    RevokeStatement,
)
from trust_hierarchies.federation.events import (
    ACCREDIT_CREATED,
    ACCREDIT_REVOKED,
    ATTEST_CREATED,
    ATTEST_REVOKED,
    AccreditationCreated,
    AccreditationRevoked,
    CapabilityIssued,
    FederationCreated,
    RootAuthorityAdded,
    RootAuthorityReinstated,
    RootAuthorityRevoked,
    StatementAdded,
    StatementRemoved,
    StatementRevoked,
)
from trust_hierarchies.federation.invariants import (
    find_accreditation,
    validate_capability,
    validate_compliance,
    validate_constraint_configuration,
    validate_grant_constraints,
    validate_root_reinstatement,
    validate_root_revocation,
)
from trust_hierarchies.federation.models import Capability, CapabilityKind, Federation
from trust_hierarchies.kernel.events import Event, create_event
from trust_hierarchies.kernel.ids import (
    ACCREDITATION_PREFIX,
    CAPABILITY_PREFIX,
    EVENT_PREFIX,
    FEDERATION_PREFIX,
    IdFactory,
    default_id_factory,
)
from trust_hierarchies.kernel.policy import GovernancePolicy
from trust_hierarchies.kernel.time import TimeProvider

STREAM_TYPE = "federation"


def _accepted_caps(kind: CapabilityKind) -> tuple[CapabilityKind, ...]:
    # Accreditors hand out attest rights too
    if kind == CapabilityKind.ATTEST:
        return (CapabilityKind.ATTEST, CapabilityKind.ACCREDIT)
    return (CapabilityKind.ACCREDIT,)


class FederationCommandHandlers:
    """
    Command handlers for federations

    Each handler takes the command, its idempotency key, the presented
    capability and the Federation it targets, and returns the events
    describing the change.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: GovernancePolicy,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Args:
            time_provider: For timestamps (injectable for testing)
            policy: Governance safeguards
            id_factory: Id strategy (UUIDv7-like by default)
        """
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory or default_id_factory

    def _events(
        self,
        federation_id: str,
        after_version: int,
        command_id: str,
        actor_id: str,
        changes: Sequence[tuple[str, BaseModel]],
    ) -> list[Event]:
        """Wrap payloads in envelopes with consecutive stream versions"""
        now = self.time_provider.now()
        return [
            create_event(
                event_id=self.id_factory.generate(EVENT_PREFIX),
                stream_id=federation_id,
                stream_type=STREAM_TYPE,
                event_type=event_type,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor_id,
                payload=payload.model_dump(mode="json"),
                version=after_version + offset,
            )
            for offset, (event_type, payload) in enumerate(changes, start=1)
        ]

    def _issue(self, federation_id: str, kind: CapabilityKind, holder: str) -> CapabilityIssued:
        return CapabilityIssued(
            capability_id=self.id_factory.generate(CAPABILITY_PREFIX),
            kind=kind,
            federation_id=federation_id,
            holder=holder,
        )

    # Federation

    def handle_create_federation(
        self, command: CreateFederation, command_id: str
    ) -> list[Event]:
        """
        Create a federation and mint all three capabilities to the creator
        """
        federation_id = self.id_factory.generate(FEDERATION_PREFIX)
        created = FederationCreated(
            federation_id=federation_id,
            created_by=command.creator,
            created_at=self.time_provider.now(),
        )
        changes: list[tuple[str, BaseModel]] = [("FederationCreated", created)]
        for kind in CapabilityKind:
            changes.append(
                ("CapabilityIssued", self._issue(federation_id, kind, command.creator))
            )
        return self._events(federation_id, 0, command_id, command.creator, changes)

    # Statement registry

    def handle_add_statement(
        self,
        command: AddStatement,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Raises:
            WrongFederation, WrongCapability, RevokedRootAuthority
            InvalidConstraintConfiguration: allow_any with values, or unmatchable
        """
        validate_capability(cap, federation, CapabilityKind.ROOT_AUTHORITY)
        constraint = command.to_constraint()
        validate_constraint_configuration(constraint, self.policy)

        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [("StatementAdded", StatementAdded(constraint=constraint, added_by=cap.holder))],
        )

    def handle_revoke_statement(
        self,
        command: RevokeStatement,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Close the statement's timespan at valid_to_ms (default: now)

        Past timestamps are accepted and revoke retroactively.

        Raises:
            InvalidStatement: Name not in the registry
        """
        validate_capability(cap, federation, CapabilityKind.ROOT_AUTHORITY)
        federation.governance.registry.require(command.name)

        valid_to_ms = command.valid_to_ms
        if valid_to_ms is None:
            valid_to_ms = self.time_provider.now_ms()

        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [
                (
                    "StatementRevoked",
                    StatementRevoked(
                        name=command.name, valid_to_ms=valid_to_ms, revoked_by=cap.holder
                    ),
                )
            ],
        )

    def handle_remove_statement(
        self,
        command: RemoveStatement,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        validate_capability(cap, federation, CapabilityKind.ROOT_AUTHORITY)
        federation.governance.registry.require(command.name)

        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [("StatementRemoved", StatementRemoved(name=command.name, removed_by=cap.holder))],
        )

    # Root authorities

    def handle_add_root_authority(
        self,
        command: AddRootAuthority,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Append a root authority and mint it a RootAuthorityCap

        No uniqueness check: adding an existing root appends it again.
        """
        validate_capability(cap, federation, CapabilityKind.ROOT_AUTHORITY)

        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [
                (
                    "RootAuthorityAdded",
                    RootAuthorityAdded(account_id=command.account_id, added_by=cap.holder),
                ),
                (
                    "CapabilityIssued",
                    self._issue(
                        federation.federation_id,
                        CapabilityKind.ROOT_AUTHORITY,
                        command.account_id,
                    ),
                ),
            ],
        )

    def handle_revoke_root_authority(
        self,
        command: RevokeRootAuthority,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Raises:
            RootAuthorityNotFound: Account is not a current root
            CannotRevokeLastRootAuthority: Guarded by policy.min_root_authorities
        """
        validate_capability(cap, federation, CapabilityKind.ROOT_AUTHORITY)
        validate_root_revocation(federation, command.account_id, self.policy)

        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [
                (
                    "RootAuthorityRevoked",
                    RootAuthorityRevoked(account_id=command.account_id, revoked_by=cap.holder),
                )
            ],
        )

    def handle_reinstate_root_authority(
        self,
        command: ReinstateRootAuthority,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Restore a revoked root; its existing RootAuthorityCap works again

        Raises:
            RootAuthorityNotRevoked: Account is not on the revoked list
        """
        validate_capability(cap, federation, CapabilityKind.ROOT_AUTHORITY)
        validate_root_reinstatement(federation, command.account_id)

        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [
                (
                    "RootAuthorityReinstated",
                    RootAuthorityReinstated(
                        account_id=command.account_id, reinstated_by=cap.holder
                    ),
                )
            ],
        )

    # Accreditations

    def handle_create_accreditation(
        self,
        command: CreateAccreditation,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Grant constraints to a receiver

        The command class decides the kind: CreateAccreditationToAttest
        takes an AttestCap or AccreditCap and writes the attest map,
        anything else an AccreditCap and the accredit map. Non-root callers
        are checked against their accredit set either way. The matching
        capability is minted to the receiver the first time it is enrolled
        for that kind.

        Raises:
            InvalidConstraintConfiguration: Empty or malformed constraints
            InvalidStatement: Constraint names an unregistered statement
            InsufficientAccreditationToAttest / InsufficientAccreditationToAccredit
        """
        attest = isinstance(command, CreateAccreditationToAttest)
        kind = CapabilityKind.ATTEST if attest else CapabilityKind.ACCREDIT

        validate_capability(cap, federation, *_accepted_caps(kind))
        validate_grant_constraints(command.constraints, federation, self.policy)
        validate_compliance(
            federation, cap.holder, command.constraints, kind, self.time_provider.now_ms()
        )

        accreditation = Accreditation(
            accreditation_id=self.id_factory.generate(ACCREDITATION_PREFIX),
            accredited_by=cap.holder,
            constraints=command.constraints,
        )
        changes: list[tuple[str, BaseModel]] = [
            (
                ATTEST_CREATED if attest else ACCREDIT_CREATED,
                AccreditationCreated(receiver=command.receiver, accreditation=accreditation),
            )
        ]

        enrolled = federation.attest_set if attest else federation.accredit_set
        if enrolled(command.receiver) is None:
            changes.append(
                ("CapabilityIssued", self._issue(federation.federation_id, kind, command.receiver))
            )

        return self._events(
            federation.federation_id, federation.version, command_id, cap.holder, changes
        )

    def handle_revoke_accreditation(
        self,
        command: RevokeAccreditation,
        command_id: str,
        cap: Capability,
        federation: Federation,
    ) -> list[Event]:
        """
        Remove one accreditation from an entity's set

        Non-root callers must be compliant with every constraint of the
        accreditation being revoked.

        Raises:
            AccreditationNotFound: Entity or id unknown
            InsufficientAccreditationToAttest / InsufficientAccreditationToAccredit
        """
        attest = isinstance(command, RevokeAccreditationToAttest)
        kind = CapabilityKind.ATTEST if attest else CapabilityKind.ACCREDIT

        validate_capability(cap, federation, *_accepted_caps(kind))
        target = find_accreditation(
            federation, command.entity_id, command.accreditation_id, kind
        )
        validate_compliance(
            federation, cap.holder, target.constraints, kind, self.time_provider.now_ms()
        )

        revoked = AccreditationRevoked(
            entity_id=command.entity_id,
            accreditation_id=command.accreditation_id,
            revoked_by=cap.holder,
        )
        return self._events(
            federation.federation_id,
            federation.version,
            command_id,
            cap.holder,
            [(ATTEST_REVOKED if attest else ACCREDIT_REVOKED, revoked)],
        )
