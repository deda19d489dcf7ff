"""
Hierarchies - Main façade class

This is the primary interface to the trust registry. It hides event
sourcing, projections and command handling behind plain method calls.

Example:
    >>> from trust_hierarchies import Hierarchies
    >>> h = Hierarchies("trust.db")
    >>> fed = h.create_federation("alice")
    >>> root = h.capability("alice", fed.federation_id, CapabilityKind.ROOT_AUTHORITY)
    >>> h.add_statement(fed.federation_id, root, "org.name", ["Acme"])
    >>> attest = h.capability("alice", fed.federation_id, CapabilityKind.ATTEST)
    >>> h.create_accreditation_to_attest(fed.federation_id, attest, "bob",
    ...     [StatementConstraint(name="org.name", allowed_values=["Acme"])])
    >>> h.validate_statement(fed.federation_id, "bob", "org.name", "Acme")
"""

import time
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from trust_hierarchies.accreditation.models import Accreditation, AccreditationSet
from trust_hierarchies.federation.commands import (
    AddRootAuthority,
    AddStatement,
    CreateAccreditationToAccredit,
    CreateAccreditationToAttest,
    CreateFederation,
    ReinstateRootAuthority,
    RemoveStatement,
    RevokeAccreditationToAccredit,
    RevokeAccreditationToAttest,
    RevokeRootAuthority,
    RevokeStatement,
)
from trust_hierarchies.federation.handlers import FederationCommandHandlers
from trust_hierarchies.federation.models import Capability, CapabilityKind, Federation
from trust_hierarchies.federation.projections import CapabilityLedger, FederationRegistry
from trust_hierarchies.kernel.errors import (
    FederationNotFound,
    InvalidEntityInsufficientAccreditation,
    InvalidStatement,
)
from trust_hierarchies.kernel.event_store import SQLiteEventStore
from trust_hierarchies.kernel.events import Event
from trust_hierarchies.kernel.ids import COMMAND_PREFIX, IdFactory, generate_id
from trust_hierarchies.kernel.logging import LogOperation, get_logger
from trust_hierarchies.kernel.metrics import (
    federations_total,
    projection_rebuild_duration_seconds,
    record_validation,
    track_command_duration,
)
from trust_hierarchies.kernel.policy import GovernancePolicy
from trust_hierarchies.kernel.retry import retry_projection_rebuild
from trust_hierarchies.kernel.time import RealTimeProvider, TimeProvider
from trust_hierarchies.statements.models import (
    PatternExpression,
    StatementConstraint,
    StatementName,
    StatementValue,
    Timespan,
)

logger = get_logger(__name__)

NameLike = StatementName | str | Sequence[str]
ValueLike = StatementValue | str | int


def _name(name: NameLike) -> StatementName:
    if isinstance(name, StatementName):
        return name
    return StatementName.model_validate(name)


def _values(values: Iterable[ValueLike]) -> frozenset[StatementValue]:
    return frozenset(StatementValue.of(v) for v in values)


class Hierarchies:
    """
    Trust Hierarchies main façade

    Provides a unified API for:
    - Federation creation and root authority management
    - Statement registry maintenance
    - Granting and revoking accreditations to attest and to accredit
    - Validating statements an entity wants to attest
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: GovernancePolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize the registry

        Args:
            sqlite_path: Path to SQLite database
            policy: Governance policy (defaults if None)
            time_provider: Time provider (real time if None)
            id_factory: Id strategy (UUIDv7-like if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or GovernancePolicy()
        self.time_provider = time_provider or RealTimeProvider()

        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.handlers = FederationCommandHandlers(
            self.time_provider, self.policy, id_factory
        )

        self.federation_registry = FederationRegistry()
        self.capability_ledger = CapabilityLedger()

        self._rebuild_projections()

    @retry_projection_rebuild()
    def _rebuild_projections(self) -> None:
        """Rebuild all projections from event store"""
        start = time.perf_counter()
        self.federation_registry = FederationRegistry()
        self.capability_ledger = CapabilityLedger()

        for event in self.event_store.load_all_events():
            self._apply(event)

        projection_rebuild_duration_seconds.labels(projection_name="federations").observe(
            time.perf_counter() - start
        )
        federations_total.set(len(self.federation_registry.federations))

    def refresh(self) -> None:
        """Reload state written by other processes sharing the database"""
        self._rebuild_projections()

    def _apply(self, event: Event) -> None:
        self.federation_registry.apply_event(event)
        self.capability_ledger.apply_event(event)

    def _commit(self, events: list[Event]) -> list[Event]:
        """Append one operation's events atomically, then project them"""
        if not events:
            return events
        expected_version = events[0].version - 1
        stored = self.event_store.append(events[0].stream_id, expected_version, events)
        # A replayed command id returns events that were projected already
        if stored is events:
            for event in events:
                self._apply(event)
        return stored

    def _require(self, federation_id: str) -> Federation:
        federation = self.federation_registry.get(federation_id)
        if federation is None:
            raise FederationNotFound(federation_id)
        return federation

    # Federation operations

    @track_command_duration("create_federation")
    def create_federation(self, creator: str) -> Federation:
        """
        Create a federation with creator as its first root authority

        The creator receives a RootAuthorityCap, an AttestCap and an
        AccreditCap (see capabilities_of).
        """
        with LogOperation(logger, "create_federation", creator=creator):
            events = self.handlers.handle_create_federation(
                CreateFederation(creator=creator), generate_id(COMMAND_PREFIX)
            )
            self._commit(events)
            federations_total.set(len(self.federation_registry.federations))
            return self._require(events[0].stream_id)

    def get_federation(self, federation_id: str) -> Federation:
        return self._require(federation_id)

    def list_federations(self) -> list[Federation]:
        return list(self.federation_registry.federations.values())

    # Statement registry operations

    @track_command_duration("add_statement")
    def add_statement(
        self,
        federation_id: str,
        cap: Capability,
        name: NameLike,
        allowed_values: Iterable[ValueLike] = (),
        allow_any: bool = False,
        expression: PatternExpression | None = None,
        timespan: Timespan | None = None,
    ) -> StatementConstraint:
        """
        Register (or overwrite) a statement constraint

        Returns:
            The registered constraint
        """
        statement = _name(name)
        with LogOperation(
            logger, "add_statement", federation_id=federation_id, statement=str(statement)
        ):
            federation = self._require(federation_id)
            command = AddStatement(
                federation_id=federation_id,
                name=statement,
                allowed_values=_values(allowed_values),
                allow_any=allow_any,
                expression=expression,
                timespan=timespan or Timespan(),
            )
            self._commit(
                self.handlers.handle_add_statement(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )
            return federation.governance.registry.require(statement)

    @track_command_duration("revoke_statement")
    def revoke_statement(
        self,
        federation_id: str,
        cap: Capability,
        name: NameLike,
        valid_to_ms: int | None = None,
    ) -> StatementConstraint:
        """
        Close a statement's validity window at valid_to_ms (now if omitted)
        """
        statement = _name(name)
        with LogOperation(
            logger,
            "revoke_statement",
            federation_id=federation_id,
            statement=str(statement),
            valid_to_ms=valid_to_ms,
        ):
            federation = self._require(federation_id)
            command = RevokeStatement(
                federation_id=federation_id, name=statement, valid_to_ms=valid_to_ms
            )
            self._commit(
                self.handlers.handle_revoke_statement(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )
            return federation.governance.registry.require(statement)

    @track_command_duration("remove_statement")
    def remove_statement(self, federation_id: str, cap: Capability, name: NameLike) -> None:
        statement = _name(name)
        with LogOperation(
            logger, "remove_statement", federation_id=federation_id, statement=str(statement)
        ):
            federation = self._require(federation_id)
            command = RemoveStatement(federation_id=federation_id, name=statement)
            self._commit(
                self.handlers.handle_remove_statement(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )

    # Root authority operations

    @track_command_duration("add_root_authority")
    def add_root_authority(
        self, federation_id: str, cap: Capability, account_id: str
    ) -> Capability:
        """
        Make account_id a root authority

        Returns:
            The RootAuthorityCap minted to the new root
        """
        with LogOperation(
            logger, "add_root_authority", federation_id=federation_id, account_id=account_id
        ):
            federation = self._require(federation_id)
            command = AddRootAuthority(federation_id=federation_id, account_id=account_id)
            events = self._commit(
                self.handlers.handle_add_root_authority(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )
            issued = [e for e in events if e.event_type == "CapabilityIssued"][-1]
            return Capability.model_validate(issued.payload)

    @track_command_duration("revoke_root_authority")
    def revoke_root_authority(
        self, federation_id: str, cap: Capability, account_id: str
    ) -> None:
        with LogOperation(
            logger, "revoke_root_authority", federation_id=federation_id, account_id=account_id
        ):
            federation = self._require(federation_id)
            command = RevokeRootAuthority(federation_id=federation_id, account_id=account_id)
            self._commit(
                self.handlers.handle_revoke_root_authority(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )

    @track_command_duration("reinstate_root_authority")
    def reinstate_root_authority(
        self, federation_id: str, cap: Capability, account_id: str
    ) -> None:
        with LogOperation(
            logger,
            "reinstate_root_authority",
            federation_id=federation_id,
            account_id=account_id,
        ):
            federation = self._require(federation_id)
            command = ReinstateRootAuthority(
                federation_id=federation_id, account_id=account_id
            )
            self._commit(
                self.handlers.handle_reinstate_root_authority(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )

    def is_root_authority(self, federation_id: str, account_id: str) -> bool:
        return self._require(federation_id).is_root_authority(account_id)

    # Accreditation operations

    def _grant(
        self,
        operation: str,
        command: CreateAccreditationToAttest | CreateAccreditationToAccredit,
        cap: Capability,
    ) -> Accreditation:
        with LogOperation(
            logger,
            operation,
            federation_id=command.federation_id,
            receiver=command.receiver,
            statements=[str(c.name) for c in command.constraints],
        ):
            federation = self._require(command.federation_id)
            events = self._commit(
                self.handlers.handle_create_accreditation(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )
            return Accreditation.model_validate(events[0].payload["accreditation"])

    @track_command_duration("create_accreditation_to_attest")
    def create_accreditation_to_attest(
        self,
        federation_id: str,
        cap: Capability,
        receiver: str,
        constraints: Sequence[StatementConstraint],
    ) -> Accreditation:
        """
        Grant receiver the right to attest the given constraints

        Returns:
            The new Accreditation (its id is needed to revoke it)
        """
        command = CreateAccreditationToAttest(
            federation_id=federation_id, receiver=receiver, constraints=list(constraints)
        )
        return self._grant("create_accreditation_to_attest", command, cap)

    @track_command_duration("create_accreditation_to_accredit")
    def create_accreditation_to_accredit(
        self,
        federation_id: str,
        cap: Capability,
        receiver: str,
        constraints: Sequence[StatementConstraint],
    ) -> Accreditation:
        """Grant receiver the right to accredit others for the given constraints"""
        command = CreateAccreditationToAccredit(
            federation_id=federation_id, receiver=receiver, constraints=list(constraints)
        )
        return self._grant("create_accreditation_to_accredit", command, cap)

    def _revoke(
        self,
        operation: str,
        command: RevokeAccreditationToAttest | RevokeAccreditationToAccredit,
        cap: Capability,
    ) -> None:
        with LogOperation(
            logger,
            operation,
            federation_id=command.federation_id,
            entity_id=command.entity_id,
            accreditation_id=command.accreditation_id,
        ):
            federation = self._require(command.federation_id)
            self._commit(
                self.handlers.handle_revoke_accreditation(
                    command, generate_id(COMMAND_PREFIX), cap, federation
                )
            )

    @track_command_duration("revoke_accreditation_to_attest")
    def revoke_accreditation_to_attest(
        self, federation_id: str, cap: Capability, entity_id: str, accreditation_id: str
    ) -> None:
        command = RevokeAccreditationToAttest(
            federation_id=federation_id, entity_id=entity_id, accreditation_id=accreditation_id
        )
        self._revoke("revoke_accreditation_to_attest", command, cap)

    @track_command_duration("revoke_accreditation_to_accredit")
    def revoke_accreditation_to_accredit(
        self, federation_id: str, cap: Capability, entity_id: str, accreditation_id: str
    ) -> None:
        command = RevokeAccreditationToAccredit(
            federation_id=federation_id, entity_id=entity_id, accreditation_id=accreditation_id
        )
        self._revoke("revoke_accreditation_to_accredit", command, cap)

    # Queries

    def get_statement_names(self, federation_id: str) -> list[StatementName]:
        return self._require(federation_id).governance.registry.names()

    def is_statement_registered(self, federation_id: str, name: NameLike) -> bool:
        return self._require(federation_id).governance.registry.is_registered(_name(name))

    def get_statement(self, federation_id: str, name: NameLike) -> StatementConstraint | None:
        return self._require(federation_id).governance.registry.get(_name(name))

    def get_accreditations_to_attest(
        self, federation_id: str, entity_id: str
    ) -> AccreditationSet:
        """Entity's attest set (empty if the entity was never enrolled)"""
        held = self._require(federation_id).attest_set(entity_id)
        return held if held is not None else AccreditationSet()

    def get_accreditations_to_accredit(
        self, federation_id: str, entity_id: str
    ) -> AccreditationSet:
        """Entity's accredit set (empty if the entity was never enrolled)"""
        held = self._require(federation_id).accredit_set(entity_id)
        return held if held is not None else AccreditationSet()

    def is_attester(self, federation_id: str, entity_id: str) -> bool:
        """True while the entity holds at least one accreditation to attest"""
        return not self.get_accreditations_to_attest(federation_id, entity_id).is_empty()

    def is_accreditor(self, federation_id: str, entity_id: str) -> bool:
        """True while the entity holds at least one accreditation to accredit"""
        return not self.get_accreditations_to_accredit(federation_id, entity_id).is_empty()

    def capabilities_of(self, federation_id: str, holder: str) -> list[Capability]:
        """Tokens minted to holder for this federation"""
        self._require(federation_id)
        return self.capability_ledger.held_by(federation_id, holder)

    def capability(
        self, holder: str, federation_id: str, kind: CapabilityKind
    ) -> Capability | None:
        """The first token of the given kind minted to holder, if any"""
        return self.capability_ledger.find(federation_id, holder, kind)

    # Validation

    def validate_statement(
        self,
        federation_id: str,
        entity_id: str,
        name: NameLike,
        value: ValueLike,
        now_ms: int | None = None,
    ) -> None:
        """
        Check that entity_id may attest name=value

        The name must be covered by a registry entry live at now_ms, and the
        entity's attest set must allow the exact pair.

        Raises:
            InvalidStatement: Name unknown or its registry entry not live
            InvalidEntityInsufficientAccreditation: Pair not allowed
        """
        federation = self._require(federation_id)
        statement = _name(name)
        statement_value = StatementValue.of(value)
        if now_ms is None:
            now_ms = self.time_provider.now_ms()

        if federation.governance.registry.find_live_covering(statement, now_ms) is None:
            record_validation("invalid_statement")
            raise InvalidStatement(str(statement), "is not registered or no longer valid")

        attest = self.get_accreditations_to_attest(federation_id, entity_id)
        if not attest.is_allowed(statement, statement_value, now_ms):
            record_validation("not_accredited")
            raise InvalidEntityInsufficientAccreditation(
                entity_id, str(statement), str(statement_value)
            )

        record_validation("valid")

    def validate_statements(
        self,
        federation_id: str,
        entity_id: str,
        statements: Mapping[Any, ValueLike],
        now_ms: int | None = None,
    ) -> None:
        """
        Validate several name=value pairs; the first failure is raised

        Keys may be StatementName objects or dotted strings.
        """
        if now_ms is None:
            now_ms = self.time_provider.now_ms()
        with LogOperation(
            logger,
            "validate_statements",
            federation_id=federation_id,
            entity_id=entity_id,
            count=len(statements),
        ):
            for name, value in statements.items():
                self.validate_statement(federation_id, entity_id, name, value, now_ms)

    # Diagnostics

    def stats(self) -> dict[str, int]:
        return {
            "federations": len(self.federation_registry.federations),
            "events": self.event_store.count_events(),
            "capabilities": len(self.capability_ledger.capabilities),
        }
