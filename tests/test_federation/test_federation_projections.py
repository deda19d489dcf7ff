"""
Tests for federation projections

Projections must be pure functions of the event log: replaying the same
events always yields the same state.
"""

from datetime import datetime, timezone

from tests.helpers import constraint
from trust_hierarchies.federation.commands import (
    AddRootAuthority,
    AddStatement,
    CreateAccreditationToAttest,
    CreateFederation,
    RevokeRootAuthority,
)
from trust_hierarchies.federation.handlers import FederationCommandHandlers
from trust_hierarchies.federation.models import CapabilityKind
from trust_hierarchies.federation.projections import CapabilityLedger, FederationRegistry
from trust_hierarchies.kernel.events import Event, create_event
from trust_hierarchies.statements.models import StatementName


def build_log(handlers: FederationCommandHandlers) -> list[Event]:
    """A small but complete history, built through the handlers"""
    registry = FederationRegistry()
    ledger = CapabilityLedger()
    log: list[Event] = []

    def record(events: list[Event]) -> None:
        for event in events:
            registry.apply_event(event)
            ledger.apply_event(event)
        log.extend(events)

    record(handlers.handle_create_federation(CreateFederation(creator="alice"), "cmd-1"))
    fed = registry.get(log[0].stream_id)
    root = ledger.find(fed.federation_id, "alice", CapabilityKind.ROOT_AUTHORITY)
    attest = ledger.find(fed.federation_id, "alice", CapabilityKind.ATTEST)

    record(
        handlers.handle_add_statement(
            AddStatement(
                federation_id=fed.federation_id,
                name=StatementName.parse("org.name"),
                allowed_values=frozenset(),
                allow_any=True,
            ),
            "cmd-2",
            root,
            fed,
        )
    )
    record(
        handlers.handle_add_root_authority(
            AddRootAuthority(federation_id=fed.federation_id, account_id="bob"),
            "cmd-3",
            root,
            fed,
        )
    )
    record(
        handlers.handle_create_accreditation(
            CreateAccreditationToAttest(
                federation_id=fed.federation_id,
                receiver="carol",
                constraints=[constraint("org.name", "Acme")],
            ),
            "cmd-4",
            attest,
            fed,
        )
    )
    record(
        handlers.handle_revoke_root_authority(
            RevokeRootAuthority(federation_id=fed.federation_id, account_id="bob"),
            "cmd-5",
            root,
            fed,
        )
    )
    return log


def replay(log: list[Event]) -> tuple[FederationRegistry, CapabilityLedger]:
    registry = FederationRegistry()
    ledger = CapabilityLedger()
    for event in log:
        registry.apply_event(event)
        ledger.apply_event(event)
    return registry, ledger


def test_replay_is_deterministic(handlers: FederationCommandHandlers) -> None:
    log = build_log(handlers)

    first, first_ledger = replay(log)
    second, second_ledger = replay(log)

    assert first.to_dict() == second.to_dict()
    assert first_ledger.to_dict() == second_ledger.to_dict()


def test_replayed_state(handlers: FederationCommandHandlers) -> None:
    log = build_log(handlers)
    registry, ledger = replay(log)

    fed = registry.get(log[0].stream_id)
    assert fed.version == log[-1].version == len(log)
    assert fed.distinct_root_ids() == ["alice"]
    assert fed.revoked_root_authorities == ["bob"]
    assert [str(n) for n in fed.governance.registry.names()] == ["org.name"]
    assert len(fed.attest_set("carol")) == 1

    # alice x3, bob's root cap, carol's attest cap
    assert len(ledger.capabilities) == 5
    assert ledger.find(fed.federation_id, "bob", CapabilityKind.ROOT_AUTHORITY) is not None

    # The federation keeps its own record of what it minted
    assert fed.capabilities == {
        cap.capability_id: cap for cap in ledger.capabilities.values()
    }
    assert all(fed.minted(cap) for cap in ledger.capabilities.values())


def test_registry_serialization_roundtrip(handlers: FederationCommandHandlers) -> None:
    registry, _ = replay(build_log(handlers))
    restored = FederationRegistry.from_dict(registry.to_dict())

    assert restored.to_dict() == registry.to_dict()
    assert restored.list_ids() == registry.list_ids()


def test_ledger_serialization_roundtrip(handlers: FederationCommandHandlers) -> None:
    _, ledger = replay(build_log(handlers))
    restored = CapabilityLedger.from_dict(ledger.to_dict())

    assert restored.capabilities == ledger.capabilities


def test_events_for_unknown_federation_are_ignored() -> None:
    registry = FederationRegistry()
    registry.apply_event(
        create_event(
            event_id="evt-1",
            stream_id="fed-missing",
            stream_type="federation",
            event_type="RootAuthorityAdded",
            occurred_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
            command_id="cmd-1",
            payload={"account_id": "bob", "added_by": "alice"},
            version=5,
        )
    )

    assert registry.get("fed-missing") is None
    assert registry.list_ids() == []


def test_held_by_lists_tokens_in_minting_order(handlers: FederationCommandHandlers) -> None:
    log = build_log(handlers)
    _, ledger = replay(log)

    kinds = [c.kind for c in ledger.held_by(log[0].stream_id, "alice")]
    assert kinds == [
        CapabilityKind.ROOT_AUTHORITY,
        CapabilityKind.ATTEST,
        CapabilityKind.ACCREDIT,
    ]
    assert ledger.held_by("fed-other", "alice") == []
