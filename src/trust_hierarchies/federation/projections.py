"""
Federation Projections - Read models built from events

Projections are rebuilt from the event log, making them disposable.
FederationRegistry holds every Federation's current state; CapabilityLedger
remembers which tokens were minted to whom, standing in for the wallets
that would hold them.

Fun fact: Projections are like "materialized views" in traditional
databases, but they can be thrown away and replayed at any time!
"""

from typing import Any

from trust_hierarchies.accreditation.models import Accreditation, AccreditationSet
from trust_hierarchies.federation.events import (
    ACCREDIT_CREATED,
    ACCREDIT_REVOKED,
    ATTEST_CREATED,
    ATTEST_REVOKED,
)
from trust_hierarchies.federation.models import (
    Capability,
    CapabilityKind,
    Federation,
    RootAuthority,
)
from trust_hierarchies.kernel.events import Event
from trust_hierarchies.statements.models import StatementConstraint, StatementName


class FederationRegistry:
    """
    Projection: every federation by id

    Each event bumps the owning federation's version to the event's
    stream version, which the handlers use for optimistic locking.
    """

    def __init__(self) -> None:
        self.federations: dict[str, Federation] = {}

    def apply_event(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if event.event_type == "FederationCreated":
            federation = Federation(
                event.payload["federation_id"], event.payload["created_by"]
            )
            federation.root_authorities.append(
                RootAuthority(account_id=event.payload["created_by"])
            )
            federation.governance.enroll(event.payload["created_by"])
            federation.version = event.version
            self.federations[federation.federation_id] = federation
            return

        federation = self.federations.get(event.stream_id)
        if federation is None:
            return

        governance = federation.governance
        payload = event.payload

        if event.event_type == "StatementAdded":
            governance.registry.add(StatementConstraint.model_validate(payload["constraint"]))

        elif event.event_type == "StatementRevoked":
            governance.registry.revoke(
                StatementName.model_validate(payload["name"]), payload["valid_to_ms"]
            )

        elif event.event_type == "StatementRemoved":
            governance.registry.remove(StatementName.model_validate(payload["name"]))

        elif event.event_type == "RootAuthorityAdded":
            account_id = payload["account_id"]
            federation.root_authorities.append(RootAuthority(account_id=account_id))
            if account_id in federation.revoked_root_authorities:
                federation.revoked_root_authorities.remove(account_id)

        elif event.event_type == "RootAuthorityRevoked":
            account_id = payload["account_id"]
            federation.root_authorities = [
                root for root in federation.root_authorities if root.account_id != account_id
            ]
            if account_id not in federation.revoked_root_authorities:
                federation.revoked_root_authorities.append(account_id)

        elif event.event_type == "RootAuthorityReinstated":
            account_id = payload["account_id"]
            federation.revoked_root_authorities.remove(account_id)
            federation.root_authorities.append(RootAuthority(account_id=account_id))

        elif event.event_type in (ATTEST_CREATED, ACCREDIT_CREATED):
            target = (
                governance.accreditations_to_attest
                if event.event_type == ATTEST_CREATED
                else governance.accreditations_to_accredit
            )
            target.setdefault(payload["receiver"], AccreditationSet()).add(
                Accreditation.model_validate(payload["accreditation"])
            )

        elif event.event_type == "CapabilityIssued":
            cap = Capability.model_validate(payload)
            federation.capabilities[cap.capability_id] = cap

        elif event.event_type in (ATTEST_REVOKED, ACCREDIT_REVOKED):
            target = (
                governance.accreditations_to_attest
                if event.event_type == ATTEST_REVOKED
                else governance.accreditations_to_accredit
            )
            target[payload["entity_id"]].remove_by_id(
                payload["accreditation_id"], payload["entity_id"]
            )

        federation.version = event.version

    def get(self, federation_id: str) -> Federation | None:
        """Get federation by ID"""
        return self.federations.get(federation_id)

    def list_ids(self) -> list[str]:
        return list(self.federations)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for storage"""
        return {"federations": {fid: f.to_dict() for fid, f in self.federations.items()}}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FederationRegistry":
        """Deserialize from dict"""
        registry = cls()
        registry.federations = {
            fid: Federation.from_dict(raw) for fid, raw in data.get("federations", {}).items()
        }
        return registry


class CapabilityLedger:
    """
    Projection: every capability minted, by id

    Tokens are never destroyed; a revoked root's token stays here and is
    refused at use time instead.
    """

    def __init__(self) -> None:
        self.capabilities: dict[str, Capability] = {}

    def apply_event(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if event.event_type == "CapabilityIssued":
            capability = Capability.model_validate(event.payload)
            self.capabilities[capability.capability_id] = capability

    def get(self, capability_id: str) -> Capability | None:
        return self.capabilities.get(capability_id)

    def held_by(self, federation_id: str, holder: str) -> list[Capability]:
        """Tokens minted to holder for one federation, in minting order"""
        return [
            cap
            for cap in self.capabilities.values()
            if cap.federation_id == federation_id and cap.holder == holder
        ]

    def find(
        self, federation_id: str, holder: str, kind: CapabilityKind
    ) -> Capability | None:
        for cap in self.held_by(federation_id, holder):
            if cap.kind == kind:
                return cap
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for storage"""
        return {
            "capabilities": [c.model_dump(mode="json") for c in self.capabilities.values()]
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CapabilityLedger":
        """Deserialize from dict"""
        ledger = cls()
        for raw in data.get("capabilities", []):
            capability = Capability.model_validate(raw)
            ledger.capabilities[capability.capability_id] = capability
        return ledger
