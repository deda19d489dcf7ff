"""
Federation Domain Models - trust domains and the tokens that act on them

A Federation is one trust domain: its root authorities plus its Governance
(statement registry and the two accreditation maps). Capabilities are the
bearer tokens minted to accounts; every privileged call presents one.

Fun fact: Capability-based security goes back to Dennis and Van Horn's 1966
paper - holding the token *is* the permission, no access list consulted!
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel

from trust_hierarchies.accreditation.models import AccreditationSet
from trust_hierarchies.statements.registry import StatementRegistry


class CapabilityKind(str, Enum):
    """
    Kinds of bearer token a federation mints

    ROOT_AUTHORITY manages the registry and the set of roots. ATTEST grants
    and revokes attestation rights; ACCREDIT grants and revokes rights of
    either kind.
    """

    ROOT_AUTHORITY = "RootAuthorityCap"
    ATTEST = "AttestCap"
    ACCREDIT = "AccreditCap"


class Capability(BaseModel):
    """
    Bearer token bound to exactly one federation

    Attributes:
        capability_id: Unique identifier
        kind: What the token allows
        federation_id: Federation the token is valid for
        holder: Account the token was minted to (the calling identity)
    """

    capability_id: str
    kind: CapabilityKind
    federation_id: str
    holder: str

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "capability_id": "cap-01908e9a-3b87-7000-8000-0000000000cc",
                    "kind": "RootAuthorityCap",
                    "federation_id": "fed-01908e9a-3b87-7000-8000-0000000000aa",
                    "holder": "alice",
                }
            ]
        },
    }


class RootAuthority(BaseModel):
    """An account exempt from accreditation checks inside its federation"""

    account_id: str

    model_config = {"frozen": True}


class Governance:
    """
    Registry plus the attest and accredit maps of one federation

    Presence of an entity in a map means it is enrolled for that kind
    (and was minted the matching capability), even if its set is empty.
    """

    def __init__(self) -> None:
        self.registry = StatementRegistry()
        self.accreditations_to_attest: dict[str, AccreditationSet] = {}
        self.accreditations_to_accredit: dict[str, AccreditationSet] = {}

    def enroll(self, entity_id: str) -> None:
        self.accreditations_to_attest.setdefault(entity_id, AccreditationSet())
        self.accreditations_to_accredit.setdefault(entity_id, AccreditationSet())

    def to_dict(self) -> dict[str, Any]:
        return {
            "registry": self.registry.to_dict(),
            "accreditations_to_attest": {
                entity: s.to_dict() for entity, s in self.accreditations_to_attest.items()
            },
            "accreditations_to_accredit": {
                entity: s.to_dict() for entity, s in self.accreditations_to_accredit.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Governance":
        governance = cls()
        governance.registry = StatementRegistry.from_dict(data.get("registry", {}))
        governance.accreditations_to_attest = {
            entity: AccreditationSet.from_dict(raw)
            for entity, raw in data.get("accreditations_to_attest", {}).items()
        }
        governance.accreditations_to_accredit = {
            entity: AccreditationSet.from_dict(raw)
            for entity, raw in data.get("accreditations_to_accredit", {}).items()
        }
        return governance


class Federation:
    """
    A trust domain

    Attributes:
        federation_id: Unique identifier (also the event stream id)
        created_by: Account that created the federation
        governance: Registry and accreditation maps
        root_authorities: Current roots, duplicates allowed
        revoked_root_authorities: Accounts whose root status was revoked
        capabilities: Every token this federation minted, by id
        version: Event stream version this state reflects
    """

    def __init__(self, federation_id: str, created_by: str) -> None:
        self.federation_id = federation_id
        self.created_by = created_by
        self.governance = Governance()
        self.root_authorities: list[RootAuthority] = []
        self.revoked_root_authorities: list[str] = []
        self.capabilities: dict[str, Capability] = {}
        self.version = 0

    def minted(self, cap: Capability) -> bool:
        """True only for a token identical to one this federation issued"""
        return self.capabilities.get(cap.capability_id) == cap

    def is_root_authority(self, account_id: str) -> bool:
        return any(root.account_id == account_id for root in self.root_authorities)

    def is_revoked_root_authority(self, account_id: str) -> bool:
        return account_id in self.revoked_root_authorities

    def distinct_root_ids(self) -> list[str]:
        return list(dict.fromkeys(root.account_id for root in self.root_authorities))

    def attest_set(self, entity_id: str) -> AccreditationSet | None:
        return self.governance.accreditations_to_attest.get(entity_id)

    def accredit_set(self, entity_id: str) -> AccreditationSet | None:
        return self.governance.accreditations_to_accredit.get(entity_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "federation_id": self.federation_id,
            "created_by": self.created_by,
            "governance": self.governance.to_dict(),
            "root_authorities": [r.account_id for r in self.root_authorities],
            "revoked_root_authorities": list(self.revoked_root_authorities),
            "capabilities": [c.model_dump(mode="json") for c in self.capabilities.values()],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Federation":
        federation = cls(data["federation_id"], data["created_by"])
        federation.governance = Governance.from_dict(data.get("governance", {}))
        federation.root_authorities = [
            RootAuthority(account_id=a) for a in data.get("root_authorities", [])
        ]
        federation.revoked_root_authorities = list(data.get("revoked_root_authorities", []))
        for raw in data.get("capabilities", []):
            cap = Capability.model_validate(raw)
            federation.capabilities[cap.capability_id] = cap
        federation.version = data.get("version", 0)
        return federation
