"""
Federation Events - Domain events for trust domains

Events are immutable facts about what happened. One stream per
federation; replaying it reproduces the federation exactly.

Fun fact: In event sourcing, events are named in past tense because
they represent facts that already happened, not intentions!
"""

from datetime import datetime

from pydantic import BaseModel

from trust_hierarchies.accreditation.models import Accreditation
from trust_hierarchies.federation.models import CapabilityKind
from trust_hierarchies.statements.models import StatementConstraint, StatementName


class FederationCreated(BaseModel):
    """A federation was created; its creator is the first root authority"""

    federation_id: str
    created_by: str
    created_at: datetime


class CapabilityIssued(BaseModel):
    """A capability token was minted to an account"""

    capability_id: str
    kind: CapabilityKind
    federation_id: str
    holder: str


# Statement registry events


class StatementAdded(BaseModel):
    """A statement constraint was registered (or overwritten)"""

    constraint: StatementConstraint
    added_by: str


class StatementRevoked(BaseModel):
    """A statement's validity window was closed at valid_to_ms"""

    name: StatementName
    valid_to_ms: int
    revoked_by: str


class StatementRemoved(BaseModel):
    """A statement was deleted from the registry"""

    name: StatementName
    removed_by: str


# Root authority events


class RootAuthorityAdded(BaseModel):
    account_id: str
    added_by: str


class RootAuthorityRevoked(BaseModel):
    account_id: str
    revoked_by: str


class RootAuthorityReinstated(BaseModel):
    account_id: str
    reinstated_by: str


# Accreditation events


class AccreditationCreated(BaseModel):
    """
    An accreditation was appended to the receiver's set

    Recorded as AccreditationToAttestCreated or
    AccreditationToAccreditCreated depending on the map written.
    """

    receiver: str
    accreditation: Accreditation


class AccreditationRevoked(BaseModel):
    """
    An accreditation was removed from an entity's set

    Recorded as AccreditationToAttestRevoked or
    AccreditationToAccreditRevoked.
    """

    entity_id: str
    accreditation_id: str
    revoked_by: str


ATTEST_CREATED = "AccreditationToAttestCreated"
ACCREDIT_CREATED = "AccreditationToAccreditCreated"
ATTEST_REVOKED = "AccreditationToAttestRevoked"
ACCREDIT_REVOKED = "AccreditationToAccreditRevoked"
