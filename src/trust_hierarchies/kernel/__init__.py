"""
Kernel - Core event sourcing infrastructure

The kernel provides the machinery every federation operation builds on:
immutable events, an append-only store, injectable time and ids, and the
error hierarchy.

Fun fact: Event sourcing was inspired by accountants - they never erase
ledger entries, they add correcting entries. Revoking an accreditation
works exactly the same way here.
"""

from trust_hierarchies.kernel.errors import (
    AccreditationNotFound,
    AuthorizationError,
    CannotRevokeLastRootAuthority,
    CommandIdempotencyViolation,
    EventStoreError,
    FederationNotFound,
    HierarchiesError,
    InsufficientAccreditationToAccredit,
    InsufficientAccreditationToAttest,
    InvalidConstraintConfiguration,
    InvalidEntityInsufficientAccreditation,
    InvalidStatement,
    InvariantViolation,
    NotFoundError,
    RevokedRootAuthority,
    RootAuthorityNotFound,
    RootAuthorityNotRevoked,
    StreamVersionConflict,
    UnknownCapability,
    WrongCapability,
    WrongFederation,
)
from trust_hierarchies.kernel.events import Event, create_event
from trust_hierarchies.kernel.ids import IdFactory, generate_id
from trust_hierarchies.kernel.policy import GovernancePolicy
from trust_hierarchies.kernel.time import (
    RealTimeProvider,
    TestTimeProvider,
    TimeProvider,
    from_ms,
    to_ms,
)

__all__ = [
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    "to_ms",
    "from_ms",
    # Events
    "Event",
    "create_event",
    # Policy
    "GovernancePolicy",
    # Errors
    "HierarchiesError",
    "EventStoreError",
    "CommandIdempotencyViolation",
    "StreamVersionConflict",
    "NotFoundError",
    "FederationNotFound",
    "InvalidStatement",
    "AccreditationNotFound",
    "RootAuthorityNotFound",
    "RootAuthorityNotRevoked",
    "AuthorizationError",
    "WrongFederation",
    "WrongCapability",
    "UnknownCapability",
    "RevokedRootAuthority",
    "InsufficientAccreditationToAccredit",
    "InsufficientAccreditationToAttest",
    "InvalidEntityInsufficientAccreditation",
    "InvariantViolation",
    "InvalidConstraintConfiguration",
    "CannotRevokeLastRootAuthority",
]
