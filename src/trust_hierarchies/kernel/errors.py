"""
Custom exceptions for Trust Hierarchies

Every rejected operation surfaces as one of these. The hierarchy groups
them by what went wrong (authorization, lookup, configuration, storage)
so callers can catch broadly or precisely.

Fun fact: The word "accreditation" comes from the Latin "accredere",
to believe or trust - every error here is really a statement of distrust!
"""


class HierarchiesError(Exception):
    """Base exception for all Trust Hierarchies errors"""

    pass


# Event store errors


class EventStoreError(HierarchiesError):
    """Base class for event store errors"""

    pass


class CommandIdempotencyViolation(EventStoreError):
    """
    Raised when a command_id was already used for different events

    A repeated command_id normally returns the original events; this is
    only raised when the original events cannot be recovered.
    """

    def __init__(self, command_id: str, message: str = "") -> None:
        self.command_id = command_id
        super().__init__(message or f"Command {command_id} already processed")


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Another writer advanced the federation stream - reload and retry.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


# Lookup errors


class NotFoundError(HierarchiesError):
    """Base class for lookups that found nothing"""

    pass


class FederationNotFound(NotFoundError):
    """Raised when a federation id is unknown"""

    def __init__(self, federation_id: str) -> None:
        self.federation_id = federation_id
        super().__init__(f"Federation {federation_id} not found")


class InvalidStatement(NotFoundError):
    """Raised when a statement name is not registered (or no longer live)"""

    def __init__(self, statement_name: str, reason: str = "is not registered") -> None:
        self.statement_name = statement_name
        self.reason = reason
        super().__init__(f"Statement {statement_name} {reason}")


class AccreditationNotFound(NotFoundError):
    """Raised when a revoke targets an accreditation that does not exist"""

    def __init__(self, entity_id: str, accreditation_id: str) -> None:
        self.entity_id = entity_id
        self.accreditation_id = accreditation_id
        super().__init__(
            f"Accreditation {accreditation_id} not found for entity {entity_id}"
        )


class RootAuthorityNotFound(NotFoundError):
    """Raised when revoking an account that is not a current root authority"""

    def __init__(self, federation_id: str, account_id: str) -> None:
        self.federation_id = federation_id
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} is not a root authority of federation {federation_id}"
        )


class RootAuthorityNotRevoked(NotFoundError):
    """Raised when reinstating an account that was never revoked"""

    def __init__(self, federation_id: str, account_id: str) -> None:
        self.federation_id = federation_id
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} is not a revoked root authority of "
            f"federation {federation_id}"
        )


# Authorization errors


class AuthorizationError(HierarchiesError):
    """Base class for operations the caller is not entitled to perform"""

    pass


class WrongFederation(AuthorizationError):
    """Raised when a capability is presented to a federation it is not bound to"""

    def __init__(self, capability_id: str, bound_to: str, target: str) -> None:
        self.capability_id = capability_id
        self.bound_to = bound_to
        self.target = target
        super().__init__(
            f"Capability {capability_id} is bound to federation {bound_to}, "
            f"not {target}"
        )


class WrongCapability(AuthorizationError):
    """Raised when a capability of the wrong kind is presented"""

    def __init__(self, capability_id: str, presented: str, required: str) -> None:
        self.capability_id = capability_id
        self.presented = presented
        self.required = required
        super().__init__(
            f"Capability {capability_id} is a {presented}, operation requires {required}"
        )


class UnknownCapability(AuthorizationError):
    """Raised when a presented capability does not match any token the federation minted"""

    def __init__(self, capability_id: str, federation_id: str) -> None:
        self.capability_id = capability_id
        self.federation_id = federation_id
        super().__init__(
            f"Capability {capability_id} was not minted by federation {federation_id}"
        )


class RevokedRootAuthority(AuthorizationError):
    """Raised when a RootAuthorityCap is used by an account that lost root status"""

    def __init__(self, federation_id: str, account_id: str) -> None:
        self.federation_id = federation_id
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} is no longer a root authority of "
            f"federation {federation_id}"
        )


class InsufficientAccreditationToAccredit(AuthorizationError):
    """Raised when a non-root caller lacks the accredit rights a request needs"""

    def __init__(self, entity_id: str, statement_name: str | None = None) -> None:
        self.entity_id = entity_id
        self.statement_name = statement_name
        detail = f" for statement {statement_name}" if statement_name else ""
        super().__init__(
            f"Entity {entity_id} has insufficient accreditation to accredit{detail}"
        )


class InsufficientAccreditationToAttest(AuthorizationError):
    """Raised when a non-root caller lacks the attest rights a request needs"""

    def __init__(self, entity_id: str, statement_name: str | None = None) -> None:
        self.entity_id = entity_id
        self.statement_name = statement_name
        detail = f" for statement {statement_name}" if statement_name else ""
        super().__init__(
            f"Entity {entity_id} has insufficient accreditation to attest{detail}"
        )


class InvalidEntityInsufficientAccreditation(AuthorizationError):
    """Raised by validation when an entity may not attest a (name, value) pair"""

    def __init__(self, entity_id: str, statement_name: str, value: str) -> None:
        self.entity_id = entity_id
        self.statement_name = statement_name
        self.value = value
        super().__init__(
            f"Entity {entity_id} is not accredited to attest {statement_name}={value}"
        )


# Configuration errors


class InvariantViolation(HierarchiesError):
    """
    Raised when a domain invariant would be violated

    These are requests that are malformed regardless of who sends them.
    """

    pass


class InvalidConstraintConfiguration(InvariantViolation):
    """Raised for constraints that contradict themselves or can never match"""

    def __init__(self, statement_name: str, reason: str) -> None:
        self.statement_name = statement_name
        self.reason = reason
        super().__init__(f"Invalid constraint for {statement_name}: {reason}")


class CannotRevokeLastRootAuthority(InvariantViolation):
    """Raised when a revocation would leave the federation without enough roots"""

    def __init__(self, federation_id: str, account_id: str, minimum: int) -> None:
        self.federation_id = federation_id
        self.account_id = account_id
        self.minimum = minimum
        super().__init__(
            f"Revoking {account_id} would leave federation {federation_id} with "
            f"fewer than {minimum} root authorities"
        )
