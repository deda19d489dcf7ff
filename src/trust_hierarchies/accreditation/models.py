"""
Accreditation Models - delegated rights and how they are evaluated

An Accreditation is a grant of statement constraints to one entity. The
entity's AccreditationSet is every grant of one kind it holds; whether an
attestation or a further delegation is permitted is decided by evaluating
the set.

Fun fact: Academic accreditation bodies are themselves accredited by
higher bodies - the same recursion an "accreditation to accredit" models!
"""

from collections.abc import Iterable, Iterator, Mapping

from pydantic import BaseModel, Field, field_validator

from trust_hierarchies.kernel.errors import AccreditationNotFound
from trust_hierarchies.statements.models import (
    StatementConstraint,
    StatementName,
    StatementValue,
)


class Accreditation(BaseModel):
    """
    Immutable grant of constraints to one entity

    Attributes:
        accreditation_id: Unique identifier
        accredited_by: Account that issued the grant
        constraints: One constraint per statement name (last one wins)
    """

    accreditation_id: str
    accredited_by: str
    constraints: list[StatementConstraint] = Field(default_factory=list)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "accreditation_id": "acc-01908e9a-3b87-7000-8000-0000000000bb",
                    "accredited_by": "alice",
                    "constraints": [
                        {
                            "name": {"segments": ["org", "name"]},
                            "allowed_values": [{"text": "Acme"}],
                        }
                    ],
                }
            ]
        },
    }

    @field_validator("constraints")
    @classmethod
    def _last_write_wins(cls, v: list[StatementConstraint]) -> list[StatementConstraint]:
        by_name: dict[StatementName, StatementConstraint] = {}
        for constraint in v:
            by_name[constraint.name] = constraint
        return list(by_name.values())

    def get(self, name: StatementName) -> StatementConstraint | None:
        for constraint in self.constraints:
            if constraint.name == name:
                return constraint
        return None

    def statement_names(self) -> list[StatementName]:
        return [c.name for c in self.constraints]


class AccreditationSet:
    """
    Ordered accreditations of one kind held by one entity

    Evaluation only ever looks at constraints keyed under exactly the
    queried name; the prefix rule is a registry concern.
    """

    def __init__(self, accreditations: Iterable[Accreditation] = ()) -> None:
        self.accreditations: list[Accreditation] = list(accreditations)

    def __len__(self) -> int:
        return len(self.accreditations)

    def __iter__(self) -> Iterator[Accreditation]:
        return iter(self.accreditations)

    def __repr__(self) -> str:
        ids = [a.accreditation_id for a in self.accreditations]
        return f"AccreditationSet({ids!r})"

    def is_empty(self) -> bool:
        return not self.accreditations

    def add(self, accreditation: Accreditation) -> None:
        self.accreditations.append(accreditation)

    def find_by_id(self, accreditation_id: str) -> Accreditation | None:
        for accreditation in self.accreditations:
            if accreditation.accreditation_id == accreditation_id:
                return accreditation
        return None

    def remove_by_id(self, accreditation_id: str, entity_id: str = "") -> Accreditation:
        for index, accreditation in enumerate(self.accreditations):
            if accreditation.accreditation_id == accreditation_id:
                return self.accreditations.pop(index)
        raise AccreditationNotFound(entity_id, accreditation_id)

    def _live_entries(self, name: StatementName, now_ms: int) -> list[StatementConstraint]:
        entries = []
        for accreditation in self.accreditations:
            constraint = accreditation.get(name)
            if constraint is not None and constraint.timespan.is_live(now_ms):
                entries.append(constraint)
        return entries

    def is_allowed(self, name: StatementName, value: StatementValue, now_ms: int) -> bool:
        """True if some accreditation's constraint for name accepts value"""
        return any(
            constraint.matches_value(value, now_ms)
            for constraint in self._live_entries(name, now_ms)
        )

    def are_values_allowed(
        self, values: Mapping[StatementName, StatementValue], now_ms: int
    ) -> bool:
        return all(self.is_allowed(name, value, now_ms) for name, value in values.items())

    def is_compliant(self, requested: StatementConstraint, now_ms: int) -> bool:
        """
        True if this set covers everything the requested constraint grants

        Every requested value must be accepted by a live entry under the
        same name. Requests that grant without listing values are checked
        against the entries' own breadth: allow_any needs an allow_any
        entry, an expression needs an allow_any entry or the same expression.
        Only entries whose timespan contains the requested one count, so a
        grant never outlives the rights it was derived from.
        """
        entries = [
            e
            for e in self._live_entries(requested.name, now_ms)
            if e.timespan.contains(requested.timespan)
        ]
        if not entries:
            return False

        if requested.allow_any and not any(e.allow_any for e in entries):
            return False

        if requested.expression is not None and not any(
            e.allow_any or e.expression == requested.expression for e in entries
        ):
            return False

        unmatched = len(requested.allowed_values)
        for value in requested.allowed_values:
            if any(e.matches_value(value, now_ms) for e in entries):
                unmatched -= 1
        return unmatched == 0

    def are_constraints_compliant(
        self, requested: Iterable[StatementConstraint], now_ms: int
    ) -> bool:
        return all(self.is_compliant(constraint, now_ms) for constraint in requested)

    def first_non_compliant(
        self, requested: Iterable[StatementConstraint], now_ms: int
    ) -> StatementConstraint | None:
        for constraint in requested:
            if not self.is_compliant(constraint, now_ms):
                return constraint
        return None

    def to_dict(self) -> dict:
        return {
            "accreditations": [a.model_dump(mode="json") for a in self.accreditations]
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccreditationSet":
        return cls(Accreditation.model_validate(raw) for raw in data.get("accreditations", []))
