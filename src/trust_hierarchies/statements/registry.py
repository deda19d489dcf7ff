"""
Statement Registry - the statements a federation recognises

Root authorities register one constraint per statement name. Validation
and grants consult the registry through the prefix rule: an entry for
"company" covers "company.example".
"""

from trust_hierarchies.kernel.errors import InvalidStatement
from trust_hierarchies.statements.models import StatementConstraint, StatementName


class StatementRegistry:
    """
    Mapping StatementName -> StatementConstraint, insertion ordered

    Entries are overwritten by a later add under the same name, soft-revoked
    by closing their timespan, or removed outright.
    """

    def __init__(self) -> None:
        self.statements: dict[StatementName, StatementConstraint] = {}

    def add(self, constraint: StatementConstraint) -> None:
        self.statements[constraint.name] = constraint

    def get(self, name: StatementName) -> StatementConstraint | None:
        return self.statements.get(name)

    def require(self, name: StatementName) -> StatementConstraint:
        constraint = self.statements.get(name)
        if constraint is None:
            raise InvalidStatement(str(name))
        return constraint

    def revoke(self, name: StatementName, valid_until_ms: int) -> StatementConstraint:
        """Close the entry's validity window at valid_until_ms"""
        revoked = self.require(name).revoked_at(valid_until_ms)
        self.statements[name] = revoked
        return revoked

    def remove(self, name: StatementName) -> StatementConstraint:
        self.require(name)
        return self.statements.pop(name)

    def names(self) -> list[StatementName]:
        return list(self.statements)

    def is_registered(self, name: StatementName) -> bool:
        return name in self.statements

    def covering(self, name: StatementName) -> list[StatementConstraint]:
        """Entries whose name equals or prefixes the given name"""
        return [c for c in self.statements.values() if c.matches_name(name)]

    def is_covered(self, name: StatementName) -> bool:
        return bool(self.covering(name))

    def find_live_covering(
        self, name: StatementName, now_ms: int
    ) -> StatementConstraint | None:
        """First covering entry whose timespan is live at now_ms"""
        for constraint in self.covering(name):
            if constraint.timespan.is_live(now_ms):
                return constraint
        return None

    def __contains__(self, name: object) -> bool:
        return name in self.statements

    def __len__(self) -> int:
        return len(self.statements)

    def to_dict(self) -> dict:
        return {
            "statements": [c.model_dump(mode="json") for c in self.statements.values()]
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StatementRegistry":
        registry = cls()
        for raw in data.get("statements", []):
            registry.add(StatementConstraint.model_validate(raw))
        return registry
