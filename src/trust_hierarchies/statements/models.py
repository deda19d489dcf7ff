"""
Statement Domain Models - the vocabulary a federation can attest about

A statement is a named, typed fact ("org.name = Acme", "age > 18"). The
registry constrains which values are acceptable for each name, and every
accreditation carries constraints of the same shape to say which values
its holder may attest or pass on.

Fun fact: Dotted statement names work like DNS labels read left to right -
a constraint on "company" covers "company.example" the way a zone covers
its subdomains!
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

MAX_NUMBER = 2**64 - 1


class StatementName(BaseModel):
    """
    Hierarchical statement name, e.g. ("org", "name")

    Accepts dotted text or a list of segments wherever a name is expected:
    StatementName.parse("org.name") == StatementName(segments=["org", "name"]).
    """

    segments: tuple[str, ...]

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"segments": data.split(".")}
        if isinstance(data, (list, tuple)):
            return {"segments": tuple(data)}
        return data

    @field_validator("segments")
    @classmethod
    def _non_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("statement name needs at least one segment")
        if any(not segment for segment in v):
            raise ValueError("statement name segments must be non-empty")
        return v

    @classmethod
    def parse(cls, text: str) -> "StatementName":
        return cls.model_validate(text)

    def is_prefix_of(self, other: "StatementName") -> bool:
        """True if self equals other or is a segment-wise prefix of it"""
        if len(self.segments) > len(other.segments):
            return False
        return other.segments[: len(self.segments)] == self.segments

    def __str__(self) -> str:
        return ".".join(self.segments)


class StatementValue(BaseModel):
    """
    A statement value: exactly one of text or an unsigned 64-bit number
    """

    text: str | None = None
    number: int | None = Field(default=None, ge=0, le=MAX_NUMBER)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _exactly_one(self) -> "StatementValue":
        if (self.text is None) == (self.number is None):
            raise ValueError("statement value must set exactly one of text or number")
        return self

    @classmethod
    def of(cls, raw: "str | int | StatementValue") -> "StatementValue":
        """Wrap a plain str or int"""
        if isinstance(raw, StatementValue):
            return raw
        if isinstance(raw, bool):
            raise ValueError("booleans are not statement values")
        if isinstance(raw, int):
            return cls(number=raw)
        return cls(text=raw)

    @property
    def is_text(self) -> bool:
        return self.text is not None

    def sort_key(self) -> tuple:
        return (0, self.text, 0) if self.text is not None else (1, "", self.number)

    def __str__(self) -> str:
        return self.text if self.text is not None else str(self.number)


class PatternKind(str, Enum):
    """Predicate kinds usable in a statement constraint"""

    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LOWER_THAN = "lower_than"

    @property
    def is_textual(self) -> bool:
        return self in (PatternKind.STARTS_WITH, PatternKind.ENDS_WITH, PatternKind.CONTAINS)


class PatternExpression(BaseModel):
    """
    Single predicate over a statement value

    Textual kinds take a str operand, numeric kinds an int operand.
    A value of the other type simply doesn't match.
    """

    kind: PatternKind
    operand: str | int

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _operand_fits_kind(self) -> "PatternExpression":
        if self.kind.is_textual:
            if not isinstance(self.operand, str):
                raise ValueError(f"{self.kind.value} needs a text operand")
        else:
            if isinstance(self.operand, bool) or not isinstance(self.operand, int):
                raise ValueError(f"{self.kind.value} needs a numeric operand")
            if not 0 <= self.operand <= MAX_NUMBER:
                raise ValueError(f"{self.kind.value} operand out of range")
        return self

    @classmethod
    def starts_with(cls, prefix: str) -> "PatternExpression":
        return cls(kind=PatternKind.STARTS_WITH, operand=prefix)

    @classmethod
    def ends_with(cls, suffix: str) -> "PatternExpression":
        return cls(kind=PatternKind.ENDS_WITH, operand=suffix)

    @classmethod
    def contains(cls, fragment: str) -> "PatternExpression":
        return cls(kind=PatternKind.CONTAINS, operand=fragment)

    @classmethod
    def greater_than(cls, bound: int) -> "PatternExpression":
        return cls(kind=PatternKind.GREATER_THAN, operand=bound)

    @classmethod
    def lower_than(cls, bound: int) -> "PatternExpression":
        return cls(kind=PatternKind.LOWER_THAN, operand=bound)

    def matches(self, value: StatementValue) -> bool:
        if self.kind.is_textual:
            if value.text is None:
                return False
            if self.kind == PatternKind.STARTS_WITH:
                return value.text.startswith(self.operand)
            if self.kind == PatternKind.ENDS_WITH:
                return value.text.endswith(self.operand)
            return self.operand in value.text

        if value.number is None:
            return False
        if self.kind == PatternKind.GREATER_THAN:
            return value.number > self.operand
        return value.number < self.operand

    def __str__(self) -> str:
        return f"{self.kind.value}({self.operand!r})"


class Timespan(BaseModel):
    """
    Validity window in milliseconds since the Unix epoch

    Both bounds are inclusive and either may be open.
    """

    valid_from_ms: int | None = None
    valid_until_ms: int | None = None

    model_config = {"frozen": True}

    def is_live(self, now_ms: int) -> bool:
        if self.valid_from_ms is not None and now_ms < self.valid_from_ms:
            return False
        if self.valid_until_ms is not None and now_ms > self.valid_until_ms:
            return False
        return True

    def contains(self, other: "Timespan") -> bool:
        """True if every instant of other also lies in this window (open bounds are unbounded)"""
        if self.valid_from_ms is not None and (
            other.valid_from_ms is None or other.valid_from_ms < self.valid_from_ms
        ):
            return False
        if self.valid_until_ms is not None and (
            other.valid_until_ms is None or other.valid_until_ms > self.valid_until_ms
        ):
            return False
        return True

    def ending_at(self, valid_until_ms: int) -> "Timespan":
        return self.model_copy(update={"valid_until_ms": valid_until_ms})


class StatementConstraint(BaseModel):
    """
    Policy for one statement name

    A value matches when the timespan is live and then, in order: allow_any
    is set, the expression matches, or the value is in allowed_values.

    Attributes:
        name: Statement this constraint covers (and everything below it)
        allowed_values: Explicitly permitted values
        expression: Optional predicate accepting further values
        allow_any: Accept every value (allowed_values must then be empty)
        timespan: When the constraint is in force
    """

    name: StatementName
    allowed_values: frozenset[StatementValue] = Field(default_factory=frozenset)
    expression: PatternExpression | None = None
    allow_any: bool = False
    timespan: Timespan = Field(default_factory=Timespan)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "name": {"segments": ["org", "name"]},
                    "allowed_values": [{"text": "Acme"}],
                    "expression": None,
                    "allow_any": False,
                    "timespan": {"valid_from_ms": None, "valid_until_ms": None},
                }
            ]
        },
    }

    @field_validator("allowed_values", mode="before")
    @classmethod
    def _wrap_values(cls, v: Any) -> Any:
        # Serialized values arrive as dicts, which pydantic converts itself
        if isinstance(v, (list, tuple, set, frozenset)):
            return [
                StatementValue.of(item) if isinstance(item, (str, int)) else item
                for item in v
            ]
        return v

    @field_serializer("allowed_values")
    def _sorted_values(self, values: frozenset[StatementValue]) -> list[dict]:
        # Stable order keeps event payloads byte-identical across runs
        return [v.model_dump() for v in sorted(values, key=StatementValue.sort_key)]

    def matches_name(self, queried: StatementName) -> bool:
        return self.name.is_prefix_of(queried)

    def matches_value(self, value: StatementValue, now_ms: int) -> bool:
        if not self.timespan.is_live(now_ms):
            return False
        if self.allow_any:
            return True
        if self.expression is not None and self.expression.matches(value):
            return True
        return value in self.allowed_values

    def is_contradictory(self) -> bool:
        """allow_any combined with explicit values"""
        return self.allow_any and bool(self.allowed_values)

    def is_unmatchable(self) -> bool:
        """No values, no expression and allow_any off: nothing could ever match"""
        return not self.allow_any and not self.allowed_values and self.expression is None

    def revoked_at(self, valid_until_ms: int) -> "StatementConstraint":
        return self.model_copy(update={"timespan": self.timespan.ending_at(valid_until_ms)})
