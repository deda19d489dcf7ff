"""
Trust Hierarchies CLI

Command-line interface for the trust registry. The acting account is given
with --caller; the CLI looks up the capability minted to it, standing in
for the wallet that would hold the token.

Whoever can run this CLI against a database can act as any account in it:
--caller is taken on trust, and only the registry's own checks (minted
tokens, root status, accreditation) apply after that. Keep the database
where only operators entitled to every account can reach it.

Usage:
    hierarchies init --db trust.db
    hierarchies federation create --creator alice
    hierarchies statement add --federation <id> --caller alice --name org.name --value Acme
    hierarchies accredit attest --federation <id> --caller alice --receiver bob \\
        --name org.name --value Acme
    hierarchies validate --federation <id> --entity bob --name org.name --value Acme
"""

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from trust_hierarchies.federation.models import Capability, CapabilityKind
from trust_hierarchies.health_server import initialize_health_server, run_health_server
from trust_hierarchies.hierarchies import Hierarchies
from trust_hierarchies.kernel.errors import HierarchiesError
from trust_hierarchies.kernel.logging import LOG_LEVEL_VAR, configure_logging
from trust_hierarchies.kernel.metrics import start_metrics_server
from trust_hierarchies.statements.models import (
    PatternExpression,
    StatementConstraint,
    StatementValue,
    Timespan,
)

# Operation logs only at WARNING and above unless asked for, so JSON output stays clean
configure_logging(log_level=os.getenv(LOG_LEVEL_VAR, "WARNING"))

app = typer.Typer(
    name="hierarchies",
    help=(
        "Trust Hierarchies - hierarchical accreditation registry. "
        "--caller is not authenticated: anyone who can run this against a "
        "database may act as any account in it."
    ),
    add_completion=False,
)

# Sub-apps
federation_app = typer.Typer(help="Federation commands")
statement_app = typer.Typer(help="Statement registry commands")
root_app = typer.Typer(help="Root authority commands")
accredit_app = typer.Typer(help="Accreditation commands")

app.add_typer(federation_app, name="federation")
app.add_typer(statement_app, name="statement")
app.add_typer(root_app, name="root")
app.add_typer(accredit_app, name="accredit")

DB_ENV_VAR = "HIERARCHIES_DB"
DEFAULT_DB = Path(".hierarchies.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Database path", envvar=DB_ENV_VAR),
]
FederationOption = Annotated[str, typer.Option("--federation", help="Federation ID")]
CallerOption = Annotated[
    str,
    typer.Option("--caller", help="Acting account (trusted as given, not authenticated)"),
]
NameOption = Annotated[str, typer.Option("--name", help="Statement name (dotted)")]
ValuesOption = Annotated[
    Optional[list[str]],
    typer.Option("--value", help="Allowed text value (repeatable)"),
]
NumbersOption = Annotated[
    Optional[list[int]],
    typer.Option("--number", help="Allowed numeric value (repeatable)"),
]
AllowAnyOption = Annotated[bool, typer.Option("--allow-any", help="Accept any value")]
StartsWithOption = Annotated[Optional[str], typer.Option("--starts-with")]
EndsWithOption = Annotated[Optional[str], typer.Option("--ends-with")]
ContainsOption = Annotated[Optional[str], typer.Option("--contains")]
GreaterThanOption = Annotated[Optional[int], typer.Option("--greater-than")]
LowerThanOption = Annotated[Optional[int], typer.Option("--lower-than")]
ValidFromOption = Annotated[
    Optional[int], typer.Option("--valid-from-ms", help="Start of validity (ms since epoch)")
]
ValidUntilOption = Annotated[
    Optional[int], typer.Option("--valid-until-ms", help="End of validity (ms since epoch)")
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_hierarchies(db_path: Optional[Path] = None) -> Hierarchies:
    """Get Hierarchies instance for an existing database"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'hierarchies init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return Hierarchies(db)


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn rejected operations into a message on stderr and exit code 1"""
    try:
        yield
    except (HierarchiesError, ValidationError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def get_capability(
    h: Hierarchies, federation_id: str, caller: str, kind: CapabilityKind
) -> Capability:
    cap = h.capability(caller, federation_id, kind)
    if cap is None and kind == CapabilityKind.ATTEST:
        # Accreditors grant and revoke attest rights with their AccreditCap
        cap = h.capability(caller, federation_id, CapabilityKind.ACCREDIT)
    if cap is None:
        typer.echo(f"Error: {caller} holds no {kind.value} for {federation_id}", err=True)
        raise typer.Exit(1)
    return cap


def build_expression(
    starts_with: Optional[str],
    ends_with: Optional[str],
    contains: Optional[str],
    greater_than: Optional[int],
    lower_than: Optional[int],
) -> Optional[PatternExpression]:
    options = [
        (PatternExpression.starts_with, starts_with),
        (PatternExpression.ends_with, ends_with),
        (PatternExpression.contains, contains),
        (PatternExpression.greater_than, greater_than),
        (PatternExpression.lower_than, lower_than),
    ]
    chosen = [(factory, operand) for factory, operand in options if operand is not None]
    if len(chosen) > 1:
        typer.echo("Error: give at most one pattern option", err=True)
        raise typer.Exit(1)
    if not chosen:
        return None

    factory, operand = chosen[0]
    with reported_errors():
        return factory(operand)


def collect_values(
    values: Optional[list[str]], numbers: Optional[list[int]]
) -> list[StatementValue]:
    return [StatementValue.of(v) for v in values or []] + [
        StatementValue.of(n) for n in numbers or []
    ]


def describe_constraint(constraint: StatementConstraint) -> str:
    parts = []
    if constraint.allow_any:
        parts.append("any value")
    if constraint.allowed_values:
        shown = sorted(constraint.allowed_values, key=StatementValue.sort_key)
        parts.append("values=" + ",".join(str(v) for v in shown))
    if constraint.expression is not None:
        parts.append(str(constraint.expression))
    span = constraint.timespan
    if span.valid_from_ms is not None or span.valid_until_ms is not None:
        parts.append(f"valid {span.valid_from_ms or '-'}..{span.valid_until_ms or '-'}")
    return f"{constraint.name}: {'; '.join(parts) or 'nothing'}"


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path", envvar=DB_ENV_VAR),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    Hierarchies(db)
    typer.echo(f"✓ Initialized trust registry database: {db}")


# Federation commands


@federation_app.command("create")
def federation_create(
    creator: Annotated[str, typer.Option("--creator", help="First root authority")],
    db: DbOption = None,
) -> None:
    """Create a new federation"""
    h = get_hierarchies(db)

    with reported_errors():
        federation = h.create_federation(creator)

    typer.echo(f"✓ Created federation: {federation.federation_id}")
    typer.echo(f"  Root authority: {creator}")
    for cap in h.capabilities_of(federation.federation_id, creator):
        typer.echo(f"  {cap.kind.value}: {cap.capability_id}")


@federation_app.command("show")
def federation_show(
    federation_id: FederationOption,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show a federation"""
    h = get_hierarchies(db)

    with reported_errors():
        federation = h.get_federation(federation_id)

    if json_output:
        typer.echo(json.dumps(federation.to_dict(), indent=2, default=str))
        return

    governance = federation.governance
    typer.echo(f"\nFederation: {federation.federation_id}")
    typer.echo(f"  Created by: {federation.created_by}")
    typer.echo(f"  Root authorities: {', '.join(federation.distinct_root_ids()) or '-'}")
    if federation.revoked_root_authorities:
        typer.echo(f"  Revoked roots: {', '.join(federation.revoked_root_authorities)}")
    typer.echo(f"  Statements: {len(governance.registry)}")
    typer.echo(f"  Attesters enrolled: {len(governance.accreditations_to_attest)}")
    typer.echo(f"  Accreditors enrolled: {len(governance.accreditations_to_accredit)}")
    typer.echo(f"  Version: {federation.version}")


# Statement commands


@statement_app.command("add")
def statement_add(
    federation_id: FederationOption,
    caller: CallerOption,
    name: NameOption,
    values: ValuesOption = None,
    numbers: NumbersOption = None,
    allow_any: AllowAnyOption = False,
    starts_with: StartsWithOption = None,
    ends_with: EndsWithOption = None,
    contains: ContainsOption = None,
    greater_than: GreaterThanOption = None,
    lower_than: LowerThanOption = None,
    valid_from_ms: ValidFromOption = None,
    valid_until_ms: ValidUntilOption = None,
    db: DbOption = None,
) -> None:
    """Register a statement constraint (root authority only)"""
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, CapabilityKind.ROOT_AUTHORITY)
    expression = build_expression(starts_with, ends_with, contains, greater_than, lower_than)

    with reported_errors():
        constraint = h.add_statement(
            federation_id,
            cap,
            name,
            collect_values(values, numbers),
            allow_any=allow_any,
            expression=expression,
            timespan=Timespan(valid_from_ms=valid_from_ms, valid_until_ms=valid_until_ms),
        )

    typer.echo(f"✓ Added statement {describe_constraint(constraint)}")


@statement_app.command("revoke")
def statement_revoke(
    federation_id: FederationOption,
    caller: CallerOption,
    name: NameOption,
    valid_to_ms: Annotated[
        Optional[int],
        typer.Option("--valid-to-ms", help="Revocation time (ms since epoch, default now)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Revoke a statement (root authority only)"""
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, CapabilityKind.ROOT_AUTHORITY)

    with reported_errors():
        constraint = h.revoke_statement(federation_id, cap, name, valid_to_ms)

    typer.echo(f"✓ Revoked statement {constraint.name}")
    typer.echo(f"  Valid until: {constraint.timespan.valid_until_ms}")


@statement_app.command("remove")
def statement_remove(
    federation_id: FederationOption,
    caller: CallerOption,
    name: NameOption,
    db: DbOption = None,
) -> None:
    """Remove a statement from the registry (root authority only)"""
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, CapabilityKind.ROOT_AUTHORITY)

    with reported_errors():
        h.remove_statement(federation_id, cap, name)

    typer.echo(f"✓ Removed statement {name}")


@statement_app.command("list")
def statement_list(
    federation_id: FederationOption,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List registered statements"""
    h = get_hierarchies(db)

    with reported_errors():
        registry = h.get_federation(federation_id).governance.registry

    if json_output:
        typer.echo(json.dumps(registry.to_dict()["statements"], indent=2))
        return

    if not len(registry):
        typer.echo("No statements registered")
        return

    typer.echo(f"Statements ({len(registry)}):")
    for name in registry.names():
        typer.echo(f"  {describe_constraint(registry.require(name))}")


# Root authority commands


@root_app.command("add")
def root_add(
    federation_id: FederationOption,
    caller: CallerOption,
    account: Annotated[str, typer.Option("--account", help="Account to make root")],
    db: DbOption = None,
) -> None:
    """Add a root authority"""
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, CapabilityKind.ROOT_AUTHORITY)

    with reported_errors():
        minted = h.add_root_authority(federation_id, cap, account)

    typer.echo(f"✓ Added root authority: {account}")
    typer.echo(f"  {minted.kind.value}: {minted.capability_id}")


@root_app.command("revoke")
def root_revoke(
    federation_id: FederationOption,
    caller: CallerOption,
    account: Annotated[str, typer.Option("--account", help="Root authority to revoke")],
    db: DbOption = None,
) -> None:
    """Revoke a root authority"""
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, CapabilityKind.ROOT_AUTHORITY)

    with reported_errors():
        h.revoke_root_authority(federation_id, cap, account)

    typer.echo(f"✓ Revoked root authority: {account}")


@root_app.command("reinstate")
def root_reinstate(
    federation_id: FederationOption,
    caller: CallerOption,
    account: Annotated[str, typer.Option("--account", help="Revoked root to reinstate")],
    db: DbOption = None,
) -> None:
    """Reinstate a revoked root authority"""
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, CapabilityKind.ROOT_AUTHORITY)

    with reported_errors():
        h.reinstate_root_authority(federation_id, cap, account)

    typer.echo(f"✓ Reinstated root authority: {account}")


# Accreditation commands


def _grant(
    kind: CapabilityKind,
    federation_id: str,
    caller: str,
    receiver: str,
    name: Optional[str],
    values: Optional[list[str]],
    numbers: Optional[list[int]],
    allow_any: bool,
    expression: Optional[PatternExpression],
    constraints_json: Optional[str],
    db: Optional[Path],
) -> None:
    h = get_hierarchies(db)
    cap = get_capability(h, federation_id, caller, kind)

    with reported_errors():
        if constraints_json:
            constraints = [
                StatementConstraint.model_validate(raw) for raw in json.loads(constraints_json)
            ]
        elif name:
            constraints = [
                StatementConstraint(
                    name=name,
                    allowed_values=collect_values(values, numbers),
                    allow_any=allow_any,
                    expression=expression,
                )
            ]
        else:
            raise ValueError("give --name or --constraints")

        if kind == CapabilityKind.ATTEST:
            accreditation = h.create_accreditation_to_attest(
                federation_id, cap, receiver, constraints
            )
        else:
            accreditation = h.create_accreditation_to_accredit(
                federation_id, cap, receiver, constraints
            )

    label = "attest" if kind == CapabilityKind.ATTEST else "accredit"
    typer.echo(f"✓ Accredited {receiver} to {label}: {accreditation.accreditation_id}")
    for constraint in accreditation.constraints:
        typer.echo(f"  {describe_constraint(constraint)}")


ConstraintsOption = Annotated[
    Optional[str],
    typer.Option("--constraints", help="Constraints as a JSON list (instead of --name ...)"),
]
ReceiverOption = Annotated[str, typer.Option("--receiver", help="Entity receiving the grant")]
OptionalNameOption = Annotated[
    Optional[str], typer.Option("--name", help="Statement name (dotted)")
]


@accredit_app.command("attest")
def accredit_attest(
    federation_id: FederationOption,
    caller: CallerOption,
    receiver: ReceiverOption,
    name: OptionalNameOption = None,
    values: ValuesOption = None,
    numbers: NumbersOption = None,
    allow_any: AllowAnyOption = False,
    starts_with: StartsWithOption = None,
    ends_with: EndsWithOption = None,
    contains: ContainsOption = None,
    greater_than: GreaterThanOption = None,
    lower_than: LowerThanOption = None,
    constraints: ConstraintsOption = None,
    db: DbOption = None,
) -> None:
    """Grant an accreditation to attest"""
    expression = build_expression(starts_with, ends_with, contains, greater_than, lower_than)
    _grant(
        CapabilityKind.ATTEST, federation_id, caller, receiver, name,
        values, numbers, allow_any, expression, constraints, db,
    )


@accredit_app.command("accredit")
def accredit_accredit(
    federation_id: FederationOption,
    caller: CallerOption,
    receiver: ReceiverOption,
    name: OptionalNameOption = None,
    values: ValuesOption = None,
    numbers: NumbersOption = None,
    allow_any: AllowAnyOption = False,
    starts_with: StartsWithOption = None,
    ends_with: EndsWithOption = None,
    contains: ContainsOption = None,
    greater_than: GreaterThanOption = None,
    lower_than: LowerThanOption = None,
    constraints: ConstraintsOption = None,
    db: DbOption = None,
) -> None:
    """Grant an accreditation to accredit"""
    expression = build_expression(starts_with, ends_with, contains, greater_than, lower_than)
    _grant(
        CapabilityKind.ACCREDIT, federation_id, caller, receiver, name,
        values, numbers, allow_any, expression, constraints, db,
    )


@accredit_app.command("revoke")
def accredit_revoke(
    federation_id: FederationOption,
    caller: CallerOption,
    entity: Annotated[str, typer.Option("--entity", help="Entity holding the accreditation")],
    accreditation_id: Annotated[str, typer.Option("--id", help="Accreditation ID")],
    kind: Annotated[
        str,
        typer.Option("--kind", help="Which set to revoke from (attest, accredit)"),
    ] = "attest",
    db: DbOption = None,
) -> None:
    """Revoke an accreditation"""
    if kind not in ("attest", "accredit"):
        typer.echo(f"Error: unknown kind: {kind}", err=True)
        raise typer.Exit(1)

    h = get_hierarchies(db)
    cap_kind = CapabilityKind.ATTEST if kind == "attest" else CapabilityKind.ACCREDIT
    cap = get_capability(h, federation_id, caller, cap_kind)

    with reported_errors():
        if kind == "attest":
            h.revoke_accreditation_to_attest(federation_id, cap, entity, accreditation_id)
        else:
            h.revoke_accreditation_to_accredit(federation_id, cap, entity, accreditation_id)

    typer.echo(f"✓ Revoked accreditation to {kind}: {accreditation_id}")


@accredit_app.command("list")
def accredit_list(
    federation_id: FederationOption,
    entity: Annotated[str, typer.Option("--entity", help="Entity to inspect")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List an entity's accreditations"""
    h = get_hierarchies(db)

    with reported_errors():
        attest = h.get_accreditations_to_attest(federation_id, entity)
        accredit = h.get_accreditations_to_accredit(federation_id, entity)

    if json_output:
        typer.echo(
            json.dumps(
                {"to_attest": attest.to_dict(), "to_accredit": accredit.to_dict()},
                indent=2,
            )
        )
        return

    for label, held in (("attest", attest), ("accredit", accredit)):
        typer.echo(f"Accreditations to {label} ({len(held)}):")
        for accreditation in held:
            typer.echo(
                f"  {accreditation.accreditation_id} (by {accreditation.accredited_by})"
            )
            for constraint in accreditation.constraints:
                typer.echo(f"    {describe_constraint(constraint)}")


# Validation


@app.command()
def validate(
    federation_id: FederationOption,
    entity: Annotated[str, typer.Option("--entity", help="Entity attesting")],
    name: NameOption,
    value: Annotated[Optional[str], typer.Option("--value", help="Text value")] = None,
    number: Annotated[Optional[int], typer.Option("--number", help="Numeric value")] = None,
    db: DbOption = None,
) -> None:
    """Check that an entity may attest a statement value"""
    if (value is None) == (number is None):
        typer.echo("Error: give exactly one of --value or --number", err=True)
        raise typer.Exit(1)

    h = get_hierarchies(db)
    with reported_errors():
        h.validate_statement(federation_id, entity, name, value if value is not None else number)

    typer.echo(f"✓ {entity} may attest {name}={value if value is not None else number}")


@app.command()
def serve(
    db: DbOption = None,
    port: Annotated[int, typer.Option("--port", help="Health endpoint port")] = 8080,
    metrics_port: Annotated[
        Optional[int], typer.Option("--metrics-port", help="Also expose Prometheus metrics")
    ] = None,
) -> None:
    """Serve /health endpoints (and optionally Prometheus metrics) for a database"""
    h = get_hierarchies(db)
    initialize_health_server(h.sqlite_path, h)
    if metrics_port is not None:
        start_metrics_server(metrics_port)
        typer.echo(f"Metrics: http://0.0.0.0:{metrics_port}/metrics")
    typer.echo(f"Health: http://0.0.0.0:{port}/health/live")
    run_health_server(port=port)


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
