"""
smoothsend/cli/audit.py

smoothsend audit verify — replay an audit log from genesis.

Exit codes:
    0  Log fully valid (sequence + hash chain + record types)
    1  Log has violations
    2  Error (file missing, malformed JSON)
"""

import json
import sys
from pathlib import Path

import click

from smoothsend.audit.log import check_chain, load_records
from smoothsend.core.exceptions import AuditLogError


@click.group("audit")
def audit_group() -> None:
    """Inspect an audit log."""


@audit_group.command("verify")
@click.argument("log_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(["human", "json"]), default="human",
              show_default=True)
def verify_command(log_file: Path, fmt: str) -> None:
    """Verify the hash chain of LOG_FILE."""
    if not log_file.exists():
        click.echo(f"Error: audit log not found: {log_file}", err=True)
        sys.exit(2)
    try:
        records = load_records(log_file)
    except AuditLogError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    report = check_chain(records)

    if fmt == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        status = "VALID" if report.chain_valid else "INVALID"
        click.echo(f"Audit log: {log_file}")
        click.echo(f"Records:   {report.total_records}")
        for record_type, count in sorted(report.by_type.items()):
            click.echo(f"  {record_type:<20} {count}")
        click.echo(f"Chain:     {status}")
        for violation in report.violations:
            click.echo(f"  - {violation}")

    sys.exit(0 if report.chain_valid else 1)
