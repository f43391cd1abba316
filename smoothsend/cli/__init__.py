"""
smoothsend/cli/__init__.py

SmoothSend CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    smoothsend = "smoothsend.cli:cli"

Adding a new command:
    1. Create smoothsend/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging

import click

from smoothsend.cli.audit import audit_group
from smoothsend.cli.authorization import digest_command, keygen_command, sign_command


@click.group()
@click.version_option(package_name="smoothsend")
@click.option("--verbose", "-v", is_flag=True, help="Log to stderr at DEBUG level.")
def cli(verbose: bool) -> None:
    """
    SmoothSend — gasless transfer tooling.

    \b
    Commands:
      keygen    Create an Ed25519 signing key.
      digest    Show the signed bytes and digest of an authorization.
      sign      Sign an authorization as its sender.
      audit     Inspect an audit log.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


cli.add_command(keygen_command)
cli.add_command(digest_command)
cli.add_command(sign_command)
cli.add_command(audit_group)
