"""
smoothsend/cli/authorization.py

Off-chain signer commands.

An authorization file is a JSON object with exactly the signed fields:

    {
      "sender": "0x...", "recipient": "0x...",
      "amount": "500", "max_fee": "150", "token_type": "USDC",
      "nonce": "0", "deadline": "1700003600", "declared_gas_cost": "100"
    }

u64 fields may be JSON numbers or decimal strings.
"""

import json
from pathlib import Path

import click

from smoothsend.auth.verifier import encode_authorization, sign_authorization, signing_digest
from smoothsend.core.crypto import Ed25519KeyManager
from smoothsend.core.exceptions import SmoothSendError
from smoothsend.core.models import TransferAuthorization


def _load_authorization(path: Path) -> TransferAuthorization:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Cannot read authorization {path}: {exc}")
    if not isinstance(data, dict):
        raise click.ClickException("Authorization file must contain a JSON object")
    try:
        return TransferAuthorization.from_dict(data)
    except SmoothSendError as exc:
        raise click.ClickException(str(exc))


@click.command("keygen")
@click.option("--out", "out_path", required=True, type=click.Path(dir_okay=False, path_type=Path),
              help="Where to write the PEM private key.")
@click.option("--force", is_flag=True, help="Overwrite an existing key file.")
def keygen_command(out_path: Path, force: bool) -> None:
    """Create an Ed25519 key and print its public key hex."""
    if out_path.exists() and not force:
        raise click.ClickException(f"{out_path} exists (use --force to overwrite)")
    key = Ed25519KeyManager.generate()
    key.save(out_path)
    click.echo(key.public_key_hex)


@click.command("digest")
@click.argument("auth_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON.")
def digest_command(auth_file: Path, as_json: bool) -> None:
    """Print the canonical bytes and signing digest of AUTH_FILE."""
    auth = _load_authorization(auth_file)
    canonical = encode_authorization(auth).hex()
    digest    = signing_digest(auth).hex()
    if as_json:
        click.echo(json.dumps({"canonical_bytes": canonical, "digest": digest}, indent=2))
    else:
        click.echo(f"canonical_bytes: {canonical}")
        click.echo(f"digest:          {digest}")


@click.command("sign")
@click.argument("auth_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--key", "key_path", required=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="PEM private key of the sender.")
def sign_command(auth_file: Path, key_path: Path) -> None:
    """Sign AUTH_FILE; print signature and public key as JSON."""
    auth = _load_authorization(auth_file)
    try:
        key = Ed25519KeyManager.from_file(key_path)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    signature = sign_authorization(auth, key)
    click.echo(json.dumps({
        "signature":  signature.hex(),
        "public_key": key.public_key_hex,
        "digest":     signing_digest(auth).hex(),
    }, indent=2))
