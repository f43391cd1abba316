"""
smoothsend/auth/verifier.py

Signed-message layout for gasless transfers.

THIS LAYOUT IS THE WIRE CONTRACT WITH OFF-CHAIN SIGNERS.
Any change requires a new DOMAIN_TAG version.

    digest = SHA-256( DOMAIN_TAG ∥ TYPE_TAG ∥ canonical_bytes )

    DOMAIN_TAG      = b"SMOOTHSEND::GASLESS_TRANSFER::V1"
    TYPE_TAG        = SHA-256(TYPE_DESCRIPTOR)
    canonical_bytes = field_0 ∥ field_1 ∥ ... ∥ field_7   (signing order)

Field encoding, one tag byte then the body:
    address   0x01 ∥ 32 raw bytes
    u64       0x02 ∥ 8 bytes little-endian
    string    0x03 ∥ ULEB128(len) ∥ UTF-8 bytes

Signing order: sender, recipient, amount, max_fee, token_type, nonce,
deadline, declared_gas_cost.

Verification proves possession of the private key for `public_key`. It
does NOT prove that key belongs to `sender`; callers own that binding.
"""

import hashlib
import logging
import struct

from smoothsend.core.crypto import (
    PUBLIC_KEY_LENGTH,
    SIGNATURE_LENGTH,
    Ed25519KeyManager,
)
from smoothsend.core.exceptions import MalformedSignatureInput, SignatureMismatch
from smoothsend.core.models import TransferAuthorization
from smoothsend.core.primitives import address_bytes

logger = logging.getLogger(__name__)


DOMAIN_TAG = b"SMOOTHSEND::GASLESS_TRANSFER::V1"

TYPE_DESCRIPTOR = (
    b"TransferAuthorization("
    b"address sender,"
    b"address recipient,"
    b"u64 amount,"
    b"u64 max_fee,"
    b"string token_type,"
    b"u64 nonce,"
    b"u64 deadline,"
    b"u64 declared_gas_cost"
    b")"
)

TYPE_TAG = hashlib.sha256(TYPE_DESCRIPTOR).digest()

TAG_ADDRESS = 0x01
TAG_U64     = 0x02
TAG_STRING  = 0x03


def _uleb128(n: int) -> bytes:
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _address(value: str) -> bytes:
    return bytes([TAG_ADDRESS]) + address_bytes(value)


def _u64(value: int) -> bytes:
    return bytes([TAG_U64]) + struct.pack("<Q", value)


def _string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return bytes([TAG_STRING]) + _uleb128(len(raw)) + raw


def encode_authorization(auth: TransferAuthorization) -> bytes:
    """Type-tagged canonical bytes of an authorization, in signing order."""
    return b"".join((
        _address(auth.sender),
        _address(auth.recipient),
        _u64(auth.amount),
        _u64(auth.max_fee),
        _string(auth.token_type),
        _u64(auth.nonce),
        _u64(auth.deadline),
        _u64(auth.declared_gas_cost),
    ))


def signing_message(auth: TransferAuthorization) -> bytes:
    """The exact preimage of the digest."""
    return DOMAIN_TAG + TYPE_TAG + encode_authorization(auth)


def signing_digest(auth: TransferAuthorization) -> bytes:
    """32-byte digest the sender signs."""
    return hashlib.sha256(signing_message(auth)).digest()


def sign_authorization(auth: TransferAuthorization, key: Ed25519KeyManager) -> bytes:
    """Off-chain signer helper: raw 64-byte signature over the digest."""
    return key.sign(signing_digest(auth))


class AuthorizationVerifier:
    """Checks a detached signature over a TransferAuthorization."""

    def verify(
        self,
        auth:       TransferAuthorization,
        signature:  bytes,
        public_key: bytes,
    ) -> bytes:
        """
        Verify signature over auth with public_key.

        Returns the verified digest.
        Raises MalformedSignatureInput for wrong lengths (checked first,
        before any hashing), SignatureMismatch for anything else.
        """
        if not isinstance(public_key, (bytes, bytearray)) or len(public_key) != PUBLIC_KEY_LENGTH:
            raise MalformedSignatureInput(
                f"Public key must be exactly {PUBLIC_KEY_LENGTH} bytes",
                {"length": _length(public_key)},
            )
        if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LENGTH:
            raise MalformedSignatureInput(
                f"Signature must be exactly {SIGNATURE_LENGTH} bytes",
                {"length": _length(signature)},
            )

        digest = signing_digest(auth)
        logger.debug("Verifying digest %s for sender %s", digest.hex(), auth.sender)

        if not Ed25519KeyManager.verify_strict(bytes(signature), bytes(public_key), digest):
            raise SignatureMismatch(
                "Signature does not verify over the transfer authorization",
                {"sender": auth.sender, "nonce": auth.nonce},
            )
        return digest


def _length(value) -> object:
    try:
        return len(value)
    except TypeError:
        return type(value).__name__
