"""
smoothsend/core/crypto.py

Ed25519 signing layer.

Key contracts:
    public_key_bytes        : @property → raw 32-byte public key
    public_key_hex          : @property → 64-char lowercase hex
    sign(data)              : bytes → raw 64-byte signature
    verify_strict(...)      : @staticmethod — verifies with ONLY raw public key bytes

Strict verification rejects, before handing off to cryptography:
    - public key not exactly 32 bytes, signature not exactly 64 bytes
    - signature scalar S >= L           (malleable second encoding)
    - R or public key with y >= p       (non-canonical point encoding)
    - R or public key of small order    (torsion points; the identity key
                                         with R = identity verifies anything)

Signatures are over raw message bytes (the 32-byte transfer digest),
never prehashed again here.
"""

from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)


PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH  = 64

# Ed25519 group order and field prime
_L = 2 ** 252 + 27742317777372353535851937790883648493
_P = 2 ** 255 - 19


def _is_canonical_point(encoded: bytes) -> bool:
    y = int.from_bytes(encoded, "little") & ((1 << 255) - 1)
    return y < _P


def _is_canonical_scalar(encoded: bytes) -> bool:
    return int.from_bytes(encoded, "little") < _L


_D       = -121665 * pow(121666, _P - 2, _P) % _P
_SQRT_M1 = pow(2, (_P - 1) // 4, _P)


def _decode_point(encoded: bytes):
    """Affine (x, y) of a 32-byte point encoding, or None if it is not on the curve."""
    y    = int.from_bytes(encoded, "little") & ((1 << 255) - 1)
    sign = encoded[31] >> 7
    if y >= _P:
        return None
    x2 = (y * y - 1) * pow(_D * y * y + 1, _P - 2, _P) % _P
    x  = pow(x2, (_P + 3) // 8, _P)
    if (x * x - x2) % _P:
        x = x * _SQRT_M1 % _P
    if (x * x - x2) % _P:
        return None
    if x == 0 and sign:
        return None
    if x & 1 != sign:
        x = _P - x
    return x, y


def _double(point):
    x, y = point
    t  = _D * x * x * y * y % _P
    x3 = 2 * x * y * pow(1 + t, _P - 2, _P) % _P
    y3 = (y * y + x * x) * pow(1 - t, _P - 2, _P) % _P
    return x3, y3


def _has_small_order(encoded: bytes) -> bool:
    """
    True for the eight torsion points (8P == identity) and for encodings
    that are not on the curve at all.
    """
    point = _decode_point(encoded)
    if point is None:
        return True
    for _ in range(3):
        point = _double(point)
    return point == (0, 1)


class Ed25519KeyManager:
    """
    Ed25519 key manager.

    Public surface:
        Ed25519KeyManager.generate()                         → new random key
        Ed25519KeyManager.from_file(path)                    → load PEM private key
        Ed25519KeyManager.from_private_bytes(seed)           → load from raw 32-byte seed
        Ed25519KeyManager.verify_strict(sig, pubkey, msg)    → @staticmethod, no instance needed

        key.public_key_bytes       (@property) → raw 32 bytes
        key.public_key_hex         (@property) → 64-char lowercase hex
        key.sign(data: bytes)                  → raw 64-byte signature
        key.save(path)                         → write PEM private key
        key.private_bytes_raw()                → raw 32-byte seed
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key: Ed25519PrivateKey = private_key
        self._public_key:  Ed25519PublicKey  = private_key.public_key()
        self._public_key_bytes: bytes = self._public_key.public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        """Generate a new random Ed25519 key pair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load an Ed25519 private key from a PEM file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid Ed25519 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            private_key = load_pem_private_key(path.read_bytes(), password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                f"Failed to load Ed25519 key from {path}: {exc}"
            ) from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(
                f"Key file {path} does not contain an Ed25519 private key"
            )
        return cls(private_key)

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519KeyManager":
        """
        Load an Ed25519 key from a raw 32-byte seed.
        Raises ValueError if seed is not exactly 32 bytes.
        """
        if len(seed) != 32:
            raise ValueError(
                f"Ed25519 seed must be 32 bytes, got {len(seed)}"
            )
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    # ── Public Key ────────────────────────────────────────────

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key_bytes

    @property
    def public_key_hex(self) -> str:
        """64-character lowercase hex string of the public key."""
        return self._public_key_bytes.hex()

    # ── Signing ───────────────────────────────────────────────

    def sign(self, data: bytes) -> bytes:
        """Sign data with Ed25519. Returns the raw 64-byte signature."""
        return self._private_key.sign(data)

    # ── Verification ──────────────────────────────────────────

    @staticmethod
    def verify_strict(signature: bytes, public_key: bytes, message: bytes) -> bool:
        """
        Verify an Ed25519 signature, rejecting malleable encodings.

        Returns:
            True if the signature is valid over message with public_key.
            False for ANY failure — wrong key, wrong length, non-canonical
            scalar or point, corrupted signature. Never raises.
        """
        if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LENGTH:
            return False
        if not isinstance(public_key, (bytes, bytearray)) or len(public_key) != PUBLIC_KEY_LENGTH:
            return False

        signature  = bytes(signature)
        public_key = bytes(public_key)

        if not _is_canonical_scalar(signature[32:]):
            return False
        if not _is_canonical_point(signature[:32]):
            return False
        if not _is_canonical_point(public_key):
            return False
        if _has_small_order(signature[:32]) or _has_small_order(public_key):
            return False

        try:
            Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        except (InvalidSignature, ValueError):
            return False
        return True

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as a PEM file.
        Creates parent directories if needed.
        Raises RuntimeError on write failure.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pem = self._private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        )
        try:
            path.write_bytes(pem)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to save Ed25519 key to {path}: {exc}"
            ) from exc

    def private_bytes_raw(self) -> bytes:
        """
        Return the raw 32-byte private key seed.
        Use only for secure backup — never log or transmit.
        """
        return self._private_key.private_bytes(
            encoding=             Encoding.Raw,
            format=               PrivateFormat.Raw,
            encryption_algorithm= NoEncryption(),
        )

    def __repr__(self) -> str:
        return (
            f"Ed25519KeyManager(public_key_hex={self.public_key_hex[:16]}...)"
        )
