"""
smoothsend/core/primitives.py

Addresses and unsigned 64-bit quantities.

Address wire format: 32 raw bytes.
Address text format: "0x" + 64 lowercase hex characters.
Short forms ("0x1", "ab") are accepted on input and left-padded.

Every amount, fee, nonce, deadline and gas figure is a u64.
Values outside [0, MAX_U64] never enter ledger state.
"""

import re

from smoothsend.core.exceptions import ArithmeticOverflow, InvalidAddress, ValidationError


MAX_U64 = 2 ** 64 - 1

ADDRESS_LENGTH = 32
ZERO_ADDRESS   = "0x" + "0" * (ADDRESS_LENGTH * 2)

_HEX_RE = re.compile(r"^[0-9a-fA-F]{1,64}$")


def normalize_address(address: str) -> str:
    """
    Return the canonical text form of an address.

    Raises InvalidAddress if the input is not a hex string of at most
    32 bytes.
    """
    if not isinstance(address, str):
        raise InvalidAddress(
            "Address must be a hex string",
            {"address": repr(address)},
        )
    body = address[2:] if address[:2].lower() == "0x" else address
    if not _HEX_RE.match(body):
        raise InvalidAddress("Malformed address", {"address": address})
    return "0x" + body.lower().rjust(ADDRESS_LENGTH * 2, "0")


def address_bytes(address: str) -> bytes:
    """32-byte raw form of an address."""
    return bytes.fromhex(normalize_address(address)[2:])


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def require_u64(value: int, field: str) -> int:
    """
    Validate that value is an int in [0, MAX_U64].

    bool is rejected even though it subclasses int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field} must be an integer",
            {"field": field, "value": repr(value)},
        )
    if value < 0:
        raise ValidationError(
            f"{field} must not be negative",
            {"field": field, "value": value},
        )
    if value > MAX_U64:
        raise ArithmeticOverflow(
            f"{field} exceeds u64 range",
            {"field": field, "value": value},
        )
    return value


def checked_add(a: int, b: int, what: str = "sum") -> int:
    result = a + b
    if result > MAX_U64:
        raise ArithmeticOverflow(f"u64 overflow computing {what}", {"a": a, "b": b})
    return result


def checked_sub(a: int, b: int, what: str = "difference") -> int:
    if b > a:
        raise ArithmeticOverflow(f"u64 underflow computing {what}", {"a": a, "b": b})
    return a - b


def checked_mul(a: int, b: int, what: str = "product") -> int:
    result = a * b
    if result > MAX_U64:
        raise ArithmeticOverflow(f"u64 overflow computing {what}", {"a": a, "b": b})
    return result
