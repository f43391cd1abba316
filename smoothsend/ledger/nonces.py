"""
smoothsend/ledger/nonces.py

Per-user replay protection.

The stored value is the NEXT expected nonce. Absent means 0.
It only ever moves by +1, and only through advance().

An authorization is valid only if its nonce equals the stored value at
verification time. Once a transfer settles the value moves on, so the
same authorization can never settle twice.
"""

from typing import Dict

from smoothsend.core.exceptions import NonceMismatch
from smoothsend.core.primitives import checked_add, normalize_address, require_u64


class NonceRegistry:
    """
    Maps user address → next expected nonce.

    check() + advance() together are a compare-and-swap. The owning
    deployment serializes calls, so exactly one caller can win a given
    (user, nonce) pair.
    """

    def __init__(self) -> None:
        self._nonces: Dict[str, int] = {}

    def current_nonce(self, user: str) -> int:
        return self._nonces.get(normalize_address(user), 0)

    def check(self, user: str, expected: int) -> None:
        """Raise NonceMismatch unless expected is the stored value. No mutation."""
        user = normalize_address(user)
        require_u64(expected, "nonce")
        stored = self._nonces.get(user, 0)
        if expected != stored:
            raise NonceMismatch(
                "Nonce does not match the next expected value",
                {"user": user, "expected": stored, "got": expected},
            )

    def advance(self, user: str, expected: int) -> int:
        """
        Consume nonce `expected` for user.

        Returns the new stored value (expected + 1).
        """
        self.check(user, expected)
        user = normalize_address(user)
        new_value = checked_add(expected, 1, "nonce")
        self._nonces[user] = new_value
        return new_value

    def __len__(self) -> int:
        return len(self._nonces)
