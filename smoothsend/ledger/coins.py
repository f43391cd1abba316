"""
smoothsend/ledger/coins.py

Token custody primitive: externally-held balances and the Coin value
that moves between them and the custodial ledger.

A Coin is linear: merging consumes the other coin, depositing consumes
the coin, and a consumed coin can no longer be read or moved. Value is
never created here except by CoinStore.mint, which stands in for the
token's own issuance.
"""

import threading
from typing import Dict, Tuple

from smoothsend.core.exceptions import InsufficientExternalBalance
from smoothsend.core.primitives import checked_add, normalize_address, require_u64


class Coin:
    """A quantity of one token type in transit."""

    __slots__ = ("token_type", "_value", "_consumed")

    def __init__(self, token_type: str, value: int) -> None:
        self.token_type = token_type
        self._value     = require_u64(value, "value")
        self._consumed  = False

    @property
    def value(self) -> int:
        self._check_live()
        return self._value

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _check_live(self) -> None:
        if self._consumed:
            raise ValueError(f"Coin of {self.token_type} was already consumed")

    def _consume(self) -> int:
        self._check_live()
        self._consumed = True
        value, self._value = self._value, 0
        return value

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else str(self._value)
        return f"Coin({self.token_type!r}, {state})"


def value(coin: Coin) -> int:
    return coin.value


def merge(dst: Coin, src: Coin) -> Coin:
    """Move all of src into dst. src is consumed."""
    if dst is src:
        raise ValueError("Cannot merge a coin into itself")
    if dst.token_type != src.token_type:
        raise ValueError(
            f"Cannot merge {src.token_type} into {dst.token_type}"
        )
    dst._check_live()
    dst._value = checked_add(dst._value, src._consume(), "coin merge")
    return dst


def split(coin: Coin, amount: int) -> Tuple[Coin, Coin]:
    """
    Take amount out of coin.

    Returns (coin, taken). coin keeps the remainder.
    """
    require_u64(amount, "amount")
    coin._check_live()
    if amount > coin._value:
        raise ValueError(
            f"Cannot split {amount} from a coin holding {coin._value}"
        )
    coin._value -= amount
    return coin, Coin(coin.token_type, amount)


def destroy_if_zero(coin: Coin) -> bool:
    """Consume coin if it is empty. Returns True if it was destroyed."""
    if coin.value != 0:
        return False
    coin._consume()
    return True


class CoinStore:
    """
    In-memory externally-held balances, keyed by (owner, token_type).

    Plays the role of the token's own account store. The custodial ledger
    only moves value in and out through withdraw() and deposit().
    """

    def __init__(self) -> None:
        self._lock:     threading.Lock              = threading.Lock()
        self._balances: Dict[Tuple[str, str], int]  = {}

    def balance(self, owner: str, token_type: str) -> int:
        key = (normalize_address(owner), token_type)
        with self._lock:
            return self._balances.get(key, 0)

    def mint(self, owner: str, token_type: str, amount: int) -> None:
        """Issue new value to owner. Stands in for the token's minting authority."""
        key = (normalize_address(owner), token_type)
        require_u64(amount, "amount")
        with self._lock:
            self._balances[key] = checked_add(self._balances.get(key, 0), amount, "mint")

    def withdraw(self, owner: str, token_type: str, amount: int) -> Coin:
        key = (normalize_address(owner), token_type)
        require_u64(amount, "amount")
        with self._lock:
            held = self._balances.get(key, 0)
            if held < amount:
                raise InsufficientExternalBalance(
                    "External balance too low",
                    {"owner": key[0], "token_type": token_type, "held": held, "requested": amount},
                )
            remaining = held - amount
            if remaining:
                self._balances[key] = remaining
            else:
                self._balances.pop(key, None)
        return Coin(token_type, amount)

    def deposit(self, owner: str, coin: Coin) -> None:
        key = (normalize_address(owner), coin.token_type)
        with self._lock:
            updated = checked_add(self._balances.get(key, 0), coin.value, "external deposit")
            coin._consume()
            if updated:
                self._balances[key] = updated
