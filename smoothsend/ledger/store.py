"""
smoothsend/ledger/store.py

Custodial ledger: one balance record per (owner, token_type).

Record lifecycle:
    created   on first deposit / credit
    merged    on every later deposit / credit
    deleted   when a withdrawal or debit brings it to exactly zero

The store never holds a present-but-zero record. balance_of() of an
absent record is 0, never an error.

Token types must be registered before value can move in or out of them;
the store keys records by the token type's stable string identifier.
Each registered token type has one vault Coin holding the custodied value,
so vault value == sum of that type's records at all times.

Settlement does not go through deposit()/withdraw(). It plans a split
with plan_split() (all checks, no mutation) and commits it with
apply_split(), which cannot fail.

Not thread-safe on its own. The owning deployment serializes calls.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from smoothsend.core.exceptions import (
    InsufficientCustodialBalance,
    InsufficientExternalBalance,
    TokenTypeNotInitialized,
    ZeroAmount,
)
from smoothsend.core.models import require_token_type
from smoothsend.core.primitives import checked_add, normalize_address, require_u64
from smoothsend.ledger.coins import Coin, CoinStore, merge, split

logger = logging.getLogger(__name__)


BalanceKey = Tuple[str, str]


@dataclass(frozen=True)
class SplitPlan:
    """
    Validated post-settlement balances for every touched record.

    A value of 0 means the record is removed on commit.
    """
    token_type: str
    updates:    Tuple[Tuple[BalanceKey, int], ...]


class LedgerStore:
    """Per-(owner, token_type) custodial balances."""

    def __init__(self, coins: CoinStore) -> None:
        self.coins = coins
        self._balances:    Dict[BalanceKey, int] = {}
        self._vaults:      Dict[str, Coin]       = {}

    # ── Token types ───────────────────────────────────────────

    def register_token_type(self, token_type: str) -> bool:
        """Returns False if the token type was already registered."""
        require_token_type(token_type)
        if token_type in self._vaults:
            return False
        self._vaults[token_type] = Coin(token_type, 0)
        logger.info("Token type %s initialized", token_type)
        return True

    def is_token_type_initialized(self, token_type: str) -> bool:
        return token_type in self._vaults

    def token_types(self) -> List[str]:
        return sorted(self._vaults)

    def require_token_type(self, token_type: str) -> None:
        if token_type not in self._vaults:
            raise TokenTypeNotInitialized(
                "Token type is not initialized",
                {"token_type": token_type},
            )

    # ── Views ─────────────────────────────────────────────────

    def balance_of(self, owner: str, token_type: str) -> int:
        return self._balances.get((normalize_address(owner), token_type), 0)

    def has_record(self, owner: str, token_type: str) -> bool:
        return (normalize_address(owner), token_type) in self._balances

    def total_custodied(self, token_type: str) -> int:
        """Value held in the token type's vault."""
        vault = self._vaults.get(token_type)
        return vault.value if vault is not None else 0

    def snapshot(self) -> Dict[BalanceKey, int]:
        return dict(self._balances)

    # ── Deposit / withdraw ────────────────────────────────────

    def check_deposit(self, owner: str, token_type: str, amount: int) -> int:
        """
        Run every deposit check without moving anything.

        Returns the custodial balance the deposit would produce.
        """
        owner = normalize_address(owner)
        require_u64(amount, "amount")
        if amount == 0:
            raise ZeroAmount("Deposit amount must be greater than zero")
        self.require_token_type(token_type)

        held = self.coins.balance(owner, token_type)
        if held < amount:
            raise InsufficientExternalBalance(
                "External balance too low",
                {"owner": owner, "token_type": token_type, "held": held, "requested": amount},
            )
        checked_add(self._vaults[token_type].value, amount, "vault balance")
        return checked_add(self._balances.get((owner, token_type), 0), amount, "custodial balance")

    def check_withdraw(self, owner: str, token_type: str, amount: int) -> int:
        """
        Run every withdrawal check without moving anything.

        Returns the custodial balance that would remain.
        """
        owner = normalize_address(owner)
        require_u64(amount, "amount")
        if amount == 0:
            raise ZeroAmount("Withdrawal amount must be greater than zero")
        self.require_token_type(token_type)

        remaining = self._debit_check((owner, token_type), amount)
        checked_add(self.coins.balance(owner, token_type), amount, "external balance")
        return remaining

    def deposit(self, owner: str, token_type: str, amount: int) -> int:
        """
        Move amount from owner's external balance into custody.

        Returns the new custodial balance.
        """
        updated = self.check_deposit(owner, token_type, amount)
        owner   = normalize_address(owner)

        coin = self.coins.withdraw(owner, token_type, amount)
        merge(self._vaults[token_type], coin)

        self._balances[(owner, token_type)] = updated
        logger.info("Deposit %s %s by %s", amount, token_type, owner)
        return updated

    def withdraw(self, owner: str, token_type: str, amount: int) -> int:
        """
        Move amount from custody back to owner's external balance.

        Returns the remaining custodial balance (0 means the record is gone).
        """
        remaining = self.check_withdraw(owner, token_type, amount)
        owner     = normalize_address(owner)

        vault   = self._vaults[token_type]
        _, coin = split(vault, amount)
        try:
            self.coins.deposit(owner, coin)
        except Exception:
            merge(vault, coin)
            raise

        self._store((owner, token_type), remaining)
        logger.info("Withdraw %s %s by %s", amount, token_type, owner)
        return remaining

    # ── Settlement primitives ─────────────────────────────────

    def plan_split(
        self,
        token_type: str,
        debtor:     str,
        debit:      int,
        credits:    Iterable[Tuple[str, int]],
    ) -> SplitPlan:
        """
        Check a debit of `debit` from debtor and the listed credits.

        Nothing is mutated. Raises InsufficientCustodialBalance or
        ArithmeticOverflow. Parties may repeat or coincide with the debtor;
        their movements accumulate.
        """
        self.require_token_type(token_type)
        debtor_key = (normalize_address(debtor), token_type)

        staged: Dict[BalanceKey, int] = {}
        staged[debtor_key] = self._debit_check(debtor_key, debit)

        for party, amount in credits:
            key = (normalize_address(party), token_type)
            base = staged.get(key, self._balances.get(key, 0))
            staged[key] = checked_add(base, amount, "custodial balance")

        return SplitPlan(token_type=token_type, updates=tuple(staged.items()))

    def apply_split(self, plan: SplitPlan) -> None:
        for key, new_value in plan.updates:
            self._store(key, new_value)

    # ── Internal ──────────────────────────────────────────────

    def _debit_check(self, key: BalanceKey, amount: int) -> int:
        held = self._balances.get(key, 0)
        if held < amount:
            raise InsufficientCustodialBalance(
                "Custodial balance too low",
                {"owner": key[0], "token_type": key[1], "held": held, "requested": amount},
            )
        return held - amount

    def _store(self, key: BalanceKey, value: int) -> None:
        if value:
            self._balances[key] = value
        else:
            self._balances.pop(key, None)

