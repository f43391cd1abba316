"""
SmoothSend Ledger - custodial balances and replay protection

The ledger is the only place custodial balances and nonces change.
"""

from smoothsend.ledger.coins import Coin, CoinStore
from smoothsend.ledger.nonces import NonceRegistry
from smoothsend.ledger.store import LedgerStore, SplitPlan

__all__ = ["Coin", "CoinStore", "LedgerStore", "NonceRegistry", "SplitPlan"]
