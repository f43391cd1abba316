"""
SmoothSend Settlement Engine

Settles one relayed, pre-authorized transfer:
- checks pause, expiry, amount, gas floor and fee ceiling
- verifies the sender's signature over the exact request fields
- consumes the sender's nonce
- splits the debit among recipient, relayer and treasury

Critical Invariants:
- Every failure leaves balances and nonces untouched
- A nonce settles at most once
- debited == credited, to the unit
"""

from smoothsend.settlement.engine import SettlementEngine, compute_fees

__all__ = ["SettlementEngine", "compute_fees"]
