"""
Settlement engine for gasless transfers.

One call to execute() settles one relayed transfer, all or nothing.

Gate order (first failure aborts, nothing has changed yet):
    1. not paused                                  ProtocolPaused
       relayer whitelisted (policy)                RelayerNotWhitelisted
    2. now <= deadline                             AuthorizationExpired
    3. amount > 0                                  ZeroAmount
       self-transfer / zero address / zero fee     SelfTransfer / InvalidAddress / RelayerFeeZero
    4. declared_gas_cost >= base_gas_cost          GasCostBelowFloor
    5. total_fee <= max_fee                        FeeExceedsMax / ArithmeticOverflow
    6. signature                                   MalformedSignatureInput / SignatureMismatch
    7. nonce                                       NonceMismatch
    8. custodial balance                           TokenTypeNotInitialized / InsufficientCustodialBalance

Then: audit record appended, nonce advance and balance split committed
together. The commit cannot fail.

Fee split:
    protocol_fee = floor(gas * (fee_margin - 100) / 100)   → treasury
    gas                                                    → relayer
    amount                                                 → recipient
    sender debited amount + gas + protocol_fee
"""

import logging
from typing import Tuple

from smoothsend.audit.log import AuditLog, RecordType
from smoothsend.auth.verifier import AuthorizationVerifier
from smoothsend.core.config import ConfigStore
from smoothsend.core.exceptions import (
    AuthorizationExpired,
    FeeExceedsMax,
    GasCostBelowFloor,
    InvalidAddress,
    ProtocolPaused,
    RelayerFeeZero,
    RelayerNotWhitelisted,
    SelfTransfer,
    SmoothSendError,
    ZeroAmount,
)
from smoothsend.core.models import SettlementReceipt, TransferAuthorization, TransferEvent
from smoothsend.core.primitives import (
    checked_add,
    checked_mul,
    checked_sub,
    is_zero_address,
    normalize_address,
    require_u64,
)
from smoothsend.ledger.nonces import NonceRegistry
from smoothsend.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


PERCENT = 100


def compute_fees(declared_gas_cost: int, fee_margin: int) -> Tuple[int, int]:
    """
    Returns (protocol_fee, total_fee).

    The multiplication is range-checked before the division. A fee_margin
    below 100 underflows. Both raise ArithmeticOverflow.
    """
    require_u64(declared_gas_cost, "declared_gas_cost")
    require_u64(fee_margin, "fee_margin")
    markup       = checked_sub(fee_margin, PERCENT, "fee_margin - 100")
    protocol_fee = checked_mul(declared_gas_cost, markup, "gas_cost * markup") // PERCENT
    total_fee    = checked_add(declared_gas_cost, protocol_fee, "total_fee")
    return protocol_fee, total_fee


class SettlementEngine:
    """
    Settles relayed transfers against injected state.

    The engine owns no state of its own. Callers serialize execute()
    calls (see smoothsend.protocol.SmoothSend).
    """

    def __init__(
        self,
        config:   ConfigStore,
        ledger:   LedgerStore,
        nonces:   NonceRegistry,
        audit:    AuditLog,
        clock,
        verifier: AuthorizationVerifier = None,
    ):
        self.config   = config
        self.ledger   = ledger
        self.nonces   = nonces
        self.audit    = audit
        self.clock    = clock
        self.verifier = verifier or AuthorizationVerifier()

    def quote_fee(self, declared_gas_cost: int) -> Tuple[int, int]:
        """(protocol_fee, total_fee) under the current fee_margin."""
        return compute_fees(declared_gas_cost, self.config.get().fee_margin)

    def execute(
        self,
        relayer:           str,
        sender:            str,
        recipient:         str,
        amount:            int,
        max_fee:           int,
        nonce:             int,
        deadline:          int,
        declared_gas_cost: int,
        signature:         bytes,
        public_key:        bytes,
        token_type:        str,
    ) -> SettlementReceipt:
        """
        Settle one gasless transfer.

        Returns:
            SettlementReceipt for the committed transfer.

        Raises:
            SmoothSendError subclass naming the first gate that failed.
            Nothing has changed when it raises.
        """
        try:
            return self._execute(
                relayer, sender, recipient, amount, max_fee, nonce,
                deadline, declared_gas_cost, signature, public_key, token_type,
            )
        except SmoothSendError as exc:
            logger.warning("Settlement rejected: %s", exc)
            raise

    def _execute(
        self,
        relayer, sender, recipient, amount, max_fee, nonce,
        deadline, declared_gas_cost, signature, public_key, token_type,
    ) -> SettlementReceipt:
        now    = self.clock.now()
        config = self.config.get()
        policy = self.config.policy

        # 1. Pause
        if config.paused:
            raise ProtocolPaused("Protocol is paused")

        relayer = normalize_address(relayer)
        if policy.require_whitelisted_relayer and not self.config.is_relayer_whitelisted(relayer):
            raise RelayerNotWhitelisted(
                "Relayer is not whitelisted",
                {"relayer": relayer},
            )

        auth = TransferAuthorization(
            sender=            sender,
            recipient=         recipient,
            amount=            amount,
            max_fee=           max_fee,
            token_type=        token_type,
            nonce=             nonce,
            deadline=          deadline,
            declared_gas_cost= declared_gas_cost,
        )

        # 2. Expiry
        if now > auth.deadline:
            raise AuthorizationExpired(
                "Authorization deadline has passed",
                {"deadline": auth.deadline, "now": now},
            )

        # 3. Amount, then optional policy gates
        if auth.amount == 0:
            raise ZeroAmount("Transfer amount must be greater than zero")
        if policy.reject_self_transfer and auth.sender == auth.recipient:
            raise SelfTransfer("Sender and recipient are the same", {"sender": auth.sender})
        if policy.reject_zero_address:
            for role, address in (("recipient", auth.recipient), ("relayer", relayer)):
                if is_zero_address(address):
                    raise InvalidAddress(f"{role} must not be the zero address")
        if policy.reject_zero_relayer_fee and auth.declared_gas_cost == 0:
            raise RelayerFeeZero("Declared gas cost must be greater than zero")

        # 4. Gas floor
        if auth.declared_gas_cost < config.base_gas_cost:
            raise GasCostBelowFloor(
                "Declared gas cost is below the configured floor",
                {"declared_gas_cost": auth.declared_gas_cost, "floor": config.base_gas_cost},
            )

        # 5. Fees
        protocol_fee, total_fee = compute_fees(auth.declared_gas_cost, config.fee_margin)
        if total_fee > auth.max_fee:
            raise FeeExceedsMax(
                "Total fee exceeds the signed maximum",
                {"total_fee": total_fee, "max_fee": auth.max_fee},
            )

        # 6. Signature
        digest = self.verifier.verify(auth, signature, public_key)

        # 7. Nonce (compare only; consumed at commit)
        self.nonces.check(auth.sender, auth.nonce)

        # 8. Balance (staged only)
        debit = checked_add(auth.amount, total_fee, "amount + total_fee")
        plan = self.ledger.plan_split(
            token_type,
            auth.sender,
            debit,
            (
                (auth.recipient, auth.amount),
                (config.treasury, protocol_fee),
                (relayer, auth.declared_gas_cost),
            ),
        )

        receipt = SettlementReceipt(
            sender=       auth.sender,
            recipient=    auth.recipient,
            relayer=      relayer,
            treasury=     config.treasury,
            token_type=   token_type,
            amount=       auth.amount,
            gas_cost=     auth.declared_gas_cost,
            protocol_fee= protocol_fee,
            total_fee=    total_fee,
            nonce=        auth.nonce,
            timestamp=    now,
            digest=       digest.hex(),
        )

        # 9. Audit — before commit, so a failed write changes nothing
        self.audit.append(
            RecordType.TRANSFER,
            TransferEvent.from_receipt(receipt).to_dict(),
            at=now,
        )

        # Commit: nonce and balances together
        self.nonces.advance(auth.sender, auth.nonce)
        self.ledger.apply_split(plan)

        logger.info(
            "Settled %s %s %s -> %s (gas=%s, protocol_fee=%s, relayer=%s, nonce=%s)",
            auth.amount, token_type, auth.sender, auth.recipient,
            auth.declared_gas_cost, protocol_fee, relayer, auth.nonce,
        )
        return receipt
