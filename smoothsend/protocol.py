"""
smoothsend/protocol.py

One SmoothSend deployment.

Owns every piece of state (config, custodial ledger, nonces, audit log)
and runs each public operation under a single lock. No two calls observe
or produce an interleaved intermediate state; the nonce compare-and-
advance inside execute() is what makes a replayed or concurrently
resubmitted authorization fail.

Independent deployments are independent objects. There is no module-level
state.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Tuple, Union

from smoothsend.admin.controls import AdminControls
from smoothsend.audit.log import AuditLog, RecordType
from smoothsend.auth.verifier import AuthorizationVerifier, signing_digest
from smoothsend.core.config import ConfigStore, DeploymentSettings, ProtocolConfig
from smoothsend.core.models import SettlementReceipt, TransferAuthorization
from smoothsend.core.primitives import normalize_address
from smoothsend.core.time import SystemClock
from smoothsend.ledger.coins import CoinStore
from smoothsend.ledger.nonces import NonceRegistry
from smoothsend.ledger.store import LedgerStore
from smoothsend.settlement.engine import SettlementEngine

logger = logging.getLogger(__name__)


class SmoothSend:
    """
    Custodial ledger and gasless-transfer settlement for one deployment.

    Args:
        settings:  Initial admin, treasury, fees, policy, token types, relayers.
        coins:     External token custody. A fresh in-memory CoinStore if None.
        audit_log: Event sink. An in-memory AuditLog if None.
        clock:     Anything with now() -> int seconds. SystemClock if None.
    """

    def __init__(
        self,
        settings:  DeploymentSettings,
        coins:     Optional[CoinStore] = None,
        audit_log: Optional[AuditLog] = None,
        clock=None,
    ) -> None:
        self._lock = threading.RLock()

        self.clock  = clock or SystemClock()
        self.coins  = coins if coins is not None else CoinStore()
        self.audit  = audit_log if audit_log is not None else AuditLog()
        self.config = ConfigStore(settings)
        self.ledger = LedgerStore(self.coins)
        self.nonces = NonceRegistry()

        self.verifier = AuthorizationVerifier()
        self.engine   = SettlementEngine(
            config=   self.config,
            ledger=   self.ledger,
            nonces=   self.nonces,
            audit=    self.audit,
            clock=    self.clock,
            verifier= self.verifier,
        )
        self.admin = AdminControls(self.config, self.ledger, self.audit, self.clock)

        for token_type in settings.token_types:
            self.ledger.register_token_type(token_type)

        logger.info(
            "Deployment ready: admin=%s treasury=%s fee_margin=%s base_gas_cost=%s",
            settings.admin, settings.treasury, settings.fee_margin, settings.base_gas_cost,
        )

    @classmethod
    def from_yaml(
        cls,
        path:      Union[str, Path],
        coins:     Optional[CoinStore] = None,
        audit_log: Optional[AuditLog] = None,
        clock=None,
    ) -> "SmoothSend":
        return cls(DeploymentSettings.from_yaml(path), coins=coins, audit_log=audit_log, clock=clock)

    # ── Custody ───────────────────────────────────────────────

    # Checks run before the audit append and value moves after it, so a
    # failed audit write leaves both balances untouched.

    def deposit(self, owner: str, token_type: str, amount: int) -> int:
        with self._lock:
            self.ledger.check_deposit(owner, token_type, amount)
            self._record(RecordType.DEPOSIT, owner, token_type, amount)
            return self.ledger.deposit(owner, token_type, amount)

    def withdraw(self, owner: str, token_type: str, amount: int) -> int:
        with self._lock:
            self.ledger.check_withdraw(owner, token_type, amount)
            self._record(RecordType.WITHDRAW, owner, token_type, amount)
            return self.ledger.withdraw(owner, token_type, amount)

    def balance_of(self, owner: str, token_type: str) -> int:
        with self._lock:
            return self.ledger.balance_of(owner, token_type)

    # ── Settlement ────────────────────────────────────────────

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
        with self._lock:
            return self.engine.execute(
                relayer=           relayer,
                sender=            sender,
                recipient=         recipient,
                amount=            amount,
                max_fee=           max_fee,
                nonce=             nonce,
                deadline=          deadline,
                declared_gas_cost= declared_gas_cost,
                signature=         signature,
                public_key=        public_key,
                token_type=        token_type,
            )

    def execute_authorization(
        self,
        relayer:    str,
        auth:       TransferAuthorization,
        signature:  bytes,
        public_key: bytes,
    ) -> SettlementReceipt:
        """execute() taking the signed fields as one value."""
        return self.execute(
            relayer=           relayer,
            sender=            auth.sender,
            recipient=         auth.recipient,
            amount=            auth.amount,
            max_fee=           auth.max_fee,
            nonce=             auth.nonce,
            deadline=          auth.deadline,
            declared_gas_cost= auth.declared_gas_cost,
            signature=         signature,
            public_key=        public_key,
            token_type=        auth.token_type,
        )

    def quote_fee(self, declared_gas_cost: int) -> Tuple[int, int]:
        with self._lock:
            return self.engine.quote_fee(declared_gas_cost)

    def current_nonce(self, user: str) -> int:
        with self._lock:
            return self.nonces.current_nonce(user)

    @staticmethod
    def signing_digest(auth: TransferAuthorization) -> bytes:
        return signing_digest(auth)

    # ── Admin ─────────────────────────────────────────────────

    def set_paused(self, caller: str, value: bool) -> None:
        with self._lock:
            self.admin.set_paused(caller, value)

    def update_config(self, caller: str, treasury: str, fee_margin: int, base_gas_cost: int) -> ProtocolConfig:
        with self._lock:
            return self.admin.update_config(caller, treasury, fee_margin, base_gas_cost)

    def transfer_admin(self, caller: str, new_admin: str) -> str:
        with self._lock:
            return self.admin.transfer_admin(caller, new_admin)

    def emergency_withdraw(self, caller: str, user: str, token_type: str, amount: int) -> int:
        with self._lock:
            return self.admin.emergency_withdraw(caller, user, token_type, amount)

    def add_relayer(self, caller: str, relayer: str) -> bool:
        with self._lock:
            return self.admin.add_relayer(caller, relayer)

    def remove_relayer(self, caller: str, relayer: str) -> bool:
        with self._lock:
            return self.admin.remove_relayer(caller, relayer)

    def register_token_type(self, caller: str, token_type: str) -> bool:
        with self._lock:
            return self.admin.register_token_type(caller, token_type)

    # ── Views ─────────────────────────────────────────────────

    def get_config(self) -> ProtocolConfig:
        with self._lock:
            return self.config.get()

    def is_paused(self) -> bool:
        with self._lock:
            return self.config.paused

    def is_relayer_whitelisted(self, relayer: str) -> bool:
        with self._lock:
            return self.config.is_relayer_whitelisted(relayer)

    def is_token_type_initialized(self, token_type: str) -> bool:
        with self._lock:
            return self.ledger.is_token_type_initialized(token_type)

    def token_types(self) -> List[str]:
        with self._lock:
            return self.ledger.token_types()

    # ── Internal ──────────────────────────────────────────────

    def _record(self, record_type: str, owner: str, token_type: str, amount: int) -> None:
        self.audit.append(
            record_type,
            {"owner": normalize_address(owner), "token_type": token_type, "amount": str(amount)},
            at=self.clock.now(),
        )

    def __repr__(self) -> str:
        return (
            f"SmoothSend(admin={self.config.admin[:10]}..., "
            f"paused={self.config.paused}, "
            f"token_types={len(self.ledger.token_types())})"
        )
