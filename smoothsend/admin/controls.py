"""
Administrative controls.

Every operation here requires caller == current admin (NotAdmin otherwise)
and leaves one audit record behind. Each one validates first, appends its
audit record, and only then changes state: an AuditLogError leaves the
deployment exactly as it was.

Emergency withdrawal returns a user's custodial balance to that same
user's external balance. It is an unwind, never a seizure: there is no
destination parameter.
"""

import logging

from smoothsend.audit.log import AuditLog, RecordType
from smoothsend.core.config import ConfigStore, ProtocolConfig
from smoothsend.core.models import require_token_type
from smoothsend.core.primitives import normalize_address
from smoothsend.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


class AdminControls:
    """Admin-gated operations over one deployment's state."""

    def __init__(self, config: ConfigStore, ledger: LedgerStore, audit: AuditLog, clock):
        self.config = config
        self.ledger = ledger
        self.audit  = audit
        self.clock  = clock

    def set_paused(self, caller: str, value: bool) -> None:
        caller = self.config.require_admin(caller)
        self._record(RecordType.PAUSE, {"paused": bool(value), "by": caller})
        self.config.set_paused(caller, value)
        logger.warning("Protocol %s by %s", "paused" if value else "unpaused", caller)

    def update_config(
        self,
        caller:        str,
        treasury:      str,
        fee_margin:    int,
        base_gas_cost: int,
    ) -> ProtocolConfig:
        staged = self.config.prepare_update(caller, treasury, fee_margin, base_gas_cost)
        self._record(RecordType.CONFIG_UPDATE, {
            "treasury":      staged.treasury,
            "fee_margin":    str(staged.fee_margin),
            "base_gas_cost": str(staged.base_gas_cost),
            "by":            staged.admin,
        })
        updated = self.config.apply(staged)
        logger.info(
            "Config updated: treasury=%s fee_margin=%s base_gas_cost=%s",
            updated.treasury, updated.fee_margin, updated.base_gas_cost,
        )
        return updated

    def transfer_admin(self, caller: str, new_admin: str) -> str:
        """Single-step: the new admin takes effect immediately."""
        previous  = self.config.require_admin(caller)
        new_admin = normalize_address(new_admin)
        self._record(RecordType.ADMIN_TRANSFER, {"from": previous, "to": new_admin})
        self.config.transfer_admin(previous, new_admin)
        logger.warning("Admin transferred from %s to %s", previous, new_admin)
        return new_admin

    def emergency_withdraw(self, caller: str, user: str, token_type: str, amount: int) -> int:
        """
        Return amount of user's custodial balance to user's external balance.

        Returns the user's remaining custodial balance.
        """
        admin = self.config.require_admin(caller)
        user  = normalize_address(user)
        self.ledger.check_withdraw(user, token_type, amount)
        self._record(RecordType.EMERGENCY_WITHDRAW, {
            "user":       user,
            "token_type": token_type,
            "amount":     str(amount),
            "by":         admin,
        })
        remaining = self.ledger.withdraw(user, token_type, amount)
        logger.warning("Emergency withdrawal of %s %s for %s", amount, token_type, user)
        return remaining

    def add_relayer(self, caller: str, relayer: str) -> bool:
        """Returns False if the relayer was already listed."""
        caller  = self.config.require_admin(caller)
        relayer = normalize_address(relayer)
        if self.config.is_relayer_whitelisted(relayer):
            return False
        self._record(RecordType.RELAYER_ADDED, {"relayer": relayer})
        self.config.add_relayer(caller, relayer)
        logger.info("Relayer %s whitelisted", relayer)
        return True

    def remove_relayer(self, caller: str, relayer: str) -> bool:
        """Returns False if the relayer was not listed."""
        caller  = self.config.require_admin(caller)
        relayer = normalize_address(relayer)
        if not self.config.is_relayer_whitelisted(relayer):
            return False
        self._record(RecordType.RELAYER_REMOVED, {"relayer": relayer})
        self.config.remove_relayer(caller, relayer)
        logger.info("Relayer %s removed from whitelist", relayer)
        return True

    def register_token_type(self, caller: str, token_type: str) -> bool:
        self.config.require_admin(caller)
        require_token_type(token_type)
        if self.ledger.is_token_type_initialized(token_type):
            return False
        self._record(RecordType.TOKEN_TYPE_ADDED, {"token_type": token_type})
        return self.ledger.register_token_type(token_type)

    def _record(self, record_type: str, payload: dict) -> None:
        self.audit.append(record_type, payload, at=self.clock.now())
