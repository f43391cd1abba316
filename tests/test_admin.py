"""
tests/test_admin.py

Admin controls: every operation is gated on the current admin and leaves
an audit record.
"""

import pytest

from smoothsend.audit.log import RecordType
from smoothsend.core.exceptions import (
    InsufficientCustodialBalance,
    NotAdmin,
    ProtocolPaused,
    TokenTypeNotInitialized,
)
from smoothsend.core.primitives import normalize_address

from conftest import ADMIN, RECIPIENT, SENDER, TOKEN, TREASURY


STRANGER  = "0x5742"
NEW_ADMIN = "0xad2"


class TestAdminGate:

    @pytest.mark.parametrize("call", [
        lambda p: p.set_paused(STRANGER, True),
        lambda p: p.update_config(STRANGER, TREASURY, 120, 0),
        lambda p: p.transfer_admin(STRANGER, STRANGER),
        lambda p: p.emergency_withdraw(STRANGER, SENDER, TOKEN, 1),
        lambda p: p.add_relayer(STRANGER, "0x1"),
        lambda p: p.remove_relayer(STRANGER, "0x1"),
        lambda p: p.register_token_type(STRANGER, "0x1::new::NEW"),
    ])
    def test_non_admin_rejected(self, protocol, call):
        before_config = protocol.get_config()
        before_audit  = len(protocol.audit)
        with pytest.raises(NotAdmin):
            call(protocol)
        assert protocol.get_config() == before_config
        assert len(protocol.audit) == before_audit

    def test_admin_address_spelling(self, protocol):
        protocol.set_paused("0x" + "0" * 62 + "AD", True)
        assert protocol.is_paused()


class TestPause:

    def test_pause_and_unpause(self, protocol):
        protocol.set_paused(ADMIN, True)
        assert protocol.is_paused()
        protocol.set_paused(ADMIN, False)
        assert not protocol.is_paused()
        records = protocol.audit.records(RecordType.PAUSE)
        assert [r.payload["paused"] for r in records] == [True, False]

    def test_pause_does_not_block_deposit_or_withdraw(self, protocol):
        protocol.set_paused(ADMIN, True)
        protocol.deposit(SENDER, TOKEN, 10)
        protocol.withdraw(SENDER, TOKEN, 10)

    def test_pause_blocks_settlement(self, protocol, submit):
        protocol.set_paused(ADMIN, True)
        with pytest.raises(ProtocolPaused):
            submit()


class TestUpdateConfig:

    def test_update(self, protocol):
        updated = protocol.update_config(ADMIN, "0x7f", 125, 50)
        assert updated.treasury == normalize_address("0x7f")
        assert updated.fee_margin == 125
        assert updated.base_gas_cost == 50
        assert protocol.quote_fee(100) == (25, 125)

    def test_no_bounds_by_default(self, protocol):
        protocol.update_config(ADMIN, "0x0", 5, 0)
        assert protocol.get_config().fee_margin == 5

    def test_new_treasury_receives_fees(self, protocol, submit):
        protocol.update_config(ADMIN, "0x7f", 110, 0)
        submit()
        assert protocol.balance_of("0x7f", TOKEN) == 10
        assert protocol.balance_of(TREASURY, TOKEN) == 0

    def test_audited(self, protocol):
        protocol.update_config(ADMIN, "0x7f", 125, 50)
        record = protocol.audit.records(RecordType.CONFIG_UPDATE)[-1]
        assert record.payload["fee_margin"] == "125"
        assert record.payload["base_gas_cost"] == "50"


class TestTransferAdmin:

    def test_single_step_transfer(self, protocol):
        protocol.transfer_admin(ADMIN, NEW_ADMIN)
        assert protocol.get_config().admin == normalize_address(NEW_ADMIN)
        with pytest.raises(NotAdmin):
            protocol.set_paused(ADMIN, True)
        protocol.set_paused(NEW_ADMIN, True)

    def test_audited(self, protocol):
        protocol.transfer_admin(ADMIN, NEW_ADMIN)
        record = protocol.audit.records(RecordType.ADMIN_TRANSFER)[-1]
        assert record.payload == {
            "from": normalize_address(ADMIN),
            "to":   normalize_address(NEW_ADMIN),
        }


class TestEmergencyWithdraw:

    def test_returns_funds_to_the_user(self, protocol):
        external_before = protocol.coins.balance(SENDER, TOKEN)
        remaining = protocol.emergency_withdraw(ADMIN, SENDER, TOKEN, 400)
        assert remaining == 600
        assert protocol.balance_of(SENDER, TOKEN) == 600
        assert protocol.coins.balance(SENDER, TOKEN) == external_before + 400
        assert protocol.coins.balance(ADMIN, TOKEN) == 0

    def test_full_unwind_removes_record(self, protocol):
        protocol.emergency_withdraw(ADMIN, SENDER, TOKEN, 1_000)
        assert not protocol.ledger.has_record(SENDER, TOKEN)

    def test_more_than_stored(self, protocol):
        with pytest.raises(InsufficientCustodialBalance):
            protocol.emergency_withdraw(ADMIN, SENDER, TOKEN, 1_001)
        assert protocol.balance_of(SENDER, TOKEN) == 1_000

    def test_user_without_record(self, protocol):
        with pytest.raises(InsufficientCustodialBalance):
            protocol.emergency_withdraw(ADMIN, RECIPIENT, TOKEN, 1)

    def test_unregistered_token_type(self, protocol):
        with pytest.raises(TokenTypeNotInitialized):
            protocol.emergency_withdraw(ADMIN, SENDER, "0x1::none::NONE", 1)

    def test_audited(self, protocol):
        protocol.emergency_withdraw(ADMIN, SENDER, TOKEN, 5)
        record = protocol.audit.records(RecordType.EMERGENCY_WITHDRAW)[-1]
        assert record.payload["user"] == normalize_address(SENDER)
        assert record.payload["amount"] == "5"


class TestRegistry:

    def test_register_token_type(self, protocol):
        assert protocol.register_token_type(ADMIN, "0x1::usdt::USDT")
        assert protocol.is_token_type_initialized("0x1::usdt::USDT")
        assert not protocol.register_token_type(ADMIN, "0x1::usdt::USDT")
        assert len(protocol.audit.records(RecordType.TOKEN_TYPE_ADDED)) == 1

    def test_relayer_whitelist(self, protocol):
        assert not protocol.is_relayer_whitelisted("0x99")
        assert protocol.add_relayer(ADMIN, "0x99")
        assert not protocol.add_relayer(ADMIN, "0x99")
        assert protocol.is_relayer_whitelisted("0x0099")
        assert protocol.remove_relayer(ADMIN, "0x99")
        assert not protocol.remove_relayer(ADMIN, "0x99")
        assert not protocol.is_relayer_whitelisted("0x99")
