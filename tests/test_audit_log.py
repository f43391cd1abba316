"""
tests/test_audit_log.py

Hash-chained audit log: chaining, persistence, restore and tamper detection.
"""

import json

import pytest

from smoothsend import DeploymentSettings, SmoothSend
from smoothsend.audit.log import (
    GENESIS_HASH,
    AuditLog,
    RecordType,
    check_chain,
    load_records,
)
from smoothsend.core.exceptions import AuditLogError, InsufficientExternalBalance

from conftest import ADMIN, RELAYER, SENDER, START_TIME, TOKEN, TREASURY


def fill(log, n=3):
    for i in range(n):
        log.append(RecordType.DEPOSIT, {"owner": "0x1", "amount": str(i + 1)}, at=START_TIME + i)


class TestChaining:

    def test_first_record_links_to_genesis(self):
        log = AuditLog()
        record = log.append(RecordType.PAUSE, {"paused": True}, at=START_TIME)
        assert record.sequence == 0
        assert record.prev_hash == GENESIS_HASH
        assert log.last_hash == record.compute_hash()

    def test_records_link(self):
        log = AuditLog()
        fill(log)
        records = log.records()
        for prev, current in zip(records, records[1:]):
            assert current.prev_hash == prev.compute_hash()
        assert log.verify_chain()
        assert len(log) == 3

    def test_filter_by_type(self):
        log = AuditLog()
        fill(log, 2)
        log.append(RecordType.PAUSE, {"paused": True}, at=START_TIME)
        assert len(log.records(RecordType.DEPOSIT)) == 2
        assert len(log.records(RecordType.PAUSE)) == 1

    def test_timestamp_from_clock_seconds(self):
        log = AuditLog()
        record = log.append(RecordType.PAUSE, {"paused": True}, at=START_TIME)
        assert record.timestamp.startswith("2023-11-14T22:13:20")

    def test_unknown_record_type(self):
        log = AuditLog()
        with pytest.raises(AuditLogError):
            log.append("mint", {}, at=START_TIME)
        assert len(log) == 0
        assert log.last_hash == GENESIS_HASH


class TestPersistence:

    def test_jsonl_written(self, tmp_path):
        path = tmp_path / "audit" / "log.jsonl"
        log  = AuditLog(path)
        fill(log)
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert json.loads(lines[0])["record_type"] == "deposit"

    def test_restore_continues_chain(self, tmp_path):
        path = tmp_path / "log.jsonl"
        first = AuditLog(path)
        fill(first)

        reopened = AuditLog(path)
        assert len(reopened) == 3
        assert reopened.last_hash == first.last_hash

        record = reopened.append(RecordType.PAUSE, {"paused": True}, at=START_TIME)
        assert record.sequence == 3
        assert check_chain(load_records(path)).chain_valid

    def test_tampered_file_refused_on_open(self, tmp_path):
        path = tmp_path / "log.jsonl"
        fill(AuditLog(path))

        lines  = path.read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[1])
        record["payload"]["amount"] = "999"
        lines[1] = json.dumps(record)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        with pytest.raises(AuditLogError):
            AuditLog(path)

    def test_malformed_line(self, tmp_path):
        path = tmp_path / "log.jsonl"
        path.write_text("{not json\n", encoding="utf-8")
        with pytest.raises(AuditLogError):
            load_records(path)


class TestCheckChain:

    def test_reports_every_violation(self, tmp_path):
        path = tmp_path / "log.jsonl"
        fill(AuditLog(path))
        records = load_records(path)

        records[0].payload["amount"] = "999"
        records[2].sequence = 7

        report = check_chain(records)
        assert not report.chain_valid
        assert report.total_records == 3
        assert report.by_type == {"deposit": 3}
        assert any("chain break at sequence 1" in v for v in report.violations)
        assert any("sequence gap at position 2" in v for v in report.violations)

    def test_empty_log_is_valid(self):
        assert check_chain([]).chain_valid


class TestSettlementRecords:

    def test_deposit_and_transfer_recorded(self, protocol, submit):
        receipt = submit()
        types = [r.record_type for r in protocol.audit.records()]
        assert types == ["deposit", "transfer"]

        payload = protocol.audit.records(RecordType.TRANSFER)[0].payload
        assert payload["amount"] == "500"
        assert payload["gas_cost"] == "100"
        assert payload["protocol_fee"] == "10"
        assert payload["sender"] == receipt.sender
        assert protocol.audit.verify_chain()


@pytest.fixture
def unwritable_protocol(tmp_path, clock):
    """A file-backed deployment whose audit file has become a directory."""
    path = tmp_path / "audit.jsonl"
    deployment = SmoothSend(
        DeploymentSettings(
            admin=       ADMIN,
            treasury=    TREASURY,
            token_types= [TOKEN],
            relayers=    [RELAYER],
        ),
        audit_log= AuditLog(path),
        clock=     clock,
    )
    deployment.coins.mint(SENDER, TOKEN, 1_000)
    deployment.deposit(SENDER, TOKEN, 100)

    path.unlink()
    path.mkdir()
    return deployment


def state(protocol):
    return (
        protocol.get_config(),
        protocol.config.relayers(),
        protocol.token_types(),
        protocol.ledger.snapshot(),
        protocol.ledger.total_custodied(TOKEN),
        protocol.coins.balance(SENDER, TOKEN),
        len(protocol.audit),
    )


class TestFailedWriteChangesNothing:

    @pytest.mark.parametrize("call", [
        lambda p: p.deposit(SENDER, TOKEN, 400),
        lambda p: p.withdraw(SENDER, TOKEN, 50),
        lambda p: p.set_paused(ADMIN, True),
        lambda p: p.update_config(ADMIN, "0x7f", 150, 10),
        lambda p: p.transfer_admin(ADMIN, "0xad2"),
        lambda p: p.emergency_withdraw(ADMIN, SENDER, TOKEN, 100),
        lambda p: p.add_relayer(ADMIN, "0x99"),
        lambda p: p.remove_relayer(ADMIN, RELAYER),
        lambda p: p.register_token_type(ADMIN, "0x1::usdt::USDT"),
    ], ids=[
        "deposit", "withdraw", "pause", "update_config", "transfer_admin",
        "emergency_withdraw", "add_relayer", "remove_relayer", "register_token_type",
    ])
    def test_state_unchanged(self, unwritable_protocol, call):
        before = state(unwritable_protocol)
        with pytest.raises(AuditLogError):
            call(unwritable_protocol)
        assert state(unwritable_protocol) == before

    def test_deposit_balances(self, unwritable_protocol):
        with pytest.raises(AuditLogError):
            unwritable_protocol.deposit(SENDER, TOKEN, 400)
        assert unwritable_protocol.balance_of(SENDER, TOKEN) == 100
        assert unwritable_protocol.coins.balance(SENDER, TOKEN) == 900

    def test_pause_flag(self, unwritable_protocol):
        with pytest.raises(AuditLogError):
            unwritable_protocol.set_paused(ADMIN, True)
        assert not unwritable_protocol.is_paused()

    def test_rejected_call_writes_nothing(self, protocol):
        before = len(protocol.audit)
        with pytest.raises(InsufficientExternalBalance):
            protocol.deposit(SENDER, TOKEN, 1_000_000)
        assert len(protocol.audit) == before
