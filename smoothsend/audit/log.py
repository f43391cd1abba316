"""
smoothsend/audit/log.py

Append-only audit log.

Record chain:
    prev_hash of record 0 = GENESIS_HASH ("0" * 64)
    prev_hash of record n = SHA-256(JCS(record[n-1].to_dict()))

append() MUST, in this exact order:
  1. Acquire lock
  2. Build the record from the current sequence and last hash
  3. Write it (JSONL line, or memory only when no path was given)
  4. Advance internal state — only after a confirmed write
  5. Return the record

The settlement engine appends BEFORE it commits ledger state, so a failed
write (AuditLogError) leaves balances and nonces untouched.

Nothing in the protocol reads this log back.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from smoothsend.core.canonical import canonical_hash
from smoothsend.core.exceptions import AuditLogError
from smoothsend.core.time import iso_timestamp

logger = logging.getLogger(__name__)


GENESIS_HASH = "0" * 64


class RecordType:
    """
    Audit record_type string constants.

    These are the ONLY valid values for AuditRecord.record_type.
    """
    TRANSFER           = "transfer"
    DEPOSIT            = "deposit"
    WITHDRAW           = "withdraw"
    EMERGENCY_WITHDRAW = "emergency_withdraw"
    PAUSE              = "pause"
    CONFIG_UPDATE      = "config_update"
    ADMIN_TRANSFER     = "admin_transfer"
    RELAYER_ADDED      = "relayer_added"
    RELAYER_REMOVED    = "relayer_removed"
    TOKEN_TYPE_ADDED   = "token_type_added"


_VALID_RECORD_TYPES: Set[str] = {
    value for name, value in vars(RecordType).items() if name.isupper()
}


@dataclass
class AuditRecord:
    """A single entry in the audit log"""
    sequence:    int
    record_type: str
    timestamp:   str
    payload:     Dict[str, Any]
    prev_hash:   str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence":    self.sequence,
            "record_type": self.record_type,
            "timestamp":   self.timestamp,
            "payload":     self.payload,
            "prev_hash":   self.prev_hash,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AuditRecord":
        return AuditRecord(
            sequence=    data["sequence"],
            record_type= data["record_type"],
            timestamp=   data["timestamp"],
            payload=     data["payload"],
            prev_hash=   data["prev_hash"],
        )

    def compute_hash(self) -> str:
        """Hash of this record for chaining"""
        return canonical_hash(self.to_dict())


@dataclass
class ChainReport:
    """Result of replaying an audit log."""
    total_records: int = 0
    by_type:       Dict[str, int] = field(default_factory=dict)
    violations:    List[str]      = field(default_factory=list)

    @property
    def chain_valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "chain_valid":   self.chain_valid,
            "by_type":       dict(self.by_type),
            "violations":    list(self.violations),
        }


def check_chain(records: List[AuditRecord]) -> ChainReport:
    """Replay records from genesis and collect every violation."""
    report    = ChainReport()
    prev_hash = GENESIS_HASH
    for i, record in enumerate(records):
        report.total_records += 1
        report.by_type[record.record_type] = report.by_type.get(record.record_type, 0) + 1
        if record.sequence != i:
            report.violations.append(
                f"sequence gap at position {i}: got {record.sequence}"
            )
        if record.prev_hash != prev_hash:
            report.violations.append(
                f"chain break at sequence {record.sequence}: "
                f"expected ...{prev_hash[-12:]}, got ...{str(record.prev_hash)[-12:]}"
            )
        if record.record_type not in _VALID_RECORD_TYPES:
            report.violations.append(
                f"unknown record_type at sequence {record.sequence}: {record.record_type!r}"
            )
        prev_hash = record.compute_hash()
    return report


def load_records(path: Union[str, Path]) -> List[AuditRecord]:
    """
    Read a JSONL audit log.
    Raises AuditLogError on unreadable files or malformed lines.
    """
    records = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(AuditRecord.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, TypeError) as exc:
                    raise AuditLogError(
                        f"Invalid audit record at line {line_num}: {exc}"
                    ) from exc
    except OSError as exc:
        raise AuditLogError(f"Failed to read audit log {path}: {exc}") from exc
    return records


class AuditLog:
    """
    Hash-chained, append-only event sink.

    path=None keeps records in memory only. With a path, records are
    JSONL lines and an existing file is replayed and verified on open.
    Thread-safe via internal lock (single-process only).
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else None

        self._lock:      threading.Lock    = threading.Lock()
        self._records:   List[AuditRecord] = []
        self._last_hash: str               = GENESIS_HASH

        if self.path is not None and self.path.exists():
            self._restore()

    # ── Public API ────────────────────────────────────────────

    def append(
        self,
        record_type: str,
        payload:     Dict[str, Any],
        at:          Optional[int] = None,
    ) -> AuditRecord:
        """
        Append one record.

        Args:
            record_type: Must be a RecordType constant.
            payload:     JSON-serializable dict.
            at:          Seconds since epoch for the timestamp; now if None.

        Raises AuditLogError on unknown record_type or write failure.
        """
        if record_type not in _VALID_RECORD_TYPES:
            raise AuditLogError(
                "Unknown audit record_type",
                {"record_type": record_type},
            )
        with self._lock:
            record = AuditRecord(
                sequence=    len(self._records),
                record_type= record_type,
                timestamp=   iso_timestamp(at),
                payload=     payload,
                prev_hash=   self._last_hash,
            )
            try:
                record_hash = record.compute_hash()
            except (TypeError, ValueError) as exc:
                raise AuditLogError(
                    f"Audit payload is not canonical JSON: {exc}"
                ) from exc

            if self.path is not None:
                self._write(record)

            self._records.append(record)
            self._last_hash = record_hash
            return record

    def records(self, record_type: Optional[str] = None) -> List[AuditRecord]:
        with self._lock:
            if record_type is None:
                return list(self._records)
            return [r for r in self._records if r.record_type == record_type]

    def verify_chain(self) -> bool:
        with self._lock:
            return check_chain(self._records).chain_valid

    @property
    def last_hash(self) -> str:
        return self._last_hash

    def __len__(self) -> int:
        return len(self._records)

    # ── Internal ──────────────────────────────────────────────

    def _restore(self) -> None:
        records = load_records(self.path)
        report  = check_chain(records)
        if not report.chain_valid:
            raise AuditLogError(
                f"Audit log {self.path} failed verification",
                {"first_violation": report.violations[0]},
            )
        self._records = records
        if records:
            self._last_hash = records[-1].compute_hash()
        logger.info("Restored %d audit records from %s", len(records), self.path)

    def _write(self, record: AuditRecord) -> None:
        """
        Append one record as a newline-terminated JSON line.
        State MUST NOT advance if this raises.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict()) + "\n")
        except (OSError, TypeError, ValueError) as exc:
            raise AuditLogError(
                f"Audit log write failed: {exc}"
            ) from exc
