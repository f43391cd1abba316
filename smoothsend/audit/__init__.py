"""
SmoothSend Audit Log - append-only record of every state change

Observational only: no protocol invariant reads it back.
"""

from smoothsend.audit.log import (
    GENESIS_HASH,
    AuditLog,
    AuditRecord,
    ChainReport,
    RecordType,
    check_chain,
    load_records,
)

__all__ = [
    "AuditLog",
    "AuditRecord",
    "ChainReport",
    "RecordType",
    "check_chain",
    "load_records",
    "GENESIS_HASH",
]
