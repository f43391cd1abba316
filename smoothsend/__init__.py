"""
smoothsend/__init__.py

SmoothSend: custodial ledger and gasless-transfer settlement

A sender signs a TransferAuthorization off-line. Any relayer can submit
it; the relayer is reimbursed its declared gas cost and the treasury
keeps a margin, both paid out of the transferred token.
"""

__version__ = "2.0.0"

from smoothsend.audit.log import AuditLog, RecordType
from smoothsend.auth.verifier import (
    AuthorizationVerifier,
    sign_authorization,
    signing_digest,
)
from smoothsend.core.config import DeploymentSettings, ProtocolConfig, TransferPolicy
from smoothsend.core.crypto import Ed25519KeyManager
from smoothsend.core.exceptions import SmoothSendError
from smoothsend.core.models import SettlementReceipt, TransferAuthorization, TransferEvent
from smoothsend.core.time import ManualClock, SystemClock
from smoothsend.ledger.coins import CoinStore
from smoothsend.protocol import SmoothSend

__all__ = [
    # Deployment
    "SmoothSend",
    "DeploymentSettings",
    "ProtocolConfig",
    "TransferPolicy",
    # Transfer types
    "TransferAuthorization",
    "SettlementReceipt",
    "TransferEvent",
    # Signing
    "AuthorizationVerifier",
    "Ed25519KeyManager",
    "sign_authorization",
    "signing_digest",
    # Collaborators
    "AuditLog",
    "RecordType",
    "CoinStore",
    "ManualClock",
    "SystemClock",
    # Errors
    "SmoothSendError",
]
