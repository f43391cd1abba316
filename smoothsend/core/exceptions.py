"""
SmoothSend Exception Hierarchy

All exceptions inherit from SmoothSendError for easy catching.
Every concrete error carries a stable numeric ``code`` so relayers can map
failures without matching on message text.
"""


class SmoothSendError(Exception):
    """Base exception for all SmoothSend errors"""

    code: int = 0

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[E{self.code}] {self.message} ({details_str})"
        return f"[E{self.code}] {self.message}"


# ── Grouping bases ───────────────────────────────────────────

class ConfigurationError(SmoothSendError):
    """Raised when an administrative operation is refused"""
    pass


class LedgerError(SmoothSendError):
    """Raised when a custodial balance operation fails"""
    pass


class AuthorizationError(SmoothSendError):
    """Raised when a transfer authorization is not acceptable"""
    pass


class SettlementError(SmoothSendError):
    """Raised when a settlement gate rejects a transfer"""
    pass


# ── Configuration ────────────────────────────────────────────

class NotAdmin(ConfigurationError):
    """Caller is not the current protocol admin"""
    code = 1


class ParameterOutOfBounds(ConfigurationError):
    """Config update outside the enforced parameter bounds"""
    code = 18


# ── Ledger ───────────────────────────────────────────────────

class TokenTypeNotInitialized(LedgerError):
    """Token type has not been registered with the ledger"""
    code = 3


class InsufficientCustodialBalance(LedgerError):
    """Stored custodial amount is below the requested amount"""
    code = 4


class InsufficientExternalBalance(LedgerError):
    """The owner's externally-held balance cannot cover a deposit"""
    code = 17


# ── Authorization ────────────────────────────────────────────

class AuthorizationExpired(AuthorizationError):
    code = 11


class MalformedSignatureInput(AuthorizationError):
    """Public key or signature has the wrong length"""
    code = 14


class SignatureMismatch(AuthorizationError):
    code = 15


class NonceMismatch(AuthorizationError):
    code = 16


# ── Settlement ───────────────────────────────────────────────

class RelayerNotWhitelisted(SettlementError):
    code = 2


class ZeroAmount(SettlementError):
    code = 5


class SelfTransfer(SettlementError):
    code = 6


class ArithmeticOverflow(SettlementError):
    """A u64 quantity overflowed or underflowed"""
    code = 7


class RelayerFeeZero(SettlementError):
    code = 8


class InvalidAddress(SettlementError):
    code = 9


class ProtocolPaused(SettlementError):
    code = 10


class GasCostBelowFloor(SettlementError):
    code = 12


class FeeExceedsMax(SettlementError):
    code = 13


# ── Input / infrastructure ───────────────────────────────────

class ValidationError(SmoothSendError):
    """Raised when input data is malformed"""
    code = 19


class AuditLogError(SmoothSendError):
    """Raised when the audit log cannot be written or read"""
    code = 20
