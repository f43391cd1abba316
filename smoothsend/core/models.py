"""
smoothsend/core/models.py

Value objects that flow through a settlement.

TransferAuthorization   — what the sender signed. Never stored; only
                          encoded, hashed and verified.
SettlementReceipt       — what execute() returns to the relayer.
TransferEvent           — what the audit log records for a settlement.

u64 figures are written as decimal strings in dict form so the records
survive JSON consumers that parse numbers as IEEE doubles.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from smoothsend.core.exceptions import ValidationError
from smoothsend.core.primitives import normalize_address, require_u64


_U64_FIELDS = (
    "amount",
    "max_fee",
    "nonce",
    "deadline",
    "declared_gas_cost",
)


def require_token_type(token_type: str) -> str:
    if not isinstance(token_type, str) or not token_type:
        raise ValidationError(
            "token_type must be a non-empty string",
            {"token_type": repr(token_type)},
        )
    return token_type


@dataclass(frozen=True)
class TransferAuthorization:
    """
    The fields a sender signs to authorize one gasless transfer.

    Field order here is the signing order.
    Addresses are normalized on construction, so two authorizations that
    differ only in address spelling ("0x1" vs "0x00..01") are equal and
    hash identically.
    """
    sender:            str
    recipient:         str
    amount:            int
    max_fee:           int
    token_type:        str
    nonce:             int
    deadline:          int
    declared_gas_cost: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", normalize_address(self.sender))
        object.__setattr__(self, "recipient", normalize_address(self.recipient))
        require_token_type(self.token_type)
        for name in _U64_FIELDS:
            require_u64(getattr(self, name), name)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in _U64_FIELDS:
            data[name] = str(data[name])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransferAuthorization":
        """Build from a JSON-style dict. u64 fields may be ints or decimal strings."""
        expected = set(cls.__dataclass_fields__)
        missing  = expected - set(data)
        unknown  = set(data) - expected
        if missing or unknown:
            raise ValidationError(
                "Authorization fields do not match",
                {"missing": sorted(missing), "unknown": sorted(unknown)},
            )
        values = dict(data)
        for name in _U64_FIELDS:
            value = values[name]
            if isinstance(value, str):
                if not (value.isascii() and value.isdigit()):
                    raise ValidationError(
                        f"{name} must be a decimal integer",
                        {"field": name, "value": value},
                    )
                values[name] = int(value)
        return cls(**values)


@dataclass(frozen=True)
class SettlementReceipt:
    """Outcome of one successful settlement."""
    sender:        str
    recipient:     str
    relayer:       str
    treasury:      str
    token_type:    str
    amount:        int
    gas_cost:      int
    protocol_fee:  int
    total_fee:     int
    nonce:         int
    timestamp:     int
    digest:        str

    @property
    def total_debited(self) -> int:
        return self.amount + self.total_fee


@dataclass(frozen=True)
class TransferEvent:
    """Audit payload for one settlement. Write-once; never read back by the engine."""
    sender:        str
    recipient:     str
    amount:        int
    gas_cost:      int
    protocol_fee:  int
    total_fee:     int
    token_type:    str
    relayer:       str
    timestamp:     int

    @classmethod
    def from_receipt(cls, receipt: SettlementReceipt) -> "TransferEvent":
        return cls(
            sender=       receipt.sender,
            recipient=    receipt.recipient,
            amount=       receipt.amount,
            gas_cost=     receipt.gas_cost,
            protocol_fee= receipt.protocol_fee,
            total_fee=    receipt.total_fee,
            token_type=   receipt.token_type,
            relayer=      receipt.relayer,
            timestamp=    receipt.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in ("amount", "gas_cost", "protocol_fee", "total_fee", "timestamp"):
            data[name] = str(data[name])
        return data
