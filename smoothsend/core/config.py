"""
smoothsend/core/config.py

Protocol configuration.

ProtocolConfig       — the singleton record: admin, paused, fee_margin,
                       treasury, base_gas_cost.
TransferPolicy       — optional hardening gates, all off by default.
DeploymentSettings   — how a deployment starts; loadable from YAML.
ConfigStore          — owns one ProtocolConfig plus the relayer whitelist
                       and gates every mutation on caller == admin.

fee_margin is a percentage multiplier over gas cost: 110 means the
treasury keeps an extra 10% of declared gas cost.
"""

from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Set

import yaml

from smoothsend.core.exceptions import NotAdmin, ParameterOutOfBounds, ValidationError
from smoothsend.core.models import require_token_type
from smoothsend.core.primitives import (
    MAX_U64,
    is_zero_address,
    normalize_address,
    require_u64,
)


DEFAULT_FEE_MARGIN    = 110
DEFAULT_BASE_GAS_COST = 0

# Only enforced when DeploymentSettings.enforce_parameter_bounds is set
MIN_FEE_MARGIN = 100
MAX_FEE_MARGIN = 1000


@dataclass(frozen=True)
class ProtocolConfig:
    """Read-only snapshot of the protocol configuration."""
    admin:         str
    paused:        bool
    fee_margin:    int
    treasury:      str
    base_gas_cost: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TransferPolicy:
    """
    Optional settlement gates.

    All False reproduces the base behavior: self-transfers, zero-address
    recipients, zero gas cost and unlisted relayers are all accepted.
    """
    reject_self_transfer:        bool = False
    reject_zero_address:         bool = False
    reject_zero_relayer_fee:     bool = False
    require_whitelisted_relayer: bool = False

    @classmethod
    def strict(cls) -> "TransferPolicy":
        return cls(True, True, True, True)


@dataclass
class DeploymentSettings:
    """Initial state of one deployment."""
    admin:                    str
    treasury:                 str
    fee_margin:               int = DEFAULT_FEE_MARGIN
    base_gas_cost:            int = DEFAULT_BASE_GAS_COST
    policy:                   TransferPolicy = field(default_factory=TransferPolicy)
    enforce_parameter_bounds: bool = False
    token_types:              List[str] = field(default_factory=list)
    relayers:                 List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.admin    = normalize_address(self.admin)
        self.treasury = normalize_address(self.treasury)
        require_u64(self.fee_margin, "fee_margin")
        require_u64(self.base_gas_cost, "base_gas_cost")
        self.relayers = [normalize_address(r) for r in self.relayers]
        self.token_types = [require_token_type(t) for t in self.token_types]

    @staticmethod
    def from_dict(data: dict) -> "DeploymentSettings":
        """Load settings from a dictionary (e.g. parsed YAML)."""
        if not isinstance(data, dict):
            raise ValidationError("Deployment settings must be a mapping")

        known   = set(DeploymentSettings.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValidationError(
                "Unknown deployment setting(s)",
                {"keys": sorted(unknown)},
            )

        values = dict(data)
        policy = values.get("policy") or {}
        if not isinstance(policy, dict):
            raise ValidationError("policy must be a mapping")
        policy_known = set(TransferPolicy.__dataclass_fields__)
        if set(policy) - policy_known:
            raise ValidationError(
                "Unknown policy flag(s)",
                {"keys": sorted(set(policy) - policy_known)},
            )
        values["policy"] = TransferPolicy(**{k: bool(v) for k, v in policy.items()})

        for key in ("admin", "treasury"):
            if key not in values:
                raise ValidationError(f"Missing required setting: {key}")

        return DeploymentSettings(**values)

    @classmethod
    def from_yaml(cls, path: Path) -> "DeploymentSettings":
        """Load settings from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})


class ConfigStore:
    """
    Owns the protocol configuration of one deployment.

    Mutators require caller == admin, else NotAdmin. update_config applies
    no bounds unless the deployment enabled enforce_parameter_bounds.
    """

    def __init__(self, settings: DeploymentSettings) -> None:
        self._config = ProtocolConfig(
            admin=         settings.admin,
            paused=        False,
            fee_margin=    settings.fee_margin,
            treasury=      settings.treasury,
            base_gas_cost= settings.base_gas_cost,
        )
        self.policy:           TransferPolicy = settings.policy
        self.enforce_bounds:   bool           = settings.enforce_parameter_bounds
        self._relayers:        Set[str]       = set(settings.relayers)

        if self.enforce_bounds:
            self._check_bounds(settings.treasury, settings.fee_margin, settings.base_gas_cost)

    # ── Views ─────────────────────────────────────────────────

    def get(self) -> ProtocolConfig:
        return self._config

    @property
    def admin(self) -> str:
        return self._config.admin

    @property
    def paused(self) -> bool:
        return self._config.paused

    def is_relayer_whitelisted(self, relayer: str) -> bool:
        return normalize_address(relayer) in self._relayers

    def relayers(self) -> List[str]:
        return sorted(self._relayers)

    # ── Mutators (admin only) ─────────────────────────────────

    def require_admin(self, caller: str) -> str:
        caller = normalize_address(caller)
        if caller != self._config.admin:
            raise NotAdmin(
                "Caller is not the protocol admin",
                {"caller": caller},
            )
        return caller

    def set_paused(self, caller: str, value: bool) -> None:
        self.require_admin(caller)
        self._config = replace(self._config, paused=bool(value))

    def prepare_update(
        self,
        caller:        str,
        treasury:      str,
        fee_margin:    int,
        base_gas_cost: int,
    ) -> ProtocolConfig:
        """Validate an update and return the config it would produce. Nothing changes."""
        self.require_admin(caller)
        treasury = normalize_address(treasury)
        require_u64(fee_margin, "fee_margin")
        require_u64(base_gas_cost, "base_gas_cost")
        if self.enforce_bounds:
            self._check_bounds(treasury, fee_margin, base_gas_cost)
        return replace(
            self._config,
            treasury=      treasury,
            fee_margin=    fee_margin,
            base_gas_cost= base_gas_cost,
        )

    def apply(self, config: ProtocolConfig) -> ProtocolConfig:
        """Install a config returned by prepare_update."""
        self._config = config
        return config

    def update_config(
        self,
        caller:        str,
        treasury:      str,
        fee_margin:    int,
        base_gas_cost: int,
    ) -> ProtocolConfig:
        return self.apply(self.prepare_update(caller, treasury, fee_margin, base_gas_cost))

    def transfer_admin(self, caller: str, new_admin: str) -> str:
        self.require_admin(caller)
        new_admin = normalize_address(new_admin)
        self._config = replace(self._config, admin=new_admin)
        return new_admin

    def add_relayer(self, caller: str, relayer: str) -> bool:
        """Returns False if the relayer was already listed."""
        self.require_admin(caller)
        relayer = normalize_address(relayer)
        if relayer in self._relayers:
            return False
        self._relayers.add(relayer)
        return True

    def remove_relayer(self, caller: str, relayer: str) -> bool:
        """Returns False if the relayer was not listed."""
        self.require_admin(caller)
        relayer = normalize_address(relayer)
        if relayer not in self._relayers:
            return False
        self._relayers.discard(relayer)
        return True

    # ── Internal ──────────────────────────────────────────────

    @staticmethod
    def _check_bounds(treasury: str, fee_margin: int, base_gas_cost: int) -> None:
        if not MIN_FEE_MARGIN <= fee_margin <= MAX_FEE_MARGIN:
            raise ParameterOutOfBounds(
                "fee_margin out of bounds",
                {"fee_margin": fee_margin, "min": MIN_FEE_MARGIN, "max": MAX_FEE_MARGIN},
            )
        if base_gas_cost > MAX_U64:
            raise ParameterOutOfBounds(
                "base_gas_cost out of bounds",
                {"base_gas_cost": base_gas_cost},
            )
        if is_zero_address(treasury):
            raise ParameterOutOfBounds("treasury must not be the zero address")
