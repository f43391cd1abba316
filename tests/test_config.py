"""
tests/test_config.py

Deployment settings, YAML loading and parameter bounds.
"""

import pytest

from smoothsend import DeploymentSettings, SmoothSend, TransferPolicy
from smoothsend.core.config import ConfigStore
from smoothsend.core.exceptions import InvalidAddress, ParameterOutOfBounds, ValidationError
from smoothsend.core.primitives import ZERO_ADDRESS, normalize_address


YAML_SETTINGS = """
admin: "0xad"
treasury: "0x7e"
fee_margin: 120
base_gas_cost: 25
enforce_parameter_bounds: true
token_types:
  - "0x1::usdc::USDC"
relayers:
  - "0x5e"
policy:
  reject_self_transfer: true
"""


class TestDeploymentSettings:

    def test_defaults(self):
        settings = DeploymentSettings(admin="0xad", treasury="0x7e")
        assert settings.fee_margin == 110
        assert settings.base_gas_cost == 0
        assert settings.policy == TransferPolicy()
        assert not settings.enforce_parameter_bounds

    def test_addresses_normalized(self):
        settings = DeploymentSettings(admin="0xAD", treasury="7e", relayers=["0x5E"])
        assert settings.admin == normalize_address("0xad")
        assert settings.treasury == normalize_address("0x7e")
        assert settings.relayers == [normalize_address("0x5e")]

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "deploy.yaml"
        path.write_text(YAML_SETTINGS, encoding="utf-8")
        settings = DeploymentSettings.from_yaml(path)
        assert settings.fee_margin == 120
        assert settings.base_gas_cost == 25
        assert settings.enforce_parameter_bounds
        assert settings.policy.reject_self_transfer
        assert not settings.policy.require_whitelisted_relayer
        assert settings.token_types == ["0x1::usdc::USDC"]

    def test_protocol_from_yaml(self, tmp_path):
        path = tmp_path / "deploy.yaml"
        path.write_text(YAML_SETTINGS, encoding="utf-8")
        protocol = SmoothSend.from_yaml(path)
        assert protocol.is_token_type_initialized("0x1::usdc::USDC")
        assert protocol.is_relayer_whitelisted("0x5e")
        assert protocol.get_config().base_gas_cost == 25
        assert not protocol.is_paused()

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            DeploymentSettings.from_dict({"admin": "0x1", "treasury": "0x2", "fee": 1})

    def test_unknown_policy_flag_rejected(self):
        with pytest.raises(ValidationError):
            DeploymentSettings.from_dict({
                "admin": "0x1", "treasury": "0x2", "policy": {"reject_everything": True},
            })

    def test_missing_admin(self):
        with pytest.raises(ValidationError):
            DeploymentSettings.from_dict({"treasury": "0x2"})

    def test_bad_admin_address(self):
        with pytest.raises(InvalidAddress):
            DeploymentSettings.from_dict({"admin": "admin", "treasury": "0x2"})


class TestParameterBounds:

    def make_store(self, **kwargs):
        return ConfigStore(DeploymentSettings(
            admin="0xad", treasury="0x7e", enforce_parameter_bounds=True, **kwargs,
        ))

    @pytest.mark.parametrize("margin", [100, 110, 1000])
    def test_margin_within_bounds(self, margin):
        store = self.make_store()
        store.update_config("0xad", "0x7e", margin, 0)
        assert store.get().fee_margin == margin

    @pytest.mark.parametrize("margin", [0, 99, 1001])
    def test_margin_out_of_bounds(self, margin):
        store = self.make_store()
        with pytest.raises(ParameterOutOfBounds):
            store.update_config("0xad", "0x7e", margin, 0)
        assert store.get().fee_margin == 110

    def test_zero_treasury_rejected(self):
        store = self.make_store()
        with pytest.raises(ParameterOutOfBounds):
            store.update_config("0xad", ZERO_ADDRESS, 110, 0)

    def test_initial_settings_checked(self):
        with pytest.raises(ParameterOutOfBounds):
            self.make_store(fee_margin=50)
