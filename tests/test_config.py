"""Genesis configuration loading: validation and atomic reload."""
import pytest
from pydantic import ValidationError

from newspledge.config_loader import ConfigLoader, DEFAULT_NULL_PRINCIPAL, UINT128_MAX


def _loader(tmp_path):
    loader = ConfigLoader()
    loader.config_dir = tmp_path
    loader.config_file = tmp_path / "genesis.yaml"
    return loader


VALID_GENESIS = """
version: 1
admin: ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM
max_supply: 5000
stake_lock_period: 10
token:
  name: Test Pledge
  symbol: tpl
  decimals: 2
"""


class TestGenesisLoading:
    def test_valid_genesis_loads(self, tmp_path):
        loader = _loader(tmp_path)
        loader.config_file.write_text(VALID_GENESIS)

        config = loader.load_config()
        assert config.max_supply == 5000
        assert config.stake_lock_period == 10
        assert config.null_principal == DEFAULT_NULL_PRINCIPAL
        assert config.token.symbol == "TPL"
        assert config.verify_invariants is True

    def test_default_file_round_trips(self, tmp_path):
        loader = _loader(tmp_path)
        path = loader.write_default()
        assert path.exists()
        config = loader.load_config()
        assert config.max_supply == 1_000_000_000
        assert config.stake_lock_period == 1440

    def test_write_default_keeps_existing(self, tmp_path):
        loader = _loader(tmp_path)
        loader.config_file.write_text(VALID_GENESIS)
        loader.write_default()
        assert loader.load_config().max_supply == 5000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            _loader(tmp_path).load_config()

    @pytest.mark.parametrize(
        "override",
        [
            "max_supply: 0",
            f"max_supply: {UINT128_MAX + 1}",
            "stake_lock_period: -1",
            "null_principal: ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM",
        ],
    )
    def test_rejects_out_of_range_values(self, tmp_path, override):
        loader = _loader(tmp_path)
        loader.config_file.write_text(f"admin: ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM\n{override}\n")
        with pytest.raises(ValueError, match="no fallback"):
            loader.load_config()

    def test_genesis_is_frozen(self, tmp_path):
        loader = _loader(tmp_path)
        loader.config_file.write_text(VALID_GENESIS)
        config = loader.load_config()
        with pytest.raises(ValidationError):
            config.max_supply = 1


class TestConfigReloadSafety:
    """Reload must be atomic — keep old config on failure."""

    def test_invalid_yaml_preserves_old(self, tmp_path):
        loader = _loader(tmp_path)
        loader.config_file.write_text(VALID_GENESIS)
        loader.load_config()

        loader.config_file.write_text("this is not valid yaml: [[[")
        with pytest.raises(ValueError, match="previous config retained"):
            loader.load_config()

        assert loader.config is not None
        assert loader.config.max_supply == 5000

    def test_schema_violation_preserves_old(self, tmp_path):
        loader = _loader(tmp_path)
        loader.config_file.write_text(VALID_GENESIS)
        loader.load_config()

        loader.config_file.write_text("version: 1\nmax_supply: 10\n")
        with pytest.raises(ValueError, match="Invalid configuration"):
            loader.load_config()
        assert loader.get_config().max_supply == 5000
