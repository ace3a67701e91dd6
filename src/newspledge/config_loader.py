import yaml
import os
from pathlib import Path
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

UINT128_MAX = 2**128 - 1
DEFAULT_NULL_PRINCIPAL = "SP000000000000000000002Q6VF78"
DEFAULT_ADMIN = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"

DEFAULT_GENESIS_YAML = f"""version: 1

admin: {DEFAULT_ADMIN}
null_principal: {DEFAULT_NULL_PRINCIPAL}
max_supply: 1000000000
stake_lock_period: 1440
verify_invariants: true

token:
  name: NewsPledge Journalist Token
  symbol: NPJT
  decimals: 6
  token_uri: null
"""

# --- Genesis Schema Models ---

class TokenMetadata(BaseModel):
    name: str = Field("NewsPledge Journalist Token", min_length=1, max_length=32)
    symbol: str = Field("NPJT", min_length=1, max_length=10)
    decimals: int = Field(6, ge=0, le=18)
    token_uri: Optional[str] = None

    @field_validator("symbol")
    def normalize_symbol(cls, v):
        return v.strip().upper()


class GenesisConfig(BaseModel):
    """Construction-time parameters. Immutable once a ledger is built from them."""

    model_config = {"frozen": True}

    version: int = Field(1, ge=1, le=1)
    admin: str = Field(..., min_length=1)
    null_principal: str = Field(DEFAULT_NULL_PRINCIPAL, min_length=1)
    max_supply: int = Field(1_000_000_000, ge=1, le=UINT128_MAX)
    stake_lock_period: int = Field(1440, ge=0)
    verify_invariants: bool = True
    token: TokenMetadata = Field(default_factory=TokenMetadata)

    @model_validator(mode="after")
    def admin_is_not_null_principal(self):
        if self.admin == self.null_principal:
            raise ValueError("admin cannot be the null principal")
        return self

# --- Config Loader (Atomic Reload) ---

class ConfigLoader:
    def __init__(self):
        default_dir = Path.home() / ".newspledge" / "config"
        self.config_dir = Path(os.getenv("NEWSPLEDGE_CONFIG_DIR", str(default_dir)))
        self.config_file = self.config_dir / "genesis.yaml"
        self.config: Optional[GenesisConfig] = None

    def load_config(self) -> GenesisConfig:
        """
        Loads and validates genesis parameters from genesis.yaml.
        ATOMIC: On failure, previous config is preserved.
        Raises ValueError if invalid.
        """
        if not self.config_file.exists():
            logger.critical("Genesis file not found", path=str(self.config_file))
            raise FileNotFoundError(f"Genesis file not found at {self.config_file}")

        try:
            with open(self.config_file, "r") as f:
                raw_data = yaml.safe_load(f)

            logger.info("Loading genesis configuration", path=str(self.config_file))
            if not isinstance(raw_data, dict):
                raise ValueError("genesis document must be a mapping")

            # Validate into temporary — never touch self.config until success
            new_config = GenesisConfig(**raw_data)

            self.config = new_config

            logger.info("Genesis configuration loaded",
                        admin=self.config.admin,
                        max_supply=self.config.max_supply,
                        stake_lock_period=self.config.stake_lock_period)
            return self.config

        except Exception as e:
            logger.error("Genesis validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid genesis configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}")
            else:
                logger.critical("No previous configuration to fall back to")
                raise ValueError(f"Invalid configuration (no fallback): {e}")

    def get_config(self) -> GenesisConfig:
        if not self.config:
            self.load_config()
        return self.config

    def write_default(self, overwrite: bool = False) -> Path:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        if overwrite or not self.config_file.exists():
            self.config_file.write_text(DEFAULT_GENESIS_YAML)
        return self.config_file


def genesis_from_dict(raw: dict) -> GenesisConfig:
    return GenesisConfig(**raw)
