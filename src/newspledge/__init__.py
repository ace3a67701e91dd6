"""NewsPledge - journalist token ledger core."""

from .config_loader import GenesisConfig, TokenMetadata
from .ledger import Err, ErrorCode, Ok, TokenLedger

__version__ = "1.0.0"

__all__ = [
    "TokenLedger",
    "GenesisConfig",
    "TokenMetadata",
    "ErrorCode",
    "Ok",
    "Err",
    "__version__",
]
