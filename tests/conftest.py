import logging

import pytest

from newspledge.config_loader import DEFAULT_ADMIN, DEFAULT_NULL_PRINCIPAL, GenesisConfig
from newspledge.ledger import TokenLedger

ADMIN = DEFAULT_ADMIN
NULL = DEFAULT_NULL_PRINCIPAL
ALICE = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"
BOB = "ST3NBRSFKX28FQ2ZJ1MAKX58HKHSDGNV5N7R21XCP"
CAROL = "ST4REYAJF2KBHKS5G7BAF3WQWSX3W1V1FZH1TMMXG"

MAX_SUPPLY = 1_000_000_000
LOCK = 1440
STAKE_HEIGHT = 1000


@pytest.fixture
def genesis():
    return GenesisConfig(admin=ADMIN, max_supply=MAX_SUPPLY, stake_lock_period=LOCK)


@pytest.fixture
def ledger(genesis):
    return TokenLedger(genesis)


@pytest.fixture
def restore_logging():
    """CLI commands reattach handlers to the captured stdout; put the originals back."""
    logger = logging.getLogger("newspledge")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers = handlers
    logger.setLevel(level)
