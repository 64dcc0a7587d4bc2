"""
Shared pytest fixtures.
"""

import pytest

from pallet_ledger.logging_config import reset_logging


@pytest.fixture(autouse=True)
def clean_logging():
    """Give every test an unconfigured pallet_ledger logger."""
    reset_logging()
    yield
    reset_logging()
