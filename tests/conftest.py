"""
Shared fixtures for the payment tests.
"""
import pytest

from tests.fakes import FakeWallet


@pytest.fixture
def fake_wallet() -> FakeWallet:
    return FakeWallet()
