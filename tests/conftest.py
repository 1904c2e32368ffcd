import pytest

from docseal import asymmetric
from docseal.storage import MemoryStore, StorageTier
from docseal.vault import KeyVault

STRONG_PASSWORD = "CorrectHorseBattery9!"


@pytest.fixture(scope="session")
def alice():
    return asymmetric.generate_key_pair(2048)


@pytest.fixture(scope="session")
def bob():
    return asymmetric.generate_key_pair(2048)


@pytest.fixture(scope="session")
def carol():
    return asymmetric.generate_key_pair(2048)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores():
    return {
        StorageTier.PERSISTENT: MemoryStore(),
        StorageTier.SESSION: MemoryStore(),
    }


@pytest.fixture
def vault(stores, clock):
    return KeyVault(stores, clock=clock)


@pytest.fixture(scope="session")
def user_keys():
    """A sealed 2048-bit key set shared by read-only tests."""
    return KeyVault({StorageTier.PERSISTENT: MemoryStore()}).generate_user_keys(
        STRONG_PASSWORD, 2048
    )
