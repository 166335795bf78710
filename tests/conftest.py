import pytest

from core.config import BotSettings
from core.models import WalletIdentity

TEST_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32
TARGET = "0x000000000000000000000000000000000000dEaD"


@pytest.fixture
def settings():
    """Settings with instant pacing and a fixed user-agent pool."""
    return BotSettings(
        user_agents=["test-agent/1.0"],
        timing={"between_interactions": (0, 0), "between_wallets": (0, 0)},
    )


@pytest.fixture
def identity():
    return WalletIdentity.from_secret(TEST_KEY)


@pytest.fixture
def other_identity():
    return WalletIdentity.from_secret(OTHER_KEY)
