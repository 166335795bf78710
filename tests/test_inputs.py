"""
Tests for the flat-file loaders and the configuration defaults.
"""

from web3 import Web3

from core.config import BotSettings
from core.inputs import load_lines, load_private_keys, load_proxies, load_target_addresses
from core.retry import EXPONENTIAL, LINEAR


def test_missing_file_is_empty(tmp_path):
    assert load_lines(str(tmp_path / "nope.txt")) == []
    assert load_private_keys(str(tmp_path / "nope.txt")) == []


def test_blank_lines_dropped_and_trimmed(tmp_path):
    path = tmp_path / "proxies.txt"
    path.write_text("\n  http://a:1  \n\n\tb:2\n", encoding="utf-8")
    assert load_proxies(str(path)) == ["http://a:1", "b:2"]


def test_private_keys_require_prefix(tmp_path):
    good = "0x" + "ab" * 32
    path = tmp_path / "privatekeys.txt"
    path.write_text(f"{good}\n{'cd' * 32}\n\n", encoding="utf-8")
    assert load_private_keys(str(path)) == [good]


def test_target_addresses_validated_and_checksummed(tmp_path):
    addr = "0x000000000000000000000000000000000000dead"
    path = tmp_path / "wallets.txt"
    path.write_text(f"{addr}\nnot-an-address\n0x1234\n", encoding="utf-8")
    assert load_target_addresses(str(path)) == [Web3.to_checksum_address(addr)]


class TestBotSettings:

    def test_defaults(self):
        settings = BotSettings(user_agents=["ua"])
        assert settings.network.chain_id == 688688
        assert settings.api.base_url == "https://api.pharosnetwork.xyz"
        assert settings.params.wrap_amount == "0.000005342"
        assert settings.params.transfer_count == 10
        assert settings.timing.between_interactions == (2.0, 5.0)
        assert settings.timing.cycle_interval_minutes == 30
        assert settings.log_to_file is False
        assert settings.max_cycles is None

    def test_retry_policies(self):
        retry = BotSettings(user_agents=["ua"]).retry
        assert retry.operation_policy().backoff == EXPONENTIAL
        assert retry.request_policy().backoff == LINEAR
        assert retry.request_policy().delay(3) == 6.0

    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("PARAMS__TRANSFER_COUNT", "3")
        monkeypatch.setenv("TIMING__CYCLE_INTERVAL_MINUTES", "15")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        settings = BotSettings(user_agents=["ua"])
        assert settings.params.transfer_count == 3
        assert settings.timing.cycle_interval_minutes == 15
        assert settings.log_level == "DEBUG"

    def test_random_user_agent(self):
        assert BotSettings(user_agents=["only"]).random_user_agent() == "only"
