"""Tests for detector settings."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from chainsentry.config import DetectorSettings, load_settings
from helpers import ALICE, BOB


@pytest.fixture
def no_env_file(tmp_path):
    """An empty .env so load_settings never picks up a developer's file."""
    path = tmp_path / ".env"
    path.write_text("")
    return path


class TestDetectorSettings:
    def test_defaults(self) -> None:
        settings = DetectorSettings()

        assert settings.recent_contract_max_tx_count == 5
        assert settings.recent_address_max_tx_count == 3
        assert settings.frontrunning_gas_price_wei == 500 * 10**9
        assert settings.multicall_data_threshold_bytes == 5000
        assert settings.swap_window_blocks == 100
        assert settings.low_slippage_threshold == Decimal("0.001")
        assert settings.reauthentication_window_seconds == 1800
        assert settings.two_factor_users == ()

    def test_users_from_comma_string(self) -> None:
        settings = DetectorSettings(two_factor_users=f" {ALICE.upper().replace('0X', '0x')} , {BOB},")
        assert settings.two_factor_users == (ALICE, BOB)

    def test_invalid_value(self) -> None:
        with pytest.raises(ValidationError):
            DetectorSettings(low_slippage_threshold=Decimal("2"))

    def test_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            DetectorSettings(swap_window=10)

    def test_frozen(self) -> None:
        settings = DetectorSettings()
        with pytest.raises(ValidationError):
            settings.swap_window_blocks = 1


class TestLoadSettings:
    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, no_env_file) -> None:
        monkeypatch.setenv("CHAINSENTRY_SWAP_WINDOW_BLOCKS", "25")
        monkeypatch.setenv("CHAINSENTRY_LOW_SLIPPAGE_THRESHOLD", "0.005")
        monkeypatch.setenv("CHAINSENTRY_TWO_FACTOR_USERS", f"{ALICE},{BOB}")

        settings = load_settings(no_env_file)

        assert settings.swap_window_blocks == 25
        assert settings.low_slippage_threshold == Decimal("0.005")
        assert settings.two_factor_users == (ALICE, BOB)

    def test_explicit_overrides_win(self, monkeypatch: pytest.MonkeyPatch, no_env_file) -> None:
        monkeypatch.setenv("CHAINSENTRY_SWAP_WINDOW_BLOCKS", "25")
        settings = load_settings(no_env_file, swap_window_blocks=7)
        assert settings.swap_window_blocks == 7

    def test_env_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.delenv("CHAINSENTRY_REVOCATION_LIMIT", raising=False)
        env_file = tmp_path / "detectors.env"
        env_file.write_text("CHAINSENTRY_REVOCATION_LIMIT=4\n")

        settings = load_settings(env_file)

        assert settings.revocation_limit == 4

    def test_invalid_environment(self, monkeypatch: pytest.MonkeyPatch, no_env_file) -> None:
        monkeypatch.setenv("CHAINSENTRY_SWAP_WINDOW_BLOCKS", "-1")
        with pytest.raises(ValidationError):
            load_settings(no_env_file)
