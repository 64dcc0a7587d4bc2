"""
Unit tests for configuration loading and validation.

Tests strict validation of rate and classification configs.
"""

import os
import tempfile

import pytest
import yaml

from pallet_ledger.config.loader import (
    RateConfig,
    StaticRateProvider,
    YamlRateProvider,
    load_ledger_config,
    load_rate_config,
)
from pallet_ledger.core.classifier import DEFAULT_RULES


VALID_RATES = {
    "entry": 3.5,
    "exit": 3.5,
    "storage_per_day": 0.233333,
    "frozen": 5.0,
}


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data: dict, filename: str = "rates.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "rates": dict(VALID_RATES, frozen_storage_per_day=0.4),
            "classification": {
                "geometry_a_tokens": ["100x120", "120 x 100"],
                "frozen_markers": ["congelato", "surgelato"],
            },
        }

        config = load_ledger_config(self._write_config(config_data))

        assert config.rates.entry_rate == 3.5
        assert config.rates.exit_rate == 3.5
        assert config.rates.storage_rate_per_day == 0.233333
        assert config.rates.frozen_rate == 5.0
        assert config.rates.frozen_storage_rate_per_day == 0.4
        assert config.classification.geometry_a_tokens == ("100X120", "120X100")
        assert config.classification.frozen_markers == ("CONGELATO", "SURGELATO")

    def test_config_without_classification_uses_defaults(self):
        """Test that config without classification section loads correctly."""
        config = load_ledger_config(self._write_config({"rates": VALID_RATES}))

        assert config.classification == DEFAULT_RULES
        assert config.rates.frozen_storage_rate_per_day is None

    def test_integer_rates_accepted(self):
        config_path = self._write_config({"rates": dict(VALID_RATES, entry=4)})
        assert load_rate_config(config_path).entry_rate == 4.0

    def test_missing_file_raises_error(self):
        """Test that missing config file raises error."""
        with pytest.raises(FileNotFoundError, match="Ledger config file not found"):
            load_ledger_config("nonexistent.yaml")

    def test_empty_config_raises_error(self):
        """Test that empty config file raises error."""
        config_path = self._write_config({})

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_ledger_config(config_path)

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises error."""
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_ledger_config(config_path)

    def test_missing_rates_raises_error(self):
        """Test that missing rates section raises error."""
        config_path = self._write_config({"classification": {"frozen_markers": ["x"]}})
        with pytest.raises(ValueError, match="Missing required 'rates' section"):
            load_ledger_config(config_path)

    def test_missing_rate_raises_error(self):
        """Test that a missing rate cannot fall back to a default."""
        rates = dict(VALID_RATES)
        del rates["storage_per_day"]
        config_path = self._write_config({"rates": rates})
        with pytest.raises(ValueError, match="Missing required 'storage_per_day' rate"):
            load_ledger_config(config_path)

    def test_negative_rate_raises_error(self):
        config_path = self._write_config({"rates": dict(VALID_RATES, exit=-1.0)})
        with pytest.raises(ValueError, match="'exit' rate cannot be negative"):
            load_ledger_config(config_path)

    def test_non_numeric_rate_raises_error(self):
        config_path = self._write_config({"rates": dict(VALID_RATES, frozen="five")})
        with pytest.raises(ValueError, match="'frozen' rate must be a number"):
            load_ledger_config(config_path)

    def test_boolean_rate_raises_error(self):
        config_path = self._write_config({"rates": dict(VALID_RATES, entry=True)})
        with pytest.raises(ValueError, match="must be a number"):
            load_ledger_config(config_path)

    def test_unknown_top_level_keys_raise_error(self):
        """Test that unknown top-level keys raise error."""
        config_path = self._write_config({"rates": VALID_RATES, "currency": "EUR"})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_ledger_config(config_path)

    def test_unknown_rate_keys_raise_error(self):
        """Test that a misspelt rate raises error."""
        config_path = self._write_config({"rates": dict(VALID_RATES, storage_per_dya=0.3)})
        with pytest.raises(ValueError, match="Unknown rate keys"):
            load_ledger_config(config_path)

    def test_unknown_classification_keys_raise_error(self):
        config_path = self._write_config({
            "rates": VALID_RATES,
            "classification": {"geometry_b_tokens": ["80x120"]},
        })
        with pytest.raises(ValueError, match="Unknown classification keys"):
            load_ledger_config(config_path)

    def test_empty_token_list_raises_error(self):
        config_path = self._write_config({
            "rates": VALID_RATES,
            "classification": {"frozen_markers": []},
        })
        with pytest.raises(ValueError, match="must be a non-empty list"):
            load_ledger_config(config_path)


class TestRateConfig:
    """Test the rate dataclass."""

    def test_defaults(self):
        rates = RateConfig()
        assert rates.entry_rate == 3.5
        assert rates.exit_rate == 3.5
        assert rates.storage_rate_per_day == 0.233333
        assert rates.frozen_rate == 5.0

    def test_negative_rate_raises(self):
        with pytest.raises(ValueError, match="storage_rate_per_day cannot be negative"):
            RateConfig(storage_rate_per_day=-0.1)

    def test_frozen_storage_rate(self):
        assert RateConfig().storage_rate_for(True) == 0.233333
        assert RateConfig(frozen_storage_rate_per_day=0.5).storage_rate_for(True) == 0.5
        assert RateConfig(frozen_storage_rate_per_day=0.5).storage_rate_for(False) == 0.233333


class TestRateProviders:
    """Test rate providers."""

    def test_static_provider(self):
        rates = RateConfig(entry_rate=1.0)
        assert StaticRateProvider(rates).current() is rates
        assert StaticRateProvider().current() == RateConfig()

    def test_yaml_provider_rereads_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, "rates.yaml")
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump({"rates": VALID_RATES}, f)
            provider = YamlRateProvider(config_path)
            assert provider.current().entry_rate == 3.5

            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.dump({"rates": dict(VALID_RATES, entry=4.25)}, f)
            assert provider.current().entry_rate == 4.25
