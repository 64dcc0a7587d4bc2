"""
Configuration management and loading.

Handles handling/storage rates and pallet classification rules.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

import yaml

from pallet_ledger.core.classifier import DEFAULT_RULES, ClassificationRules


@dataclass(frozen=True)
class RateConfig:
    """Rates applied to equivalent pallets.

    Owned by the caller and read-only to the ledger.
    """
    entry_rate: float = 3.5
    exit_rate: float = 3.5
    storage_rate_per_day: float = 0.233333
    frozen_rate: float = 5.0
    frozen_storage_rate_per_day: Optional[float] = None

    def __post_init__(self):
        """Validate rates are non-negative numbers."""
        for name in ("entry_rate", "exit_rate", "storage_rate_per_day", "frozen_rate"):
            _check_rate(name, getattr(self, name))
        if self.frozen_storage_rate_per_day is not None:
            _check_rate("frozen_storage_rate_per_day", self.frozen_storage_rate_per_day)

    def storage_rate_for(self, frozen: bool) -> float:
        """Daily storage rate for a normal or frozen record.

        Frozen stock uses the normal storage rate unless a frozen storage
        rate is configured.
        """
        if frozen and self.frozen_storage_rate_per_day is not None:
            return self.frozen_storage_rate_per_day
        return self.storage_rate_per_day


def _check_rate(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    if value < 0:
        raise ValueError(f"{name} cannot be negative")


@dataclass(frozen=True)
class LedgerConfig:
    """Complete ledger configuration."""
    rates: RateConfig
    classification: ClassificationRules = DEFAULT_RULES


# YAML key -> RateConfig field
_RATE_KEYS: Dict[str, str] = {
    "entry": "entry_rate",
    "exit": "exit_rate",
    "storage_per_day": "storage_rate_per_day",
    "frozen": "frozen_rate",
    "frozen_storage_per_day": "frozen_storage_rate_per_day",
}
_REQUIRED_RATE_KEYS = ("entry", "exit", "storage_per_day", "frozen")


def load_ledger_config(path: str) -> LedgerConfig:
    """Load and validate ledger configuration from a YAML file.

    Strict validation ensures a typo in a rate name cannot silently fall
    back to a default and misprice a month.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated LedgerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Ledger config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'rates', 'classification'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'rates' not in raw_config:
        raise ValueError("Missing required 'rates' section")
    rates = _parse_rates(raw_config['rates'])

    classification = DEFAULT_RULES
    if 'classification' in raw_config:
        classification = _parse_classification(raw_config['classification'])

    return LedgerConfig(rates=rates, classification=classification)


def load_rate_config(path: str) -> RateConfig:
    """Load only the rates of a ledger configuration file."""
    return load_ledger_config(path).rates


def _parse_rates(data) -> RateConfig:
    """Parse and validate the 'rates' section.

    Raises:
        ValueError: If the section is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'rates' must be a dictionary")

    unknown_keys = set(data.keys()) - set(_RATE_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown rate keys: {unknown_keys}")

    for key in _REQUIRED_RATE_KEYS:
        if key not in data:
            raise ValueError(f"Missing required '{key}' rate")

    values = {}
    for key, field_name in _RATE_KEYS.items():
        if key not in data or data[key] is None:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"'{key}' rate must be a number")
        if value < 0:
            raise ValueError(f"'{key}' rate cannot be negative")
        values[field_name] = float(value)

    return RateConfig(**values)


def _parse_classification(data) -> ClassificationRules:
    """Parse and validate the 'classification' section."""
    if not isinstance(data, dict):
        raise ValueError("'classification' must be a dictionary")

    allowed_keys = {'geometry_a_tokens', 'frozen_markers'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown classification keys: {unknown_keys}")

    kwargs = {}
    for key in allowed_keys:
        if key in data:
            kwargs[key] = _parse_token_list(data[key], f"classification.{key}")
    return ClassificationRules(**kwargs)


def _parse_token_list(value, path: str) -> Tuple[str, ...]:
    if not isinstance(value, list) or not value:
        raise ValueError(f"'{path}' must be a non-empty list")
    if not all(isinstance(token, str) and token.strip() for token in value):
        raise ValueError(f"'{path}' must contain non-empty strings")
    return tuple(value)


class RateConfigProvider(Protocol):
    """Supplies the rates in force when a computation starts."""

    def current(self) -> RateConfig:
        ...


class StaticRateProvider:
    """Rate provider returning a fixed RateConfig."""

    def __init__(self, rates: Optional[RateConfig] = None):
        self._rates = rates or RateConfig()

    def current(self) -> RateConfig:
        return self._rates


class YamlRateProvider:
    """Rate provider backed by a YAML file.

    The file is re-read on every call, so edits apply to the next
    computation without restarting.
    """

    def __init__(self, path: str):
        self.path = path

    def current(self) -> RateConfig:
        return load_rate_config(self.path)
