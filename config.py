"""
Configuration Management for the Summary Table Engine

Centralized configuration for variable classification, statistic formatting,
comparison tests, logging and runtime options.

Usage:
    from config import CONFIG

    # Access config
    threshold = CONFIG.get('analysis.var_detect_threshold')

    # Update config (runtime)
    CONFIG.update('formatting.continuous_digits', 2)

    # Get with default
    value = CONFIG.get('some.nested.key', default='default_value')
"""

import copy
import json
import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional


class ConfigManager:
    """
    Centralized configuration management with hierarchical key access.

    Supports:
    - Nested dictionary access with dot notation
    - Default values and fallbacks
    - Environment variable overrides
    - validate() for bounds, thresholds and log level
    - Runtime updates
    """

    def __init__(self, config_dict: Optional[Dict] = None):
        """
        Create a ConfigManager populated with the given configuration or the module defaults and apply environment variable overrides.

        Parameters:
            config_dict (dict | None): Optional initial configuration dictionary to use instead of the built-in defaults.
        """
        self._config = config_dict or self._get_default_config()
        self._env_prefix = "TBLONE_"
        self._load_env_overrides()

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """
        Provide the default nested configuration.

        Returns:
            Dict[str, Any]: sections 'analysis', 'formatting', 'logging'
            and 'performance' with their default settings.
        """
        return {

            # ========== ANALYSIS SETTINGS ==========
            "analysis": {
                # Variable Detection
                "var_detect_threshold": 10,  # Numeric columns with more distinct values are continuous
                "var_detect_decimal_pct": 0.30,  # Numeric text with this share of non-integers is continuous
                "max_categorical_levels": 50,  # Numeric columns above this cannot be forced categorical

                # Comparison tests
                "exact_test_expected_min": 5,  # Exact test when any expected cell count is below this
                "exact_test_max_rows": 2000,  # Above this many rows exact tests fall back to chi-square
                "exact_test_simulations": 2000,  # Monte-Carlo replicates for exact tests beyond 2x2
                "random_seed": 20240101,

                # P-value Handling
                "pvalue_bounds_lower": 0.001,
                "pvalue_bounds_upper": 0.999,
                "pvalue_format_small": "<0.001",
                "pvalue_format_large": ">0.999",
                "significance_level": 0.05,

                # Multiple comparisons
                "adjust_method": "fdr_bh",

                # Missing Data
                "missing_policy": "only_if_present",  # 'show', 'hide', 'only_if_present'
            },

            # ========== FORMATTING SETTINGS ==========
            "formatting": {
                "default_statistic": {
                    "continuous": "{median} ({p25}, {p75})",
                    "categorical": "{n} ({p}%)",
                    "dichotomous": "{n} ({p}%)",
                },
                "missing_statistic": "{N_miss}",
                "count_digits": 0,
                "percent_digits": 0,
                "continuous_digits": 1,
                "pvalue_digits": 3,
                "missing_value_text": "NA",
                "missing_row_label": "Unknown",
                "label_header": "Characteristic",
                "group_header": "{level}, N = {n}",
                "overall_header": "Overall, N = {N}",
                "n_header": "N",
                "stat_label_header": "Statistic",
                "pvalue_header": "p-value",
                "qvalue_header": "q-value",
                "test_header": "Test",
            },

            # ========== LOGGING SETTINGS ==========
            "logging": {
                "enabled": True,
                "level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
                "format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
                "date_format": "%Y-%m-%d %H:%M:%S",

                # File Logging
                "file_enabled": False,
                "log_dir": "logs",
                "log_file": "table_one.log",
                "max_log_size": 10485760,  # 10MB in bytes
                "backup_count": 5,

                # Console Logging
                "console_enabled": True,
                "console_level": "WARNING",

                # What to Log
                "log_data_operations": True,
                "log_analysis_operations": True,
                "log_performance": True,  # Timing information
            },

            # ========== PERFORMANCE SETTINGS ==========
            "performance": {
                "num_threads": 1,  # >1 computes variable statistics on a thread pool
            },
        }

    def _load_env_overrides(self) -> None:
        """
        Apply configuration overrides from environment variables that start with the TBLONE_ prefix.

        TBLONE_<SECTION>_<KEY>=value maps to the dot path section.key
        (e.g. TBLONE_LOGGING_LEVEL -> logging.level). Numeric strings are
        converted to int or float so overrides keep the type of the default.
        """
        for key, value in os.environ.items():
            if key.startswith(self._env_prefix):
                # TBLONE_LOGGING_LEVEL -> ['logging', 'level']
                parts = key[len(self._env_prefix):].lower().split('_')

                if len(parts) < 2:
                    continue

                section = parts[0]
                key_name = '_'.join(parts[1:])

                try:
                    self.update(f"{section}.{key_name}", self._coerce_env_value(value))
                except (KeyError, ValueError, TypeError) as e:
                    warnings.warn(f"Failed to set env override {key}={value}: {e}", stacklevel=2)

    @staticmethod
    def _coerce_env_value(value: str) -> Any:
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        for cast in (int, float):
            try:
                return cast(value)
            except ValueError:
                continue
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value using a dot-separated key path.

        Parameters:
            key (str): Dot-separated path to a nested configuration value (e.g., "logging.level").
            default: Value to return if the specified path does not exist.

        Returns:
            The configuration value at the given path, or `default` if the path is not found.
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def update(self, key: str, value: Any) -> None:
        """
        Set an existing configuration value identified by a dot-separated path.

        Raises:
            KeyError: If any intermediate path segment or the final key does not exist in the configuration.
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if not isinstance(config, dict) or k not in config:
                raise KeyError(f"Config path '{'.'.join(keys[:-1])}' does not exist")
            config = config[k]

        final_key = keys[-1]
        if final_key not in config:
            raise KeyError(f"Config key '{key}' does not exist")

        config[final_key] = value

    def set_nested(self, key: str, value: Any, create: bool = False) -> None:
        """
        Set a value using a dot-separated path, optionally creating missing intermediate dictionaries.
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                if create:
                    config[k] = {}
                else:
                    raise KeyError(f"Config path '{k}' does not exist")
            config = config[k]

        config[keys[-1]] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Return a deep copy of a top-level configuration section.
        """
        result = self.get(section, {})
        return copy.deepcopy(result) if isinstance(result, dict) else result

    def to_dict(self) -> Dict[str, Any]:
        """
        Get a deep copy of the entire configuration dictionary.
        """
        return copy.deepcopy(self._config)

    def to_json(self, filepath: Optional[str] = None, pretty: bool = True) -> str:
        """
        Serialize the current configuration to a JSON string.

        Parameters:
            filepath (str | None): Optional path to write the JSON output; when provided, the file is overwritten.
            pretty (bool): If True, indent the JSON for readability.
        """
        json_str = json.dumps(self._config, indent=2 if pretty else None)

        if filepath:
            Path(filepath).write_text(json_str)

        return json_str

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate key configuration constraints and collect any violations.

        Checks:
        - `analysis.pvalue_bounds_lower` is below `analysis.pvalue_bounds_upper`, both in (0, 1).
        - `analysis.var_detect_threshold` and `analysis.exact_test_expected_min` are positive.
        - `analysis.var_detect_decimal_pct` is within (0, 1].
        - `analysis.missing_policy` is one of 'show', 'hide', 'only_if_present'.
        - `logging.level` is a standard level name.

        Returns:
            tuple: (is_valid, errors)
        """
        errors = []

        lower = self.get('analysis.pvalue_bounds_lower')
        upper = self.get('analysis.pvalue_bounds_upper')
        if lower is None or upper is None or not (0 < lower < upper < 1):
            errors.append("pvalue_bounds_lower must be < pvalue_bounds_upper, both within (0, 1)")

        threshold = self.get('analysis.var_detect_threshold')
        if not isinstance(threshold, int) or threshold < 1:
            errors.append("analysis.var_detect_threshold must be a positive integer")

        decimal_pct = self.get('analysis.var_detect_decimal_pct')
        if decimal_pct is None or not (0 < decimal_pct <= 1):
            errors.append("analysis.var_detect_decimal_pct must be within (0, 1]")

        expected_min = self.get('analysis.exact_test_expected_min')
        if expected_min is None or expected_min <= 0:
            errors.append("analysis.exact_test_expected_min must be positive")

        valid_policies = ['show', 'hide', 'only_if_present']
        if self.get('analysis.missing_policy') not in valid_policies:
            errors.append(f"analysis.missing_policy must be one of {valid_policies}")

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.get('logging.level') not in valid_levels:
            errors.append(f"logging.level must be one of {valid_levels}")

        return len(errors) == 0, errors

    def __repr__(self) -> str:
        return f"ConfigManager({len(self._config)} sections)"


# Global config instance
CONFIG = ConfigManager()
