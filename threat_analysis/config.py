"""
Configuration

Loads analyzer settings from a YAML file and merges them over the
built-in defaults. A missing file means defaults; a broken file is
reported and ignored.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "THREAT_ANALYZER_CONFIG"

DEMO_DATASET_URL = (
    "https://raw.githubusercontent.com/Yadav-Aayansh/gramener-datasets/"
    "refs/heads/add-server-logs/server_logs.zip"
)


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "scan": {
            "detector_timeout_seconds": 30,
            "max_workers": None,
        },
        "parser": {
            "reference_year": None,
        },
        "demo": {
            "url": DEMO_DATASET_URL,
            "timeout_seconds": 30,
        },
        "detectors": {
            "brute_force": {
                "failed_attempts_threshold": 5,
                "time_window_minutes": 10,
            },
            "error_enumeration": {
                "threshold": 20,
                "time_window_minutes": 5,
            },
            "directory_traversal": {
                "repeat_offender_threshold": 5,
            },
            "sql_injection": {
                "campaign_threshold": 3,
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s [ANALYZER] %(levelname)s %(message)s",
        },
    }

    def __init__(self, config_path: Optional[str] = None):
        self._config = copy.deepcopy(self.DEFAULTS)
        self.path = config_path or os.environ.get(CONFIG_ENV_VAR)

        if self.path is not None:
            try:
                with open(self.path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                logger.debug("Config file %s not found, using defaults", self.path)
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", self.path)

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> "Config":
        """Build a config from an in-memory override mapping."""
        config = cls()
        config._config = cls._deep_merge(config._config, overrides)
        return config

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def detector_settings(self, identifier: str) -> Dict[str, Any]:
        """Threshold table for one detector (empty if none configured)."""
        return dict(self._config.get("detectors", {}).get(identifier) or {})

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
