"""
Configuration utilities for CustomerMerge.

Provides configuration loading, defaults, and validation for the matcher,
merger, ingestion, and audit components.
"""

import copy
import logging
import yaml
from typing import Dict, Any
from pathlib import Path

from customer_merge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/customer_merge.yaml"

SIMILARITY_METHODS = ("dice", "ratio", "jaro_winkler", "levenshtein")


def get_default_config() -> Dict[str, Any]:
    """
    Get default CustomerMerge configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "matching": {
            "claim_unmatched": True,
            "phone": {
                "confidence": 95
            },
            "name_exact": {
                "confidence": 90
            },
            "name_fuzzy": {
                "similarity_method": "dice",
                "strong_threshold": 0.85,
                "weak_threshold": 0.75,
                "pair_confidence": 85,
                "cluster_confidence": 80
            }
        },
        "merge": {
            "flatten_provenance": False
        },
        "ingestion": {
            "columns": {
                "first_name": "Nombre",
                "last_name": "Apellido",
                "phone": "Teléfono",
                "address": "Dirección",
                "zone": "Zona"
            },
            "external_id_prefix": "CU-",
            "external_id_min": 10000,
            "external_id_max": 99999,
            "seed": None
        },
        "audit": {
            "enabled": False,
            "db_path": "data/merge_audit.db"
        },
        "service": {
            "exclude_superseded": True
        }
    }


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from YAML file layered over the defaults.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    defaults = get_default_config()
    config_file = Path(config_path)
    if not config_file.exists():
        logger.warning(f"Configuration file {config_path} not found, using defaults")
        return defaults

    with open(config_file, 'r', encoding="utf-8") as f:
        user_config = yaml.safe_load(f) or {}

    if not isinstance(user_config, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

    config = merge_configs(defaults, user_config)
    validate_config(config)

    logger.info(f"Loaded configuration from {config_path}")
    return config


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration values.

    Args:
        config: Configuration dictionary

    Returns:
        True if configuration is valid

    Raises:
        ConfigurationError: If any value is out of range
    """
    matching = config.get("matching", {})

    for section, keys in (("phone", ["confidence"]),
                          ("name_exact", ["confidence"]),
                          ("name_fuzzy", ["pair_confidence", "cluster_confidence"])):
        for key in keys:
            value = matching.get(section, {}).get(key)
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 100:
                raise ConfigurationError(
                    f"matching.{section}.{key} must be an integer between 0 and 100"
                )

    fuzzy = matching.get("name_fuzzy", {})
    for key in ("strong_threshold", "weak_threshold"):
        value = fuzzy.get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0 <= value <= 1:
            raise ConfigurationError(f"matching.name_fuzzy.{key} must be a number between 0 and 1")

    method = fuzzy.get("similarity_method")
    if method not in SIMILARITY_METHODS:
        raise ConfigurationError(
            f"matching.name_fuzzy.similarity_method must be one of {', '.join(SIMILARITY_METHODS)}"
        )

    ingestion = config.get("ingestion", {})
    if ingestion.get("external_id_min", 0) > ingestion.get("external_id_max", 0):
        raise ConfigurationError("ingestion.external_id_min must not exceed external_id_max")

    logger.debug("Configuration validation passed")
    return True


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two configuration dictionaries.

    Args:
        base_config: Base configuration
        override_config: Override configuration

    Returns:
        Merged configuration
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Path to save configuration
    """
    config_file = Path(config_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, 'w', encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, indent=2, allow_unicode=True)

    logger.info(f"Saved configuration to {config_path}")
