"""
Configuration utilities for Physician Search.

Provides configuration loading and validation for the parser, registry
client, cascade, scorer and enrichment components.
"""

import copy
import logging
import yaml
from typing import Dict, Any
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/physician_search.yaml"


def load_search_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load search configuration from YAML file.

    Values from the file are merged over the defaults, so a partial file
    only needs the keys it overrides.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    defaults = get_default_search_config()
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.warning(f"Configuration file {config_path} not found, using defaults")
            return defaults

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        merged = merge_configs(defaults, config)

        if not validate_search_config(merged):
            logger.warning(f"Configuration in {config_path} failed validation, using defaults")
            return defaults

        logger.info(f"Loaded search configuration from {config_path}")
        return merged

    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration from {config_path}: {e}")
        return defaults


def get_default_search_config() -> Dict[str, Any]:
    """
    Get default search configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "registry": {
            "base_url": "https://npiregistry.cms.hhs.gov/api/",
            "version": "2.1",
            "timeout_seconds": 10,
            "limit": 50
        },
        "search": {
            "min_confidence": 60,
            "default_radius": 5000,
            "max_radius": 50000,
            "default_page_size": 15,
            "min_page_size": 5,
            "max_page_size": 50
        },
        "cascade": {
            "name_match_threshold": 70,
            "specialty_match_threshold": 50
        },
        "scoring": {
            "weights": {
                "name": 0.4,
                "specialty": 0.3,
                "location": 0.3
            },
            "neutral_scores": {
                "name": 20,
                "specialty": 15,
                "location": 15
            },
            "bonuses": {
                "multiple_sources": 10,
                "registry_identifier": 5
            }
        },
        "taxonomy": {
            "word_similarity_threshold": 0.75,
            "phrase_similarity_threshold": 0.7,
            "min_fuzzy_word_length": 4,
            "suggestion_min_score": 85
        },
        "enrichment": {
            "enabled": True,
            "max_candidates": 50,
            "max_workers": 8
        },
        "parser": {
            "nlu_min_confidence": 50
        }
    }


def validate_search_config(config: Dict[str, Any]) -> bool:
    """
    Validate search configuration.

    Args:
        config: Configuration dictionary

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ["registry", "search", "cascade", "scoring"]

    for section in required_sections:
        if section not in config:
            logger.error(f"Missing required configuration section: {section}")
            return False

    # Validate registry configuration
    registry_config = config.get("registry", {})
    timeout = registry_config.get("timeout_seconds", 10)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        logger.error("registry.timeout_seconds must be a positive number")
        return False

    # Validate search configuration
    search_config = config.get("search", {})
    min_confidence = search_config.get("min_confidence", 60)
    if not isinstance(min_confidence, (int, float)) or not 0 <= min_confidence <= 100:
        logger.error("search.min_confidence must be a number between 0 and 100")
        return False

    min_size = search_config.get("min_page_size", 5)
    max_size = search_config.get("max_page_size", 50)
    default_size = search_config.get("default_page_size", 15)
    if not min_size <= default_size <= max_size:
        logger.error("search.default_page_size must lie between min_page_size and max_page_size")
        return False

    # Validate cascade thresholds
    cascade_config = config.get("cascade", {})
    for key in ("name_match_threshold", "specialty_match_threshold"):
        value = cascade_config.get(key, 0)
        if not isinstance(value, (int, float)) or not 0 <= value <= 100:
            logger.error(f"cascade.{key} must be a number between 0 and 100")
            return False

    # Validate scoring weights
    weights = config.get("scoring", {}).get("weights", {})
    if any(not isinstance(w, (int, float)) or w < 0 for w in weights.values()):
        logger.error("scoring.weights must be non-negative numbers")
        return False

    logger.info("Configuration validation passed")
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
