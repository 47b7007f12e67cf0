"""
Configuration
=============

YAML configuration for the segmentation service, merged onto built-in
defaults so a settings file only needs the keys it changes.

Usage:
    from rfm_segmentation.config import load_config

    config = load_config("config/settings.yaml")
    k = config['segmentation']['n_clusters']
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

CONFIG_ENV_VAR = "RFM_CONFIG"

DEFAULT_CONFIG_PATH = "config/settings.yaml"

STRICTNESS_LEVELS = ('skip', 'strict')

DEFAULT_CONFIG: Dict[str, Any] = {
    'data': {
        'path': None,
        'strictness': 'skip',
    },
    'segmentation': {
        'n_clusters': 3,
        'random_state': 123,
        'n_init': 25,
        'max_iter': 300,
        'init': 'k-means++',
        # Ordered by ascending mean monetary value of the cluster
        'segment_labels': ['At Risk', 'Loyal / Potential', 'Champions'],
    },
    'api': {
        # Directory that POST /reload paths must resolve into; None allows any path
        'data_dir': None,
    },
    'logging': {
        'level': 'INFO',
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Without a path, the RFM_CONFIG environment variable is used, then
    config/settings.yaml relative to the working directory. A missing file
    gives the defaults.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary with all default keys present

    Raises:
        ValueError: If the file does not contain a mapping
    """
    explicit = config_path is not None or bool(os.getenv(CONFIG_ENV_VAR))
    if config_path is None:
        config_path = os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH

    if Path(config_path).exists():
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration must be a mapping: {config_path}")
        logger.info(f"Loaded configuration from {config_path}")
        return _deep_merge(DEFAULT_CONFIG, loaded)

    if explicit:
        logger.warning(f"Configuration file not found: {config_path}, using defaults")
    else:
        logger.debug(f"No {DEFAULT_CONFIG_PATH} found, using defaults")
    return copy.deepcopy(DEFAULT_CONFIG)
