"""
Configuration for the Term Reduction Module

Centralized defaults for matrix construction, scoring and clustering.
Defaults live in the module-level dicts below; a YAML file (see
term_reduction_config.yaml) may override any subset of them, optionally
inheriting from another YAML file through a `_base` key.
"""

import os
import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables
PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent.parent.parent
load_dotenv(PROJECT_ROOT / '.env')

DEFAULT_CONFIG_PATH = PACKAGE_DIR / "term_reduction_config.yaml"

VALID_LINKAGES = ('complete', 'single', 'average')
VALID_CLUSTERERS = ('agglomerative', 'scipy')
VALID_SCORE_METHODS = ('uniqueness', 'size')


# Reduction configuration
REDUCTION_CONFIG = {
    "threshold": 0.7,  # Minimum similarity between members of one cluster
    "secondary_threshold": None,  # Looser threshold for grouping representatives (None = off)
}

# Fallback scoring when no scores are supplied
SCORING_CONFIG = {
    "method": "uniqueness",  # Options: uniqueness, size
}

# Clustering strategy
CLUSTERING_CONFIG = {
    "clusterer": "agglomerative",  # Options: agglomerative (in-house), scipy
    "linkage": "complete",  # Options: complete, single, average
    "compute_quality_metrics": True,  # Silhouette score on the precomputed distances
}

# Similarity matrix construction
MATRIX_CONFIG = {
    "max_workers": 4,  # Parallel pairwise lookups
    "show_progress": False,
    "tolerance": 1e-8,  # Symmetry / range tolerance for validation
    "cache_path": None,  # Pickle file for LookupCache persistence
}

# Remote similarity service
SIMILARITY_SERVICE_CONFIG = {
    "base_url": os.getenv("TERM_REDUCTION_SIMILARITY_URL", "http://localhost:8000"),
    "measure": "Rel",  # Options depend on the service: Resnik, Lin, Rel, Jiang, Wang
    "ontology": "BP",
    "timeout": 30  # seconds
}

# Annotation database
ANNOTATION_CONFIG = {
    "db_path": None,  # SQLite database with terms / term_ancestors tables
}

# Logging configuration
LOGGING_CONFIG = {
    "level": os.getenv("TERM_REDUCTION_LOG_LEVEL", "INFO"),
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "file_path": None
}


def get_config() -> Dict[str, Any]:
    """
    Get complete default configuration dictionary.

    Returns:
        Dictionary with all configuration sections (deep copy)
    """
    return copy.deepcopy({
        "reduction": REDUCTION_CONFIG,
        "scoring": SCORING_CONFIG,
        "clustering": CLUSTERING_CONFIG,
        "matrix": MATRIX_CONFIG,
        "similarity_service": SIMILARITY_SERVICE_CONFIG,
        "annotation": ANNOTATION_CONFIG,
        "logging": LOGGING_CONFIG
    })


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> Dict:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    # Handle _base reference
    if '_base' in data:
        base_path = path.parent / data.pop('_base')
        data = _deep_merge(_read_yaml(base_path), data)

    return data


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load YAML configuration over the defaults.

    Args:
        path: YAML file (None = packaged term_reduction_config.yaml)

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid values
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    config = _deep_merge(get_config(), _read_yaml(config_path))
    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Check configuration values.

    Raises:
        ConfigurationError: On the first invalid value
    """
    reduction = config.get("reduction", {})
    for key in ("threshold", "secondary_threshold"):
        value = reduction.get(key)
        if value is None and key == "secondary_threshold":
            continue
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0.0 < value <= 1.0:
            raise ConfigurationError(f"reduction.{key} must be in (0, 1], got {value!r}")

    method = config.get("scoring", {}).get("method")
    if method not in VALID_SCORE_METHODS:
        raise ConfigurationError(f"scoring.method must be one of {VALID_SCORE_METHODS}, got {method!r}")

    clustering = config.get("clustering", {})
    if clustering.get("linkage") not in VALID_LINKAGES:
        raise ConfigurationError(
            f"clustering.linkage must be one of {VALID_LINKAGES}, got {clustering.get('linkage')!r}"
        )
    if clustering.get("clusterer") not in VALID_CLUSTERERS:
        raise ConfigurationError(
            f"clustering.clusterer must be one of {VALID_CLUSTERERS}, got {clustering.get('clusterer')!r}"
        )

    workers = config.get("matrix", {}).get("max_workers")
    if not isinstance(workers, int) or workers < 1:
        raise ConfigurationError(f"matrix.max_workers must be a positive integer, got {workers!r}")

    timeout = config.get("similarity_service", {}).get("timeout")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigurationError(f"similarity_service.timeout must be positive, got {timeout!r}")


def setup_logging(name: str = "term_reduction", log_file: Optional[str] = None,
                  level: Optional[Union[int, str]] = None) -> logging.Logger:
    """Centralized logging setup."""
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    if level is None:
        level = LOGGING_CONFIG["level"]
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)
    formatter = logging.Formatter(LOGGING_CONFIG["format"])

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler if specified
    log_file = log_file or LOGGING_CONFIG["file_path"]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Convenience exports
__all__ = [
    'DEFAULT_CONFIG_PATH',
    'REDUCTION_CONFIG',
    'SCORING_CONFIG',
    'CLUSTERING_CONFIG',
    'MATRIX_CONFIG',
    'SIMILARITY_SERVICE_CONFIG',
    'ANNOTATION_CONFIG',
    'LOGGING_CONFIG',
    'get_config',
    'load_config',
    'validate_config',
    'setup_logging'
]
