"""
Configuration for the ARG inventory collector.

Settings come from:
1. Environment variables (ARGINV_*)
2. Command-line arguments (highest priority)

No configuration file is read.

Example:
```
export ARGINV_SUBSCRIPTIONS="sub-a,sub-b"
export ARGINV_EXPORT_FORMAT=json
python3 inventory_collect.py --output ./inventory
```
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PARALLEL_QUERIES,
    ENV_PREFIX,
    MAX_PARALLEL_QUERIES,
)
from .exceptions import ConfigError
from .executor import validate_page_size
from .export import normalize_format

logger = logging.getLogger(__name__)

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'subscriptions': f'{ENV_PREFIX}SUBSCRIPTIONS',
    'export_format': f'{ENV_PREFIX}EXPORT_FORMAT',
    'output': f'{ENV_PREFIX}OUTPUT',
    'page_size': f'{ENV_PREFIX}PAGE_SIZE',
    'parallel_queries': f'{ENV_PREFIX}PARALLEL_QUERIES',
    'queries': f'{ENV_PREFIX}QUERIES',
    'log_level': f'{ENV_PREFIX}LOG_LEVEL',
    'log_dir': f'{ENV_PREFIX}LOG_DIR',
}

_LIST_KEYS = ('subscriptions', 'queries')
_INT_KEYS = ('page_size', 'parallel_queries')


@dataclass
class InventoryConfig:
    """Validated settings for one run."""
    subscriptions: List[str] = field(default_factory=list)
    export_format: str = 'none'
    output: str = DEFAULT_OUTPUT_DIR
    page_size: int = DEFAULT_PAGE_SIZE
    parallel_queries: int = DEFAULT_PARALLEL_QUERIES
    queries: List[str] = field(default_factory=list)
    log_level: str = DEFAULT_LOG_LEVEL
    log_dir: Optional[str] = None
    skip_check: bool = False


def _split_list(value: Any) -> List[str]:
    """Flatten comma-separated strings (or lists of them) into a list."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    items: List[str] = []
    for entry in value:
        items.extend(v.strip() for v in str(entry).split(',') if v.strip())
    return items


def _to_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from e


def load_env_config(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Load configuration from environment variables."""
    environ = os.environ if environ is None else environ
    config: Dict[str, Any] = {}

    for config_key, env_var in ENV_VAR_MAPPING.items():
        value = environ.get(env_var)
        if value is None or value == '':
            continue
        if config_key in _LIST_KEYS:
            config[config_key] = _split_list(value)
        elif config_key in _INT_KEYS:
            config[config_key] = _to_int(env_var, value)
        else:
            config[config_key] = value

    return config


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format."""
    config: Dict[str, Any] = {}

    for key in ('subscriptions', 'export_format', 'output', 'page_size',
                'parallel_queries', 'queries', 'log_level', 'log_dir', 'skip_check'):
        value = getattr(args, key, None)
        if value is None:
            continue
        if key in _LIST_KEYS:
            value = _split_list(value)
            if not value:
                continue
        config[key] = value

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            elif value is not None:
                result[key] = value

    return result


def build_config(args, environ: Optional[Dict[str, str]] = None) -> InventoryConfig:
    """
    Load configuration from all sources, merge and validate it.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Defaults

    Raises:
        ConfigError: If any value is invalid
    """
    env_config = load_env_config(environ)
    if env_config:
        logger.debug(f"Loaded config from environment variables: {', '.join(sorted(env_config))}")

    merged = merge_configs(env_config, args_to_config(args))
    config = InventoryConfig(**merged)

    config.export_format = normalize_format(config.export_format)
    config.page_size = validate_page_size(_to_int('page_size', config.page_size))
    config.parallel_queries = _to_int('parallel_queries', config.parallel_queries)
    if not 1 <= config.parallel_queries <= MAX_PARALLEL_QUERIES:
        raise ConfigError(
            f"parallel_queries must be between 1 and {MAX_PARALLEL_QUERIES}, got {config.parallel_queries}"
        )
    if not config.output:
        raise ConfigError("Output directory must not be empty")

    return config
