"""
ARG inventory shared library.
"""
# Import constants module for easy access
from . import constants
from .aggregator import ResultAggregator
from .catalog import DEFAULT_CATALOG, QueryCatalog
from .config import InventoryConfig, build_config
from .exceptions import (
    AuthError,
    ConfigError,
    ExportError,
    InventoryError,
    QueryExecutionError,
    RunCancelledError,
    ScopeResolutionError,
    SetupError,
)
from .executor import PagedQueryExecutor
from .export import ExportPipeline
from .graph import ResourceGraphBackend, get_credential, verify_access
from .models import InventoryResult, Page, QueryDefinition, QueryOutcome, SummaryEntry
from .scopes import get_subscriptions, resolve_scopes
from .utils import ProgressTracker, print_summary_table, setup_logging

__version__ = "1.0.0"

__all__ = [
    'constants',
    # Catalog & models
    'DEFAULT_CATALOG',
    'QueryCatalog',
    'QueryDefinition',
    'Page',
    'QueryOutcome',
    'InventoryResult',
    'SummaryEntry',
    # Engine
    'PagedQueryExecutor',
    'ResultAggregator',
    'ExportPipeline',
    # Azure collaborators
    'ResourceGraphBackend',
    'get_credential',
    'verify_access',
    'get_subscriptions',
    'resolve_scopes',
    # Config & utils
    'InventoryConfig',
    'build_config',
    'ProgressTracker',
    'print_summary_table',
    'setup_logging',
    # Errors
    'InventoryError',
    'SetupError',
    'AuthError',
    'ConfigError',
    'ScopeResolutionError',
    'QueryExecutionError',
    'RunCancelledError',
    'ExportError',
]
