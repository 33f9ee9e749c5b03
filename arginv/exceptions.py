"""
Exception hierarchy for the ARG inventory collector.

    InventoryError (base)
    ├── SetupError              - no credential / identity context (fatal)
    │   └── AuthError           - token or permission failure (stops the run)
    ├── ConfigError             - invalid settings, rejected before any request
    ├── ScopeResolutionError    - no usable subscriptions (fatal)
    ├── QueryExecutionError     - one catalog entry failed (recovered per query)
    ├── RunCancelledError       - entry never started, run was interrupted
    └── ExportError             - failure writing an artifact (recovered)

Setup errors stop the run before any query executes. Once queries are
running nothing escapes the aggregator: QueryExecutionError, AuthError,
RunCancelledError and ExportError are recorded on the per-query outcome and
reported in the final summary. An AuthError also stops new queries starting.
"""
from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base class for all collector errors.

    Attributes:
        message: Error message
        cause: Underlying exception, if any
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Return the error as a dictionary for reporting."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'cause': str(self.cause) if self.cause is not None else None,
        }


class SetupError(InventoryError):
    """Backend client or identity context is unavailable."""


class AuthError(SetupError):
    """Authentication/authorization failure reported by Azure.

    Raised when a cloud API returns an auth error that should stop the run
    rather than being recorded against a single query.
    """

    def __init__(self, message: str, provider: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error


class ConfigError(InventoryError):
    """Invalid configuration value."""


class ScopeResolutionError(InventoryError):
    """The set of subscriptions to query could not be determined or is empty."""


class QueryExecutionError(InventoryError):
    """A catalog query failed while paging.

    Tagged with the query name and the offset of the page that failed.
    """

    def __init__(self, query_name: Optional[str], offset: int, cause: Optional[BaseException] = None):
        label = query_name or '<unnamed>'
        super().__init__(f"Query {label} failed at offset {offset}", cause)
        self.query_name = query_name
        self.offset = offset

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['query_name'] = self.query_name
        data['offset'] = self.offset
        return data


class RunCancelledError(InventoryError):
    """The run was cancelled before this query started."""

    def __init__(self, query_name: str):
        super().__init__(f"Query {query_name} not started: run cancelled")
        self.query_name = query_name


class ExportError(InventoryError):
    """Writing an export artifact failed."""

    def __init__(self, name: str, path: Optional[str], cause: Optional[BaseException] = None):
        target = path or '<unknown path>'
        super().__init__(f"Failed to export {name} to {target}", cause)
        self.name = name
        self.path = path
