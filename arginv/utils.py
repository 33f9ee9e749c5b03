"""
Utility functions for the ARG inventory collector.

Logging Level Standards:
------------------------
- ERROR: A catalog query failed, or a fatal setup problem
         "Query VirtualMachines failed at offset 5000: ..."
- WARNING: Export failures, pre-flight warnings, retries
           "Failed to export WebApps: ..."
- INFO: Progress messages, row counts
        "Found 42 rows for VirtualMachines"
        "Running 25 queries across 3 subscription(s)"
- DEBUG: Per-page detail
         "VirtualMachines: 5000 rows at offset 0"
"""
import hashlib
import logging
import os
import re
import sys
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, List, Optional, TypeVar

from azure.core.exceptions import ClientAuthenticationError, HttpResponseError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .constants import DEFAULT_RETRY_ATTEMPTS, PROVIDER_AZURE, STATUS_OK
from .exceptions import AuthError

if TYPE_CHECKING:
    from rich.progress import TaskID

    from .models import SummaryEntry

logger = logging.getLogger(__name__)

# Type variable for generic function decorator
F = TypeVar('F', bound=Callable[..., Any])


def retry_with_backoff(
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    min_wait: float = 1,
    max_wait: float = 60,
    exceptions: tuple = (Exception,),
    retry_if: Optional[Callable[[BaseException], bool]] = None,
) -> Callable[[F], F]:
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum wait time between retries in seconds (default: 1)
        max_wait: Maximum wait time between retries in seconds (default: 60)
        exceptions: Tuple of exception types to retry on (default: all Exceptions)
        retry_if: Optional predicate; when given, only matching exceptions are retried

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(max_attempts=5, retry_if=is_throttling_error)
        def call_api():
            ...
    """
    condition = retry_if_exception_type(exceptions)
    if retry_if is not None:
        condition = condition & retry_if_exception(retry_if)

    def decorator(func: F) -> F:
        return retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=condition,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )(func)
    return decorator


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """
    Progress tracker for a catalog run with rich display.

    Falls back to simple print statements if stdout is not a TTY
    (e.g., when piping output).

    Usage:
        with ProgressTracker("Resource Graph", total_queries=len(catalog)) as tracker:
            for query in catalog:
                tracker.start_query(query.name)
                rows = run(query)
                tracker.complete_query(query.name, len(rows))
    """

    def __init__(self, label: str, total_queries: int = 0, show_progress: bool = True):
        self.label = label
        self.total_queries = total_queries
        self.show_progress = show_progress and sys.stdout.isatty()

        # Counters
        self.completed_queries = 0
        self.failed_queries = 0
        self.total_rows = 0
        self.current_query = ""

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._main_task: Optional["TaskID"] = None
        self._use_rich = self.show_progress

    def __enter__(self):
        if self._use_rich:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._main_task = self._progress.add_task(
                f"{self.label} Inventory", total=self.total_queries or 1
            )
            self._progress.start()
        else:
            print(f"\n{'='*60}")
            print(f"{self.label} Inventory Starting")
            print(f"{'='*60}")
            if self.total_queries:
                print(f"Queries: {self.total_queries}")
            print()

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._use_rich:
            assert self._progress is not None
            assert self._console is not None
            self._progress.stop()
            self._console.print()
            self._print_summary_rich()
        else:
            self._print_summary_plain()
        return False

    def start_query(self, name: str):
        """Mark the start of a query."""
        self.current_query = name
        if self._use_rich:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, description=f"{self.label} [{name}]")
        else:
            print(f"  [{name}] Running...")

    def complete_query(self, name: str, row_count: int):
        """Mark a query as complete."""
        self.completed_queries += 1
        self.total_rows += row_count
        if self._use_rich:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, advance=1)
        else:
            print(f"  [{name}] Complete - {row_count:,} rows")

    def fail_query(self, name: str):
        """Mark a query as failed."""
        self.completed_queries += 1
        self.failed_queries += 1
        if self._use_rich:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, advance=1)
        else:
            print(f"  [{name}] FAILED")

    def _print_summary_rich(self):
        """Print a formatted summary using rich."""
        table = Table(title=f"{self.label} Inventory Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Queries", f"{self.completed_queries}/{self.total_queries}")
        table.add_row("Failed", str(self.failed_queries))
        table.add_row("Total Rows", f"{self.total_rows:,}")

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        """Print a plain text summary."""
        print(f"\n{'='*60}")
        print(f"{self.label} Inventory Complete")
        print(f"{'='*60}")
        print(f"  Queries:    {self.completed_queries}/{self.total_queries}")
        print(f"  Failed:     {self.failed_queries}")
        print(f"  Total Rows: {self.total_rows:,}")
        print()


def generate_run_id() -> str:
    """Generate a unique run ID."""
    return f"{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}-{str(uuid.uuid4())[:8]}"


# =============================================================================
# Auth Error Detection
# =============================================================================

# Azure error status codes that indicate auth/permission issues
AZURE_AUTH_STATUS_CODES = {401, 403}


def is_auth_error(exc: BaseException) -> bool:
    """
    Check if an exception represents an authentication/authorization error.

    Detects azure-core ClientAuthenticationError (which covers credential
    failures), and HttpResponseError with a 401/403 status or an
    auth-related message.
    """
    if isinstance(exc, ClientAuthenticationError):
        return True

    if isinstance(exc, HttpResponseError):
        status_code = getattr(exc, 'status_code', None)
        if status_code in AZURE_AUTH_STATUS_CODES:
            return True
        error_msg = str(exc).lower()
        return 'authenticationfailed' in error_msg or 'authorizationfailed' in error_msg

    return False


def check_and_raise_auth_error(exc: BaseException, context: str, provider: str = PROVIDER_AZURE) -> None:
    """
    Check if exception is an auth error and raise AuthError if so.

    Call this in exception handlers before logging and continuing.
    Otherwise returns normally so the caller can handle the error.

    Raises:
        AuthError: If exc is an authentication/authorization error
    """
    if is_auth_error(exc):
        raise AuthError(
            f"Authentication/authorization error while trying to {context}: {exc}",
            provider=provider,
            original_error=exc
        ) from exc


# =============================================================================
# Log Redaction
# =============================================================================

def hash_sensitive_id(value: str, prefix: str = "") -> str:
    """
    Hash a sensitive ID using consistent hashing.

    Uses first 8 chars of SHA256, so the same ID always maps to the same
    token within and across log files.

    Example: 12345678-1234-1234-1234-123456789012 -> id-3f1c9a2b
    """
    if not value:
        return value
    hash_val = hashlib.sha256(value.encode()).hexdigest()[:8]
    return f"{prefix}{hash_val}" if prefix else hash_val


_LOG_REDACT_PATTERNS = [
    # Resource paths - hash subscription and resource group, keep provider path
    (re.compile(r'(/subscriptions/)([0-9a-f-]{36})(/resourceGroups/)([^/\s]+)', re.IGNORECASE),
     lambda m: f"{m.group(1)}{hash_sensitive_id(m.group(2).lower())}{m.group(3)}{hash_sensitive_id(m.group(4))}"),
    (re.compile(r'(/subscriptions/)([0-9a-f-]{36})', re.IGNORECASE),
     lambda m: f"{m.group(1)}{hash_sensitive_id(m.group(2).lower())}"),
    # Bare GUIDs (subscription IDs, tenant IDs, principal IDs)
    (re.compile(r'\b([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})\b', re.IGNORECASE),
     lambda m: hash_sensitive_id(m.group(1).lower(), 'id-')),
]


def redact_log_message(message: str) -> str:
    """Redact subscription IDs and resource paths from a log message."""
    if not message:
        return message

    for pattern, replacer in _LOG_REDACT_PATTERNS:
        message = pattern.sub(replacer, message)

    return message


class RedactingFilter(logging.Filter):
    """
    Logging filter that redacts sensitive data from log messages.

    Uses consistent hashing so the same ID produces the same hash,
    allowing correlation across lines of a persisted log.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from the log record message."""
        if record.msg:
            record.msg = redact_log_message(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_log_message(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: If provided, also write a redacted log file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    # Console handler (stderr)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(log_dir, f"arginv_log_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        # Persisted logs never carry raw subscription IDs
        file_handler.addFilter(RedactingFilter())
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger('azure').setLevel(max(numeric_level, logging.WARNING))

    return logging.getLogger(__name__)


# =============================================================================
# Summary Output
# =============================================================================

def print_summary_table(entries: List['SummaryEntry']) -> None:
    """Print the per-query summary table to console."""
    if not entries:
        print("No queries were run.")
        return

    headers = ["Query", "Rows", "Status", "Export"]
    rows = []

    for e in entries:
        if e.status == STATUS_OK:
            count = f"{e.row_count:,}" if e.row_count is not None else "0"
            status = "ok"
        else:
            count = "-"
            status = e.status.upper()
        if e.export_error:
            export = "EXPORT FAILED"
        else:
            export = os.path.basename(e.export_path) if e.export_path else ""
        rows.append([e.name, count, status, export])

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)

    print("\n" + header_line)
    print(separator)

    for row in rows:
        print(" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)))

    total_rows = sum(e.row_count or 0 for e in entries)
    failed = sum(1 for e in entries if e.status != STATUS_OK)
    print(separator)
    print(f"{'TOTAL'.ljust(widths[0])} | {f'{total_rows:,}'.ljust(widths[1])} | {f'{failed} not ok'.ljust(widths[2])} |")
    print()
