"""
Runs every catalog query and collects the outcomes.

A failing query is recorded and the run moves on. An auth failure is also
recorded against its query, but no further queries are started: the rest of
the catalog is marked cancelled and the result carries the error as
`fatal_error`. Each successful result set is exported as soon as it is
complete, so progress is on disk even if a later query fails.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Sequence

from .catalog import QueryCatalog
from .constants import DEFAULT_OUTPUT_DIR, DEFAULT_PAGE_SIZE, EXPORT_NONE, MAX_PARALLEL_QUERIES
from .exceptions import AuthError, ConfigError, ExportError, QueryExecutionError, RunCancelledError
from .executor import PagedQueryExecutor, validate_page_size
from .export import ExportPipeline, normalize_format
from .models import InventoryResult, QueryDefinition, QueryOutcome
from .utils import ProgressTracker

logger = logging.getLogger(__name__)


class ResultAggregator:
    """
    Executes a catalog against a fixed set of scopes.

    Args:
        executor: PagedQueryExecutor bound to a backend
        exporter: ExportPipeline used when export_format is not "none"
        export_format: none, csv or json
        output_dir: Directory for export artifacts
        parallel_queries: Queries to run at once (1 = serial, max 8)
        tracker: Optional ProgressTracker for UI updates
    """

    def __init__(
        self,
        executor: PagedQueryExecutor,
        exporter: Optional[ExportPipeline] = None,
        export_format: str = EXPORT_NONE,
        output_dir: str = DEFAULT_OUTPUT_DIR,
        parallel_queries: int = 1,
        tracker: Optional[ProgressTracker] = None,
    ):
        self.executor = executor
        self.export_format = normalize_format(export_format)
        self.exporter = exporter or ExportPipeline()
        self.output_dir = output_dir
        self.parallel_queries = max(1, min(int(parallel_queries), MAX_PARALLEL_QUERIES))
        self.tracker = tracker
        self._tracker_lock = threading.Lock()

    def run(
        self,
        catalog: QueryCatalog,
        scopes: Sequence[str],
        page_size: int = DEFAULT_PAGE_SIZE,
        cancel_event: Optional[threading.Event] = None,
    ) -> InventoryResult:
        """
        Run every catalog query and return an outcome for each name.

        Raises:
            ConfigError: Before any query, for a bad page size or no scopes
        """
        validate_page_size(page_size)
        if not scopes:
            raise ConfigError("At least one scope is required")

        scopes = list(scopes)
        result = InventoryResult(catalog.names())
        # Set on the first auth failure; queries not yet started are skipped
        stop_event = threading.Event()
        logger.info(f"Running {len(catalog)} queries across {len(scopes)} subscription(s)")

        if self.parallel_queries <= 1:
            for definition in catalog:
                result.record(self._run_one(definition, scopes, page_size, cancel_event, stop_event))
        else:
            logger.info(f"Using parallel execution with {self.parallel_queries} threads")
            with ThreadPoolExecutor(max_workers=self.parallel_queries) as pool:
                futures = [
                    pool.submit(self._run_one, definition, scopes, page_size, cancel_event, stop_event)
                    for definition in catalog
                ]
                for future in as_completed(futures):
                    result.record(future.result())

        auth_failures = [o.error for o in result.outcomes() if isinstance(o.error, AuthError)]
        if auth_failures:
            result.fatal_error = auth_failures[0]

        failed = result.failed()
        if failed:
            logger.warning(f"{len(failed)} of {len(catalog)} queries failed: {', '.join(failed)}")
        cancelled = result.cancelled()
        if cancelled:
            logger.warning(f"Run cancelled, {len(cancelled)} queries not started")

        return result

    def _run_one(
        self,
        definition: QueryDefinition,
        scopes: Sequence[str],
        page_size: int,
        cancel_event: Optional[threading.Event],
        stop_event: threading.Event,
    ) -> QueryOutcome:
        name = definition.name
        if stop_event.is_set() or (cancel_event is not None and cancel_event.is_set()):
            return QueryOutcome(name=name, error=RunCancelledError(name))

        self._track('start_query', name)
        try:
            rows = self.executor.execute(definition.query, scopes, page_size, query_name=name)
        except AuthError as e:
            logger.error(f"Query {name} failed authentication, stopping run: {e}")
            stop_event.set()
            self._track('fail_query', name)
            return QueryOutcome(name=name, error=e)
        except QueryExecutionError as e:
            logger.error(f"{e}")
            self._track('fail_query', name)
            return QueryOutcome(name=name, error=e)

        outcome = QueryOutcome(name=name, rows=rows)
        self._track('complete_query', name, len(rows))

        if self.export_format != EXPORT_NONE:
            try:
                outcome.export_path = self.exporter.export(name, rows, self.export_format, self.output_dir)
            except ExportError as e:
                logger.warning(f"{e}")
                outcome.export_error = e

        return outcome

    def _track(self, method: str, *args) -> None:
        if self.tracker is None:
            return
        with self._tracker_lock:
            getattr(self.tracker, method)(*args)
