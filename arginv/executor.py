"""
Paged query execution.

Drives a backend page by page until a short or empty page signals the end
of the result set. Pages are fetched strictly in offset order.
"""
import logging
from typing import Optional, Sequence

from .constants import DEFAULT_PAGE_SIZE
from .exceptions import AuthError, ConfigError, QueryExecutionError
from .models import Page, RowSet

logger = logging.getLogger(__name__)


def validate_page_size(page_size) -> int:
    """
    Check that page_size is a positive integer.

    Raises:
        ConfigError: For zero, negative or non-integer values
    """
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise ConfigError(f"Page size must be a positive integer, got {page_size!r}")
    return page_size


class PagedQueryExecutor:
    """
    Runs one query to exhaustion against a backend.

    The backend must provide run_page(query, scopes, offset, limit)
    returning (rows, row_count).
    """

    def __init__(self, backend):
        self.backend = backend

    def execute(
        self,
        query_text: str,
        scopes: Sequence[str],
        page_size: int = DEFAULT_PAGE_SIZE,
        query_name: Optional[str] = None,
    ) -> RowSet:
        """
        Fetch every row of a query.

        Args:
            query_text: KQL text, passed through untouched
            scopes: Subscriptions the query runs across
            page_size: Rows requested per page
            query_name: Used to tag errors and log lines

        Returns:
            All rows, in page-arrival order

        Raises:
            ConfigError: Before any request, for an empty query, no scopes,
                or a page size that is not a positive integer
            QueryExecutionError: If any page fails
            AuthError: If the backend reports an auth failure
        """
        validate_page_size(page_size)
        if not query_text or not query_text.strip():
            raise ConfigError(f"Query {query_name or '<unnamed>'} has no query text")
        if not scopes:
            raise ConfigError("At least one scope is required")

        label = query_name or '<unnamed>'
        scope_tuple = tuple(scopes)
        rows: RowSet = []
        offset = 0

        while True:
            page = Page(query=query_text, scopes=scope_tuple, offset=offset, limit=page_size)
            try:
                page_rows, row_count = self.backend.run_page(
                    page.query, list(page.scopes), page.offset, page.limit
                )
            except AuthError:
                raise
            except Exception as e:
                raise QueryExecutionError(query_name, offset, cause=e) from e

            page_rows = list(page_rows or [])
            if row_count != len(page_rows):
                logger.debug(f"{label}: backend reported {row_count} rows but returned {len(page_rows)}")
            logger.debug(f"{label}: {len(page_rows)} rows at offset {offset}")

            rows.extend(page_rows)

            # A short or empty page is the last one
            if len(page_rows) < page_size:
                break
            offset += page_size

        logger.info(f"Found {len(rows)} rows for {label}")
        return rows
