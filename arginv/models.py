"""
Data models for the ARG inventory collector.
"""
import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .constants import STATUS_CANCELLED, STATUS_FAILED, STATUS_OK
from .exceptions import RunCancelledError

# One query result row: field name -> scalar or nested dict/list
Row = Dict[str, Any]
RowSet = List[Row]


@dataclass(frozen=True)
class QueryDefinition:
    """A named Resource Graph query. The query text is never parsed."""
    name: str
    query: str


@dataclass(frozen=True)
class Page:
    """Parameters for a single page request."""
    query: str
    scopes: Tuple[str, ...]
    offset: int
    limit: int


@dataclass
class QueryOutcome:
    """
    Result of one catalog entry: rows on success, error on failure.

    Export results are recorded alongside and never affect the rows.
    """
    name: str
    rows: Optional[RowSet] = None
    error: Optional[Exception] = None
    export_path: Optional[str] = None
    export_error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> str:
        if self.error is None:
            return STATUS_OK
        if isinstance(self.error, RunCancelledError):
            return STATUS_CANCELLED
        return STATUS_FAILED

    @property
    def row_count(self) -> Optional[int]:
        if self.rows is None:
            return None
        return len(self.rows)


@dataclass
class SummaryEntry:
    """One line of the run summary."""
    name: str
    status: str
    row_count: Optional[int] = None
    error: Optional[str] = None
    export_path: Optional[str] = None
    export_error: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return asdict(self)


class InventoryResult:
    """
    Mapping of query name -> QueryOutcome for one run.

    Iteration follows catalog order, whatever order the queries finished in.
    Recording is guarded by a lock so parallel workers can share one result;
    each name may be recorded exactly once.
    fatal_error holds the auth failure that stopped the run early, if any.
    """

    def __init__(self, names: Iterable[str]):
        self._names: List[str] = list(names)
        self._known = set(self._names)
        self._outcomes: Dict[str, QueryOutcome] = {}
        self._lock = threading.Lock()
        self.fatal_error: Optional[Exception] = None

    def record(self, outcome: QueryOutcome) -> None:
        """Store the outcome for a catalog entry."""
        with self._lock:
            if outcome.name not in self._known:
                raise KeyError(f"{outcome.name} is not in the catalog for this run")
            if outcome.name in self._outcomes:
                raise KeyError(f"{outcome.name} already recorded")
            self._outcomes[outcome.name] = outcome

    def __getitem__(self, name: str) -> QueryOutcome:
        return self._outcomes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._outcomes

    def __iter__(self) -> Iterator[str]:
        return (name for name in self._names if name in self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def keys(self) -> List[str]:
        return list(self)

    def outcomes(self) -> List[QueryOutcome]:
        return [self._outcomes[name] for name in self]

    @property
    def complete(self) -> bool:
        """True once every catalog entry has an outcome."""
        return len(self._outcomes) == len(self._names)

    @property
    def rows(self) -> Dict[str, RowSet]:
        """RowSets of successful queries, in catalog order."""
        return {o.name: o.rows for o in self.outcomes() if o.ok and o.rows is not None}

    def failed(self) -> List[str]:
        return [o.name for o in self.outcomes() if o.status == STATUS_FAILED]

    def cancelled(self) -> List[str]:
        return [o.name for o in self.outcomes() if o.status == STATUS_CANCELLED]

    @property
    def total_rows(self) -> int:
        return sum(o.row_count or 0 for o in self.outcomes())

    def summary(self) -> List[SummaryEntry]:
        """Per-query row count or failure marker, in catalog order."""
        entries = []
        for outcome in self.outcomes():
            entries.append(SummaryEntry(
                name=outcome.name,
                status=outcome.status,
                row_count=outcome.row_count,
                error=str(outcome.error) if outcome.error is not None else None,
                export_path=outcome.export_path,
                export_error=str(outcome.export_error) if outcome.export_error is not None else None,
            ))
        return entries
