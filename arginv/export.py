"""
Export of query results to timestamped CSV or JSON files.
"""
import csv
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from .constants import (
    EXPORT_CSV,
    EXPORT_FORMATS,
    EXPORT_JSON,
    EXPORT_NONE,
    EXPORT_TIMESTAMP_FORMAT,
    JSON_MAX_DEPTH,
)
from .exceptions import ConfigError, ExportError
from .models import RowSet

logger = logging.getLogger(__name__)


def normalize_format(fmt: Optional[str]) -> str:
    """
    Return the canonical lower-case export format.

    Raises:
        ConfigError: If the format is not one of none, csv, json
    """
    value = (fmt or EXPORT_NONE).strip().lower()
    if value not in EXPORT_FORMATS:
        raise ConfigError(f"Unknown export format {fmt!r}, expected one of: {', '.join(EXPORT_FORMATS)}")
    return value


def format_timestamp(moment: datetime) -> str:
    """Format a moment as YYYYMMDD-HHMMSS."""
    return moment.strftime(EXPORT_TIMESTAMP_FORMAT)


def build_artifact_path(directory: str, name: str, timestamp: str, fmt: str) -> str:
    """<directory>/<name>-<timestamp>.<ext>"""
    return os.path.join(directory, f"{name}-{timestamp}.{fmt}")


def limit_depth(value: Any, max_depth: int = JSON_MAX_DEPTH, _depth: int = 0) -> Any:
    """
    Copy nested data, replacing containers at max_depth with JSON strings.

    The top-level value sits at depth 0, so max_depth levels of nesting are
    kept as structure.
    """
    if isinstance(value, (dict, list, tuple)):
        if _depth >= max_depth:
            return json.dumps(value, default=str, separators=(',', ':'))
        if isinstance(value, dict):
            return {k: limit_depth(v, max_depth, _depth + 1) for k, v in value.items()}
        return [limit_depth(v, max_depth, _depth + 1) for v in value]
    return value


def _csv_value(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, separators=(',', ':'))
    return value


def _open_private(filepath: str):
    """Open a file for writing, readable by the owner only."""
    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        return os.fdopen(fd, 'w', newline='', encoding='utf-8')
    except Exception:
        os.close(fd)
        raise


def write_json(rows: RowSet, filepath: str, max_depth: int = JSON_MAX_DEPTH) -> None:
    """Write rows as a JSON array with nesting limited to max_depth."""
    records = [limit_depth(row, max_depth) for row in rows]
    with _open_private(filepath) as f:
        json.dump(records, f, indent=2, default=str)


def write_csv(rows: RowSet, filepath: str, fieldnames: Optional[List[str]] = None) -> None:
    """
    Write rows as CSV.

    Columns come from the first row unless fieldnames is given. Nested
    values are written as compact JSON. An empty row set gives an empty file.
    """
    with _open_private(filepath) as f:
        if not rows:
            return

        if not fieldnames:
            fieldnames = list(rows[0].keys())

        writer = csv.DictWriter(f, fieldnames=fieldnames, restval='', extrasaction='ignore')
        writer.writeheader()
        for row in rows:
            writer.writerow({k: _csv_value(v) for k, v in row.items()})


class ExportPipeline:
    """
    Writes one row set per call to <directory>/<name>-<YYYYMMDD-HHMMSS>.<ext>.

    Export is opt-in: the "none" format never touches the filesystem.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def export(self, name: str, rows: RowSet, fmt: str, directory: str) -> Optional[str]:
        """
        Persist a row set.

        Returns:
            Path written, or None for the "none" format

        Raises:
            ConfigError: If fmt is not a known format
            ExportError: If the directory or file cannot be written, or a row
                cannot be encoded
        """
        fmt = normalize_format(fmt)
        if fmt == EXPORT_NONE:
            return None

        filepath = build_artifact_path(directory, name, format_timestamp(self._clock()), fmt)
        try:
            os.makedirs(directory, exist_ok=True)
            if fmt == EXPORT_CSV:
                write_csv(rows, filepath)
            elif fmt == EXPORT_JSON:
                write_json(rows, filepath)
        except (OSError, ValueError, TypeError, csv.Error) as e:
            # ValueError includes UnicodeEncodeError (e.g. lone surrogates in row data)
            raise ExportError(name, filepath, cause=e) from e

        logger.info(f"Wrote {filepath}")
        return filepath
