#!/usr/bin/env python3
"""
ARG Inventory - Azure Resource Graph Inventory Collector

Runs a fixed catalog of Resource Graph queries across one or more
subscriptions and optionally exports each result set to CSV or JSON.

Usage:
    python3 inventory_collect.py
    python3 inventory_collect.py --subscriptions <id>,<id>
    python3 inventory_collect.py --export-format csv --output ./inventory
    python3 inventory_collect.py --queries VirtualMachines,ManagedDisks --page-size 1000
"""
import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from arginv.aggregator import ResultAggregator
from arginv.catalog import DEFAULT_CATALOG, QueryCatalog
from arginv.config import build_config
from arginv.constants import EXIT_CANCELLED, EXIT_FATAL, EXIT_OK, EXPORT_FORMATS, EXPORT_NONE, MAX_PARALLEL_QUERIES
from arginv.exceptions import ConfigError, ScopeResolutionError, SetupError
from arginv.executor import PagedQueryExecutor
from arginv.export import ExportPipeline
from arginv.graph import ResourceGraphBackend, get_credential, verify_access
from arginv.scopes import resolve_scopes
from arginv.utils import ProgressTracker, generate_run_id, print_summary_table, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='ARG Inventory - Azure Resource Graph Inventory Collector')
    parser.add_argument(
        '--subscriptions',
        action='append',
        help='Comma-separated subscription IDs, repeatable (default: all accessible)'
    )
    parser.add_argument(
        '--export-format',
        type=str.lower,
        choices=EXPORT_FORMATS,
        help='Export format for each query result (default: none)'
    )
    parser.add_argument('--output', help='Output directory for exports (default: current directory)')
    parser.add_argument('--page-size', type=int, help='Rows requested per page (default: 5000)')
    parser.add_argument(
        '--parallel-queries',
        type=int,
        help=f'Number of queries to run in parallel (default: 1, max: {MAX_PARALLEL_QUERIES})'
    )
    parser.add_argument('--queries', help='Comma-separated subset of catalog query names to run')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--log-dir', help='Also write a redacted log file to this directory')
    parser.add_argument(
        '--skip-check',
        action='store_true',
        help='Skip the Resource Graph access check before running queries'
    )
    parser.add_argument('--list-queries', action='store_true', help='List catalog query names and exit')
    return parser


def install_cancel_handler(cancel_event: threading.Event) -> None:
    """
    First Ctrl-C stops the run after the query in flight; a second one
    interrupts immediately.
    """
    def handler(signum, frame):
        if cancel_event.is_set():
            signal.signal(signal.SIGINT, signal.default_int_handler)
            raise KeyboardInterrupt
        cancel_event.set()
        logger.warning("Cancellation requested - finishing current query (Ctrl-C again to abort)")

    signal.signal(signal.SIGINT, handler)


def main(argv: Optional[List[str]] = None, catalog: QueryCatalog = DEFAULT_CATALOG) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_queries:
        for name in catalog.names():
            print(name)
        return EXIT_OK

    try:
        config = build_config(args)
        if config.queries:
            catalog = catalog.select(config.queries)
    except ConfigError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    setup_logging(config.log_level, log_dir=config.log_dir)

    # Authenticate and resolve scopes - any failure here is fatal
    try:
        credential = get_credential()
        scopes = resolve_scopes(credential, config.subscriptions)
        backend = ResourceGraphBackend(credential)
        if not config.skip_check:
            check = verify_access(backend, scopes)
            for warning in check['warnings']:
                logger.warning(warning)
    except ScopeResolutionError as e:
        logger.error(f"{e}")
        return EXIT_FATAL
    except SetupError as e:
        logger.error(f"Failed to authenticate with Azure: {e}")
        logger.error("Check your Azure credentials are configured correctly.")
        return EXIT_FATAL

    run_id = generate_run_id()
    logger.info(f"Run ID: {run_id}")

    cancel_event = threading.Event()
    if threading.current_thread() is threading.main_thread():
        install_cancel_handler(cancel_event)

    try:
        with ProgressTracker("Resource Graph", total_queries=len(catalog)) as tracker:
            aggregator = ResultAggregator(
                PagedQueryExecutor(backend),
                exporter=ExportPipeline(),
                export_format=config.export_format,
                output_dir=config.output,
                parallel_queries=config.parallel_queries,
                tracker=tracker,
            )
            result = aggregator.run(catalog, scopes, config.page_size, cancel_event=cancel_event)
    finally:
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, signal.default_int_handler)

    print(f"\nRun ID: {run_id}")
    print_summary_table(result.summary())
    if config.export_format != EXPORT_NONE:
        print(f"Output: {config.output}")

    if result.fatal_error is not None:
        logger.error(f"Run stopped early: {result.fatal_error}")
        return EXIT_FATAL
    if result.cancelled():
        return EXIT_CANCELLED
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
