# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Export of one configured database:

    discover tables -> export tables in parallel -> export custom queries -> load the catalog

A failing table or custom query is reported in the result and skipped; only a session or
discovery failure ends the export of the database early.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from database_exporter.configuration.export_config import ExportDatabaseConfig, ExportOptions
from database_exporter.tools.catalog_tools.catalog_loader import CatalogLoader, CatalogLoadResult
from database_exporter.tools.db_tools.session import ConnectionSession
from database_exporter.tools.export_tools.descriptors import TableDescriptor
from database_exporter.tools.export_tools.parquet_writer import remove_file, write_parquet
from database_exporter.utils.constants import UNLIMITED_ROWS
from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger
from database_exporter.utils.path_utils import ensure_directory, namespace_directory
from database_exporter.utils.sql_utils import sanitize_schema

logger = get_logger(__name__)

SessionFactory = Callable[..., ConnectionSession]


def resolve_row_limit(
    table_name: str, override_limits: Optional[Mapping[str, int]], global_limit: Optional[int]
) -> Optional[int]:
    """
    Row cap of one table: its own override unless that is -1, else the run-wide limit, else none.
    """
    override = (override_limits or {}).get(table_name)
    if override is not None and override != UNLIMITED_ROWS:
        return override
    return global_limit


class TableExportResult(BaseModel):
    name: str = Field(..., description="Table name, or the name of the custom query")
    file_path: str = Field(..., description="Destination Parquet file")
    kind: Literal["table", "query"] = Field(default="table")
    row_limit: Optional[int] = Field(default=None)
    row_count: int = Field(default=0)
    success: bool = Field(default=False)
    error: Optional[str] = Field(default=None)
    error_code: Optional[str] = Field(default=None)


class DatabaseExportReport(BaseModel):
    name: str = Field(..., description="Configuration name")
    namespace: str = Field(..., description="Sanitized name, used as directory and catalog schema")
    tables: List[TableExportResult] = Field(default_factory=list)
    custom_queries: List[TableExportResult] = Field(default_factory=list)
    catalog_loads: List[CatalogLoadResult] = Field(default_factory=list)
    catalog_error: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None, description="Set when the export of the database was aborted")

    @property
    def aborted(self) -> bool:
        return self.error is not None

    @property
    def exports(self) -> List[TableExportResult]:
        return self.tables + self.custom_queries

    @property
    def succeeded(self) -> List[TableExportResult]:
        return [r for r in self.exports if r.success]

    @property
    def failed(self) -> List[TableExportResult]:
        return [r for r in self.exports if not r.success]

    @property
    def failed_catalog_loads(self) -> List[CatalogLoadResult]:
        return [r for r in self.catalog_loads if not r.success]


class RunReport(BaseModel):
    databases: Dict[str, DatabaseExportReport] = Field(default_factory=dict)

    @property
    def failed_databases(self) -> List[str]:
        return [name for name, report in self.databases.items() if report.aborted]

    @property
    def failed_tables(self) -> List[Tuple[str, str]]:
        return [(name, result.name) for name, report in self.databases.items() for result in report.failed]


class ExportOrchestrator:
    def __init__(
        self,
        name: str,
        config: ExportDatabaseConfig,
        options: ExportOptions,
        session_factory: Optional[SessionFactory] = None,
    ):
        self.name = name
        self.config = config
        self.options = options
        self.namespace = sanitize_schema(name)
        self.session_factory = session_factory or ConnectionSession.from_config
        self._cancel_event = threading.Event()

    def cancel(self):
        """Stop scheduling work; tables already being written finish, the rest are reported as cancelled."""
        if not self._cancel_event.is_set():
            logger.warning(f"Cancelling export of `{self.name}`")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def resolve_row_limit(self, table_name: str) -> Optional[int]:
        return resolve_row_limit(table_name, self.config.override_limits, self.options.row_limit)

    def run(self) -> DatabaseExportReport:
        report = DatabaseExportReport(name=self.name, namespace=self.namespace)
        deadline = None
        if self.options.timeout_seconds:
            deadline = threading.Timer(self.options.timeout_seconds, self.cancel)
            deadline.daemon = True
            deadline.start()
        try:
            self._run(report)
        finally:
            if deadline:
                deadline.cancel()
        self._log_summary(report)
        return report

    def _run(self, report: DatabaseExportReport):
        logger.info(f"Processing database: {self.name}")
        try:
            session = self.session_factory(self.name, self.config, pool_size=self.options.worker_count)
        except ExporterException as e:
            logger.error(f"Unable to connect to `{self.name}`: {e}")
            report.error = str(e)
            return

        with session:
            try:
                tables = session.list_tables()
            except ExporterException as e:
                logger.error(f"Unable to list the tables of `{self.name}`: {e}")
                report.error = str(e)
                return

            try:
                ensure_directory(namespace_directory(self.options.export_directory, self.namespace))
            except ExporterException as e:
                logger.error(f"Unable to prepare the export directory of `{self.name}`: {e}")
                report.error = str(e)
                return
            descriptors = [
                TableDescriptor.for_table(table, self.options.export_directory, self.namespace) for table in tables
            ]
            report.tables = self.export_tables(session, descriptors)
            report.custom_queries = self.export_custom_queries(session, tables)

        if not self.options.include_catalog:
            logger.info("Catalog is disabled, no database created")
            return
        try:
            report.catalog_loads = self.consolidate(report.succeeded)
        except ExporterException as e:
            logger.error(f"Catalog consolidation of `{self.name}` failed: {e}")
            report.catalog_error = str(e)

    def export_tables(self, session: ConnectionSession, descriptors: List[TableDescriptor]) -> List[TableExportResult]:
        """Export every table on the worker pool; results keep the order of ``descriptors``."""
        if not descriptors:
            return []
        results: Dict[TableDescriptor, TableExportResult] = {}
        max_workers = min(self.options.worker_count, len(descriptors))
        logger.info(f"Exporting {len(descriptors)} tables of `{self.name}` with {max_workers} workers")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_descriptor = {
                executor.submit(self._export_table, session, descriptor): descriptor for descriptor in descriptors
            }
            for future in as_completed(future_to_descriptor):
                descriptor = future_to_descriptor[future]
                try:
                    results[descriptor] = future.result()
                except Exception as exc:
                    logger.error(f"Export of `{descriptor.table_name}` generated an exception: {exc}")
                    remove_file(descriptor.file_path)
                    results[descriptor] = TableExportResult(
                        name=descriptor.table_name,
                        file_path=str(descriptor.file_path),
                        row_limit=self.resolve_row_limit(descriptor.table_name),
                        error=str(exc),
                    )
        return [results[descriptor] for descriptor in descriptors]

    def export_custom_queries(
        self, session: ConnectionSession, table_names: Optional[List[str]] = None
    ) -> List[TableExportResult]:
        """Run the custom queries one at a time; a query named like a table is refused, nothing is written."""
        # catalog identifiers are case-insensitive, and so are some file systems
        taken = {name.casefold() for name in table_names or []}
        results = []
        for custom_query in self.config.custom_queries:
            descriptor = TableDescriptor.for_query(
                custom_query.name, custom_query.query, self.options.export_directory, self.namespace
            )
            if custom_query.name.casefold() in taken:
                error = ExporterException(
                    ErrorCode.EXPORT_NAME_CONFLICT, message_args={"table_name": custom_query.name}
                )
                logger.error(f"Skipping custom query `{custom_query.name}`: {error}")
                results.append(
                    TableExportResult(
                        name=descriptor.table_name,
                        file_path=str(descriptor.file_path),
                        kind="query",
                        row_limit=self.options.row_limit,
                        error=str(error),
                        error_code=error.code.code,
                    )
                )
                continue
            try:
                results.append(self._export_query(session, descriptor))
            except Exception as exc:
                logger.error(f"Unable to execute custom query `{custom_query.name}`:\n{custom_query.query}\n{exc}")
                remove_file(descriptor.file_path)
                results.append(
                    TableExportResult(
                        name=descriptor.table_name,
                        file_path=str(descriptor.file_path),
                        kind="query",
                        row_limit=self.options.row_limit,
                        error=str(exc),
                    )
                )
        return results

    def consolidate(self, written: List[TableExportResult]) -> List[CatalogLoadResult]:
        """Load the files that were written in this run into the catalog."""
        if not written:
            logger.info(f"Nothing to load into the catalog for `{self.name}`")
            return []
        with CatalogLoader(self.options.catalog_path, self.options.catalog_separator) as loader:
            return loader.load_files(
                self.namespace, [(r.name, r.file_path) for r in written], should_stop=lambda: self.cancelled
            )

    def _export_table(self, session: ConnectionSession, descriptor: TableDescriptor) -> TableExportResult:
        row_limit = self.resolve_row_limit(descriptor.table_name)
        return self._export(descriptor, row_limit, lambda: session.fetch_table(descriptor.table_name, row_limit))

    def _export_query(self, session: ConnectionSession, descriptor: TableDescriptor) -> TableExportResult:
        row_limit = self.options.row_limit
        return self._export(
            descriptor, row_limit, lambda: session.fetch_query(descriptor.query, row_limit, name=descriptor.table_name)
        )

    def _export(self, descriptor: TableDescriptor, row_limit: Optional[int], fetch) -> TableExportResult:
        result = TableExportResult(
            name=descriptor.table_name, file_path=str(descriptor.file_path), kind=descriptor.kind, row_limit=row_limit
        )
        try:
            self._raise_if_cancelled(descriptor)
            batch = fetch()
            self._raise_if_cancelled(descriptor)
            write_parquet(batch, descriptor.file_path, table_name=descriptor.table_name)
        except ExporterException as e:
            logger.error(f"Export of {descriptor.kind} `{descriptor.table_name}` failed: {e}")
            remove_file(descriptor.file_path)
            result.error = str(e)
            result.error_code = e.code.code
            return result
        result.row_count = batch.num_rows
        result.success = True
        return result

    def _raise_if_cancelled(self, descriptor: TableDescriptor):
        if self.cancelled:
            raise ExporterException(ErrorCode.EXPORT_CANCELLED, message_args={"table_name": descriptor.table_name})

    def _log_summary(self, report: DatabaseExportReport):
        if report.aborted:
            logger.error(f"Export of `{self.name}` aborted: {report.error}")
            return
        failed = [r.name for r in report.failed]
        logger.info(
            f"Export of `{self.name}` finished: {len(report.succeeded)} exported, {len(failed)} failed"
            + (f" ({', '.join(failed)})" if failed else "")
        )


class ExportRunner:
    """Exports several configured databases one after another."""

    def __init__(self, options: ExportOptions, session_factory: Optional[SessionFactory] = None):
        self.options = options
        self.session_factory = session_factory
        self._current: Optional[ExportOrchestrator] = None
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()
        if self._current:
            self._current.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep between two runs; returns True when the runner was cancelled meanwhile."""
        return self._cancelled.wait(seconds)

    def run(self, configs: Mapping[str, ExportDatabaseConfig]) -> RunReport:
        run_report = RunReport()
        ensure_directory(self.options.export_directory)
        for name, config in configs.items():
            if self._cancelled.is_set():
                logger.warning(f"Skipping `{name}`, the run was cancelled")
                break
            self._current = ExportOrchestrator(name, config, self.options, session_factory=self.session_factory)
            try:
                run_report.databases[name] = self._current.run()
            finally:
                self._current = None
        return run_report


def export_databases(
    configs: Mapping[str, ExportDatabaseConfig],
    options: ExportOptions,
    session_factory: Optional[SessionFactory] = None,
) -> RunReport:
    return ExportRunner(options, session_factory=session_factory).run(configs)
