"""Main record reconciliation system implementation."""

from typing import List, Optional, Sequence, Union
import logging
import time

import pandas as pd

from reconciler.config.models import (
    ColumnComparisonResult,
    ComparisonResult,
    DedupResult,
    DuplicateReport,
    MatchGroup,
    MatchOptions,
    MergeAnalysisReport,
    MergeOptions,
    MergeResolution,
    MergeResult,
    NWayResult,
    Record,
    Table
)
from reconciler.core import cluster, columns, dedup, merge, nway

TableLike = Union[Table, pd.DataFrame]

class RecordReconciler:
    """
    Entry point bundling deduplication, comparison and merge operations
    under one set of options.
    """

    def __init__(
        self,
        options: Optional[MatchOptions] = None,
        merge_options: Optional[MergeOptions] = None
    ):
        """
        Initialize the reconciler.

        Args:
            options: Matching options for dedup, comparison and N-way runs
            merge_options: Options for key-based merges
        """
        self.options = options or MatchOptions()
        self.merge_options = merge_options or MergeOptions()

        self._initialize_logging()

    def _initialize_logging(self) -> None:
        """Setup logging configuration."""
        self.logger = logging.getLogger(__name__)
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter(
                    '%(asctime)s - %(levelname)s - %(message)s'
                )
            )
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def _as_table(data: TableLike, name: str) -> Table:
        if isinstance(data, pd.DataFrame):
            return Table.from_dataframe(data, name=name)
        return data

    def _as_tables(self, tables: Sequence[TableLike]) -> List[Table]:
        return [
            self._as_table(table, f'file_{index + 1}')
            for index, table in enumerate(tables)
        ]

    def _validate_columns(self, table: Table, selected: Sequence[str]) -> None:
        """Warn about selected columns the table does not have."""
        for column in selected:
            if column not in table.headers:
                self.logger.warning(
                    f"Column {column} not found in {table.name}. "
                    f"Its cells will be treated as blank."
                )

    def _log_duration(self, operation: str, start_time: float) -> None:
        self.logger.info(
            f"{operation} completed in {time.time() - start_time:.2f} seconds"
        )

    @property
    def _match_columns(self) -> List[str]:
        return list(self.options.primary_columns) + list(self.options.secondary_columns)

    def cluster(self, data: TableLike, selected: Sequence[str]) -> List[MatchGroup]:
        """Cluster all rows of a table on the given columns."""
        table = self._as_table(data, 'table')
        self._validate_columns(table, selected)
        return cluster.cluster(table.records, selected, self.options)

    def dedup_single_file(self, data: TableLike) -> DedupResult:
        """
        Remove duplicate rows from a single table.

        Args:
            data: Table or DataFrame to deduplicate

        Returns:
            DedupResult: Canonical rows and the duplicates removed
        """
        start_time = time.time()
        table = self._as_table(data, 'table')
        self._validate_columns(table, self._match_columns)

        result = dedup.dedup_single_file(table, self.options)

        self.logger.info(
            f"Found {result.total_duplicates} duplicates in "
            f"{result.total_rows_processed} rows"
        )
        self._log_duration('Deduplication', start_time)
        return result

    def compare_files(self, main: TableLike, comparison: TableLike) -> ComparisonResult:
        """
        Split the comparison table into rows common with main and unique rows.

        Args:
            main: Reference table, indexed by primary key
            comparison: Table whose rows are classified

        Returns:
            ComparisonResult: Common and unique rows of the comparison table
        """
        start_time = time.time()
        main_table = self._as_table(main, 'main')
        comparison_table = self._as_table(comparison, 'comparison')
        for table in (main_table, comparison_table):
            self._validate_columns(table, self._match_columns)

        result = dedup.compare_files(main_table, comparison_table, self.options)

        self.logger.info(
            f"{len(result.common)} common and {len(result.unique)} unique rows "
            f"in {comparison_table.name}"
        )
        self._log_duration('Comparison', start_time)
        return result

    def duplicate_report(self, data: TableLike) -> DuplicateReport:
        """Report every duplicate group of a table."""
        start_time = time.time()
        table = self._as_table(data, 'table')
        self._validate_columns(table, self._match_columns)

        report = dedup.duplicate_report(table, self.options)

        self.logger.info(
            f"Reported {report.total_duplicate_rows} rows in "
            f"{report.total_groups} duplicate groups"
        )
        self._log_duration('Duplicate report', start_time)
        return report

    def compare_n_way(self, tables: Sequence[TableLike], selected: Sequence[str]) -> NWayResult:
        """
        Find rows common to all tables and rows unique to each.

        Args:
            tables: Two or more tables
            selected: Columns forming the exact match key

        Returns:
            NWayResult: Intersection and per-table differences
        """
        start_time = time.time()
        resolved = self._as_tables(tables)
        if len(resolved) < 2:
            self.logger.warning("N-way comparison expects at least two tables")
        for table in resolved:
            self._validate_columns(table, selected)

        result = nway.compare_n_way(resolved, selected, self.options)

        self.logger.info(f"{len(result.intersection)} rows common to all tables")
        self._log_duration('N-way comparison', start_time)
        return result

    def analyze_merge_keys(self, tables: Sequence[TableLike]) -> MergeAnalysisReport:
        return merge.analyze_merge_keys(self._as_tables(tables))

    def merge_files(
        self,
        tables: Sequence[TableLike],
        primary_key_columns: Sequence[str]
    ) -> MergeResult:
        """
        Merge tables on a primary key, collecting conflicts.

        Args:
            tables: Tables to merge, in priority order
            primary_key_columns: Columns identifying a record

        Returns:
            MergeResult: Conflict-free rows, conflicts and merged headers
        """
        start_time = time.time()
        resolved = self._as_tables(tables)
        for table in resolved:
            self._validate_columns(table, primary_key_columns)

        result = merge.merge_files(resolved, primary_key_columns, self.merge_options)

        self.logger.info(
            f"Merged {len(result.merged_data)} records, "
            f"{len(result.conflicts)} conflicts to resolve"
        )
        self._log_duration('Merge', start_time)
        return result

    def apply_resolutions(
        self,
        merge_result: MergeResult,
        tables: Sequence[TableLike],
        primary_key_columns: Sequence[str],
        resolutions: Optional[Sequence[MergeResolution]] = None
    ) -> List[Record]:
        """Resolve conflicts, defaulting to each field's first value."""
        if resolutions is None:
            resolutions = merge.default_resolutions(merge_result.conflicts)
        return merge.apply_resolutions(
            merge_result,
            self._as_tables(tables),
            primary_key_columns,
            resolutions,
            self.merge_options
        )

    def concatenate_files(self, tables: Sequence[TableLike]) -> MergeResult:
        return merge.concatenate_files(
            self._as_tables(tables),
            self.merge_options.add_source_column
        )

    def compare_columns(
        self,
        data: TableLike,
        column_a: str,
        column_b: str
    ) -> ColumnComparisonResult:
        table = self._as_table(data, 'table')
        self._validate_columns(table, [column_a, column_b])
        return columns.compare_columns(table, column_a, column_b, self.options.match_profile)
