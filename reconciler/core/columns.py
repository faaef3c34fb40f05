"""Column-level helpers: shared headers and in-table column comparison."""

from typing import List, Sequence

from reconciler.config.models import (
    ColumnComparisonResult,
    NormalizationProfile,
    Record,
    Table
)
from reconciler.core.preprocessor import CellNormalizer

def common_headers(tables: Sequence[Table]) -> List[str]:
    """Headers present in every table, in the first table's order."""
    if not tables:
        return []
    others = [set(table.headers) for table in tables[1:]]
    return [
        header for header in tables[0].headers
        if all(header in headers for headers in others)
    ]

def union_headers(tables: Sequence[Table]) -> List[str]:
    """Headers of all tables, in first-seen order."""
    headers = {}
    for table in tables:
        for header in table.headers:
            headers.setdefault(header, None)
    return list(headers)

def compare_columns(
    table: Table,
    column_a: str,
    column_b: str,
    profile: NormalizationProfile
) -> ColumnComparisonResult:
    """
    Find rows whose two columns disagree after normalization.

    Args:
        table: Table to scan
        column_a: First column
        column_b: Second column
        profile: Normalization applied to both cells

    Returns:
        ColumnComparisonResult: Mismatching rows in table order
    """
    normalizer = CellNormalizer(profile)
    mismatches: List[Record] = [
        record for record in table.records
        if normalizer.process(record.get(column_a)) != normalizer.process(record.get(column_b))
    ]
    return ColumnComparisonResult(
        mismatches=mismatches,
        total_mismatches=len(mismatches),
        total_rows_processed=table.row_count
    )
