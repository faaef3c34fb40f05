"""Key-based merging of several tables with per-field conflict detection."""

import logging
from itertools import count
from typing import Any, Dict, List, Optional, Sequence, Tuple

from reconciler.config.models import (
    ColumnKeyStats,
    ConflictField,
    ConflictValue,
    MergeAnalysisReport,
    MergeConflict,
    MergeOptions,
    MergeResolution,
    MergeResult,
    NormalizationProfile,
    Record,
    SOURCE_FILE_COLUMN,
    Table
)
from reconciler.config.rules import ConflictRules
from reconciler.core.columns import common_headers, union_headers
from reconciler.core.grouper import join_key
from reconciler.core.preprocessor import CellNormalizer, is_blank, to_cell_string

logger = logging.getLogger(__name__)

MULTIPLE_SOURCES = 'Multiple'

def merge_key(
    record: Record,
    key_columns: Sequence[str],
    key_profile: Optional[NormalizationProfile] = None
) -> Optional[str]:
    """
    Build the merge key of a record.

    Cells are stringified as-is unless a key profile is given. Returns None
    when there are no key columns or the joined key is empty. Several blank
    key cells still join to a non-empty key.
    """
    if not key_columns:
        return None

    if key_profile is None:
        parts = [to_cell_string(record.get(col)) for col in key_columns]
    else:
        normalizer = CellNormalizer(key_profile)
        parts = [normalizer.process(record.get(col)) for col in key_columns]

    key = join_key(parts)
    return key or None

def _is_absent(value: Any, blank_strings_absent: bool = False) -> bool:
    """Null cells are absent; empty strings only when asked."""
    if is_blank(value):
        return True
    return blank_strings_absent and to_cell_string(value) == ''

def merge_headers(tables: Sequence[Table], add_source_column: bool = False) -> List[str]:
    headers = union_headers(tables)
    if add_source_column and SOURCE_FILE_COLUMN not in headers:
        headers.append(SOURCE_FILE_COLUMN)
    return headers

def _compared_columns(
    headers: Sequence[str],
    key_columns: Sequence[str],
    rules: Optional[ConflictRules]
) -> List[str]:
    rules = rules or ConflictRules()
    return [
        header for header in headers
        if header != SOURCE_FILE_COLUMN and rules.should_compare(header, key_columns)
    ]

def _dedupe_field(conflict_field: ConflictField) -> Optional[ConflictField]:
    """Drop repeated (file, value) pairs; None if only one value remains."""
    seen = set()
    values = []
    for item in conflict_field.values:
        marker = (item.file_name, to_cell_string(item.value))
        if marker not in seen:
            seen.add(marker)
            values.append(item)

    if len({to_cell_string(item.value) for item in values}) < 2:
        return None
    return ConflictField(column=conflict_field.column, values=values)

def merge_files(
    tables: Sequence[Table],
    primary_key_columns: Sequence[str],
    options: Optional[MergeOptions] = None
) -> MergeResult:
    """
    Merge tables on a primary key.

    Tables are read in call order and rows in table order. The first row of
    each key becomes the merged record. A later row with the same key whose
    value differs from the first row's in a compared column, both being
    present, turns the key into a conflict: its record leaves the merged
    data until the conflict is resolved.

    Args:
        tables: Tables to merge
        primary_key_columns: Columns identifying a record across tables
        options: Source column, key normalization and conflict rules

    Returns:
        MergeResult: Conflict-free records, conflicts, headers and the
            number of rows dropped for lacking a key
    """
    options = options or MergeOptions()
    key_columns = list(primary_key_columns)
    headers = merge_headers(tables, options.add_source_column)
    compared = _compared_columns(headers, key_columns, options.conflict_rules)

    canonical: Dict[str, Record] = {}
    origins: Dict[str, Tuple[str, Record]] = {}
    conflicts: Dict[str, MergeConflict] = {}
    conflict_fields: Dict[str, Dict[str, ConflictField]] = {}
    conflict_ids = count(1)
    dropped_rows = 0

    for table in tables:
        for record in table.records:
            key = merge_key(record, key_columns, options.key_profile)
            if key is None:
                dropped_rows += 1
                continue

            if key not in canonical:
                merged = {col: record.get(col) for col in key_columns}
                merged.update(record)
                if options.add_source_column:
                    merged[SOURCE_FILE_COLUMN] = table.name
                canonical[key] = merged
                origins[key] = (table.name, record)
                continue

            first_file, first_record = origins[key]
            for column in compared:
                existing = first_record.get(column)
                incoming = record.get(column)
                if (_is_absent(existing, options.blank_strings_absent)
                        or _is_absent(incoming, options.blank_strings_absent)):
                    continue
                if to_cell_string(existing) == to_cell_string(incoming):
                    continue

                if key not in conflicts:
                    conflicts[key] = MergeConflict(
                        id=next(conflict_ids),
                        primary_key_values={col: first_record.get(col) for col in key_columns}
                    )
                    conflict_fields[key] = {}

                conflict_field = conflict_fields[key].setdefault(column, ConflictField(column))
                conflict_field.values.append(ConflictValue(first_file, existing))
                conflict_field.values.append(ConflictValue(table.name, incoming))

    resolved_conflicts: List[MergeConflict] = []
    conflicted_keys = set()
    for key, conflict in conflicts.items():
        fields = [
            deduped for deduped in map(_dedupe_field, conflict_fields[key].values())
            if deduped is not None
        ]
        if not fields:
            continue
        conflict.conflicting_fields = fields
        resolved_conflicts.append(conflict)
        conflicted_keys.add(key)

    if dropped_rows:
        logger.warning(f"Dropped {dropped_rows} rows without a primary key value")

    logger.debug(
        f"Merged {len(tables)} tables into {len(canonical) - len(conflicted_keys)} "
        f"records with {len(resolved_conflicts)} conflicts"
    )

    return MergeResult(
        merged_data=[record for key, record in canonical.items() if key not in conflicted_keys],
        conflicts=resolved_conflicts,
        headers=headers,
        dropped_rows=dropped_rows
    )

def _rows_by_key(
    tables: Sequence[Table],
    keys: set,
    key_columns: Sequence[str],
    key_profile: Optional[NormalizationProfile]
) -> Dict[str, List[Record]]:
    rows: Dict[str, List[Record]] = {}
    for table in tables:
        for record in table.records:
            key = merge_key(record, key_columns, key_profile)
            if key in keys:
                rows.setdefault(key, []).append(record)
    return rows

def _first_available(
    records: Sequence[Record],
    column: str,
    blank_strings_absent: bool = False
) -> Any:
    for record in records:
        value = record.get(column)
        if not _is_absent(value, blank_strings_absent):
            return value
    return ''

def apply_resolutions(
    merge_result: MergeResult,
    tables: Sequence[Table],
    primary_key_columns: Sequence[str],
    resolutions: Sequence[MergeResolution],
    options: Optional[MergeOptions] = None
) -> List[Record]:
    """
    Build the final merged rows once conflicts have been resolved.

    For every conflict, chosen values fill the conflicting columns; a
    conflicting column without a choice keeps its first recorded value.
    Columns that never conflicted take the first non-blank value found for
    the key in the source tables. Resolved rows follow the conflict-free
    records.
    """
    options = options or MergeOptions()
    key_columns = list(primary_key_columns)
    chosen_by_id = {resolution.conflict_id: resolution.values for resolution in resolutions}

    conflict_keys = {
        conflict.id: merge_key(conflict.primary_key_values, key_columns, options.key_profile)
        for conflict in merge_result.conflicts
    }
    source_rows = _rows_by_key(
        tables, set(conflict_keys.values()), key_columns, options.key_profile
    )

    resolved_rows: List[Record] = []
    for conflict in merge_result.conflicts:
        chosen = chosen_by_id.get(conflict.id, {})
        conflicted = {field.column: field for field in conflict.conflicting_fields}
        candidates = source_rows.get(conflict_keys[conflict.id], [])

        row = dict(conflict.primary_key_values)
        for header in merge_result.headers:
            if header == SOURCE_FILE_COLUMN or header in key_columns:
                continue
            if header in chosen:
                row[header] = chosen[header]
            elif header in conflicted:
                row[header] = conflicted[header].values[0].value
            else:
                row[header] = _first_available(
                    candidates, header, options.blank_strings_absent
                )

        if options.add_source_column:
            row[SOURCE_FILE_COLUMN] = MULTIPLE_SOURCES
        resolved_rows.append(row)

    return list(merge_result.merged_data) + resolved_rows

def default_resolutions(conflicts: Sequence[MergeConflict]) -> List[MergeResolution]:
    """Resolve every conflicting field with its first recorded value."""
    return [
        MergeResolution(
            conflict_id=conflict.id,
            values={
                field.column: field.values[0].value
                for field in conflict.conflicting_fields if field.values
            }
        )
        for conflict in conflicts
    ]

def prefer_file_resolutions(
    conflicts: Sequence[MergeConflict],
    file_name: str,
    base: Optional[Sequence[MergeResolution]] = None
) -> List[MergeResolution]:
    """
    Prefer one file's values wherever that file took part in a conflict.

    Fields the file has no value for keep the choice from ``base`` (or the
    first recorded value when no base is given).
    """
    base_by_id = {
        resolution.conflict_id: resolution.values
        for resolution in (base if base is not None else default_resolutions(conflicts))
    }

    preferred: List[MergeResolution] = []
    for conflict in conflicts:
        values = dict(base_by_id.get(conflict.id, {}))
        for field in conflict.conflicting_fields:
            match = next((item for item in field.values if item.file_name == file_name), None)
            if match is not None:
                values[field.column] = match.value
        preferred.append(MergeResolution(conflict_id=conflict.id, values=values))
    return preferred

def analyze_merge_keys(tables: Sequence[Table]) -> MergeAnalysisReport:
    """
    Score the columns shared by every table as merge key candidates.

    overlap: share of the column's distinct values found in every table
    uniqueness: distinct values per row, for the least unique table
    """
    stats: List[ColumnKeyStats] = []

    for column in common_headers(tables):
        value_sets = []
        uniqueness = 1.0
        for table in tables:
            values = [to_cell_string(record.get(column)) for record in table.records]
            distinct = {value for value in values if value != ''}
            value_sets.append(distinct)
            if table.row_count:
                uniqueness = min(uniqueness, len(distinct) / table.row_count)

        all_values = set().union(*value_sets)
        shared = set.intersection(*value_sets) if value_sets else set()
        overlap = len(shared) / len(all_values) if all_values else 0.0

        stats.append(ColumnKeyStats(column_name=column, overlap=overlap, uniqueness=uniqueness))

    return MergeAnalysisReport(
        common_columns=stats,
        suggested_keys=[
            stat.column_name for stat in stats
            if stat.uniqueness == 1.0 and stat.overlap > 0
        ]
    )

def concatenate_files(tables: Sequence[Table], add_source_column: bool = False) -> MergeResult:
    """Stack every row under the union header, padding missing cells with ''."""
    headers = merge_headers(tables, add_source_column)
    rows: List[Record] = []

    for table in tables:
        for record in table.records:
            row = dict.fromkeys(headers, '')
            row.update((col, value) for col, value in record.items() if col in row)
            if add_source_column:
                row[SOURCE_FILE_COLUMN] = table.name
            rows.append(row)

    return MergeResult(merged_data=rows, conflicts=[], headers=headers)
