"""Single-file deduplication, two-file comparison and duplicate reports."""

import logging
from itertools import count
from typing import Dict, List, Sequence, Tuple

from reconciler.config.models import (
    ComparisonResult,
    DedupResult,
    DuplicateReport,
    GroupMember,
    MatchGroup,
    MatchingMode,
    MatchOptions,
    Record,
    Table
)
from reconciler.core.cluster import ClusterMatcher
from reconciler.core.grouper import composite_key, group_by_key

logger = logging.getLogger(__name__)

GROUP_ID_COLUMN = 'Duplicate Group ID'
IS_ORIGINAL_COLUMN = 'Is Original'
MATCH_TYPE_COLUMN = 'Match Type'
CONFIDENCE_COLUMN = 'Confidence Score'

REPORT_COLUMNS = [
    GROUP_ID_COLUMN,
    IS_ORIGINAL_COLUMN,
    MATCH_TYPE_COLUMN,
    CONFIDENCE_COLUMN
]

PRIMARY_MATCH_TYPE = 'Exact (Primary)'

def _find_groups(records: Sequence[Record], options: MatchOptions) -> List[MatchGroup]:
    """
    Group records hierarchically: exact primary key first, then secondary
    matching inside each primary group.

    Groups come back in discovery order, with the canonical record first.
    """
    primary = options.primary_columns
    secondary = options.secondary_columns
    matcher = ClusterMatcher(secondary, options)

    if not primary:
        return matcher.cluster(records)

    groups: List[MatchGroup] = []
    for bucket in group_by_key(records, primary, options.key_profile).values():
        if len(bucket) == 1 or not secondary:
            groups.append(MatchGroup(
                representative=bucket[0],
                members=[GroupMember(record) for record in bucket]
            ))
        else:
            groups.extend(matcher.cluster(bucket))
    return groups

def dedup_single_file(table: Table, options: MatchOptions) -> DedupResult:
    """
    Split a table into canonical rows and their duplicates.

    Args:
        table: Table to deduplicate
        options: Matching options; with no primary and no secondary columns
            the table passes through unchanged

    Returns:
        DedupResult: Canonical rows in ``cleaned``, the rest in ``duplicates``
    """
    if not options.primary_columns and not options.secondary_columns:
        return DedupResult(
            duplicates=[],
            cleaned=list(table.records),
            total_duplicates=0,
            total_rows_processed=table.row_count
        )

    cleaned: List[Record] = []
    duplicates: List[Record] = []
    for group in _find_groups(table.records, options):
        records = group.records
        cleaned.append(records[0])
        duplicates.extend(records[1:])

    logger.debug(f"{table.name}: {len(cleaned)} canonical rows, {len(duplicates)} duplicates")

    return DedupResult(
        duplicates=duplicates,
        cleaned=cleaned,
        total_duplicates=len(duplicates),
        total_rows_processed=table.row_count
    )

def compare_files(main: Table, comparison: Table, options: MatchOptions) -> ComparisonResult:
    """
    Split the comparison table into rows also found in main and rows unique to it.

    Only ``main`` is indexed, by primary key. A comparison row is common when
    its primary key exists in main and, if secondary columns are set, it
    matches at least one main row of that key on them.
    """
    key_profile = options.key_profile
    buckets = group_by_key(main.records, options.primary_columns, key_profile)
    matcher = ClusterMatcher(options.secondary_columns, options)
    prepared_buckets: Dict[str, List[Tuple[str, ...]]] = {}

    common: List[Record] = []
    unique: List[Record] = []

    for record in comparison.records:
        key = composite_key(record, options.primary_columns, key_profile)
        bucket = buckets.get(key)

        if bucket is None:
            unique.append(record)
            continue

        if not options.secondary_columns:
            common.append(record)
            continue

        if key not in prepared_buckets:
            prepared_buckets[key] = [matcher.prepare(candidate) for candidate in bucket]

        prepared = matcher.prepare(record)
        if any(
            matcher.compare(prepared, candidate).is_match
            for candidate in prepared_buckets[key]
        ):
            common.append(record)
        else:
            unique.append(record)

    return ComparisonResult(common=common, unique=unique)

def _format_confidence(confidence: float) -> str:
    # Half-up rounding to whole percent
    return f"{int(confidence * 100 + 0.5)}%"

def duplicate_report(table: Table, options: MatchOptions) -> DuplicateReport:
    """
    List every member of every duplicate group with group metadata.

    Nothing is discarded: the canonical record is flagged with
    ``Is Original`` instead. Group ids start at 1 for each report.
    """
    headers = REPORT_COLUMNS + [h for h in table.headers if h not in REPORT_COLUMNS]

    if not options.primary_columns and not options.secondary_columns:
        return DuplicateReport(rows=[], headers=headers, total_duplicate_rows=0, total_groups=0)

    primary_only = not options.secondary_columns
    scored = not primary_only and options.matching_mode is MatchingMode.FUZZY
    match_type = PRIMARY_MATCH_TYPE if primary_only else options.matching_mode.label

    group_ids = count(1)
    rows: List[Record] = []
    total_groups = 0

    for group in _find_groups(table.records, options):
        if group.size < 2:
            continue
        group_id = next(group_ids)
        total_groups += 1

        for position, member in enumerate(group.members):
            metadata = {
                GROUP_ID_COLUMN: group_id,
                IS_ORIGINAL_COLUMN: position == 0,
                MATCH_TYPE_COLUMN: match_type,
                CONFIDENCE_COLUMN: (
                    _format_confidence(member.confidence) if scored else '100%'
                )
            }
            row = {**metadata, **member.record}
            row.update(metadata)
            rows.append(row)

    return DuplicateReport(
        rows=rows,
        headers=headers,
        total_duplicate_rows=len(rows),
        total_groups=total_groups
    )
