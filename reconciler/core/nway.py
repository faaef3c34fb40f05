"""Intersection and per-file differences across two or more tables."""

import logging
from typing import Dict, List, Sequence

from reconciler.config.models import (
    FileDifference,
    MatchingMode,
    MatchOptions,
    NWayResult,
    Record,
    Table
)
from reconciler.core.grouper import composite_key

logger = logging.getLogger(__name__)

def _first_by_key(table: Table, columns: Sequence[str], options: MatchOptions) -> Dict[str, Record]:
    """Map each composite key to the first record carrying it."""
    profile = options.match_profile
    keyed: Dict[str, Record] = {}
    for record in table.records:
        keyed.setdefault(composite_key(record, columns, profile), record)
    return keyed

def compare_n_way(
    tables: Sequence[Table],
    columns: Sequence[str],
    options: MatchOptions
) -> NWayResult:
    """
    Compare tables on exact composite keys.

    Later rows repeating a key inside one table are ignored. The
    intersection holds keys present in every table, with the first table's
    records; ``differences[i]`` holds the records of table ``i`` whose key
    appears in no other table.

    Args:
        tables: Tables to compare, in order
        columns: Columns forming the key
        options: Normalization flags; the matching mode is always exact

    Returns:
        NWayResult: Intersection and one difference entry per table
    """
    if options.matching_mode is not MatchingMode.EXACT:
        logger.debug(
            f"N-way comparison only supports exact matching, "
            f"ignoring mode {options.matching_mode.value}"
        )

    if not tables:
        return NWayResult(intersection=[], differences=[])

    keyed_tables = [_first_by_key(table, columns, options) for table in tables]

    first, others = keyed_tables[0], keyed_tables[1:]
    intersection = [
        record for key, record in first.items()
        if all(key in keyed for keyed in others)
    ]

    differences: List[FileDifference] = []
    for i, (table, keyed) in enumerate(zip(tables, keyed_tables)):
        rest = keyed_tables[:i] + keyed_tables[i + 1:]
        differences.append(FileDifference(
            file_name=table.name,
            records=[
                record for key, record in keyed.items()
                if not any(key in other for other in rest)
            ]
        ))

    return NWayResult(intersection=intersection, differences=differences)
