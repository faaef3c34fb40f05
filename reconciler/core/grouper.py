"""Composite key generation and grouping by key."""

from typing import Dict, List, Sequence

from reconciler.config.models import NormalizationProfile, Record
from reconciler.core.preprocessor import CellNormalizer

KEY_SEPARATOR = '\x1f\x1f'
_ESCAPE = '\x1f'
_ESCAPED = '\x1f\x00'

def _escape(part: str) -> str:
    # Every unit separator inside a part is followed by NUL, so the doubled
    # separator can only appear between parts.
    return part.replace(_ESCAPE, _ESCAPED)

def join_key(parts: Sequence[str]) -> str:
    """Join key parts so that distinct part tuples give distinct keys."""
    return KEY_SEPARATOR.join(_escape(part) for part in parts)

def composite_key(
    record: Record,
    columns: Sequence[str],
    profile: NormalizationProfile
) -> str:
    """
    Build the composite key of a record.

    Args:
        record: Record to build the key for
        columns: Columns contributing to the key, in significant order
        profile: Normalization applied to every cell

    Returns:
        str: Joined normalized values
    """
    normalizer = CellNormalizer(profile)
    return join_key([normalizer.process(record.get(col)) for col in columns])

def group_by_key(
    records: Sequence[Record],
    columns: Sequence[str],
    profile: NormalizationProfile
) -> Dict[str, List[Record]]:
    """
    Group records by composite key in a single pass.

    The returned dict iterates keys in first-seen order and keeps records in
    input order within each group.
    """
    groups: Dict[str, List[Record]] = {}
    for record in records:
        groups.setdefault(composite_key(record, columns, profile), []).append(record)
    return groups
