"""Representative-anchored clustering of candidate records."""

import logging
from typing import List, NamedTuple, Sequence, Tuple

from reconciler.config.models import (
    GroupMember,
    MatchGroup,
    MatchingMode,
    MatchOptions,
    Record
)
from reconciler.core.preprocessor import CellNormalizer
from reconciler.core.similarity import similarity, soundex

logger = logging.getLogger(__name__)

class MatchScore(NamedTuple):
    is_match: bool
    confidence: float

NO_MATCH = MatchScore(False, 0.0)

class ClusterMatcher:
    """
    Matches records on a set of columns under one matching mode.

    Exact mode honors every normalization flag. Fuzzy and phonetic modes
    always fold case before comparing.
    """

    def __init__(self, columns: Sequence[str], options: MatchOptions):
        """
        Initialize the matcher.

        Args:
            columns: Columns compared between records
            options: Matching mode, threshold and normalization flags
        """
        self.columns = tuple(columns)
        self.options = options
        self.mode = options.matching_mode

        profile = options.match_profile
        if self.mode is not MatchingMode.EXACT:
            profile = profile.case_folded()
        self._normalizer = CellNormalizer(profile)

    def prepare(self, record: Record) -> Tuple[str, ...]:
        """Compute the comparable values of a record once."""
        values = tuple(
            self._normalizer.process(record.get(col)) for col in self.columns
        )
        if self.mode is MatchingMode.PHONETIC:
            return tuple(soundex(value) for value in values)
        return values

    def compare(self, left: Tuple[str, ...], right: Tuple[str, ...]) -> MatchScore:
        """Compare two prepared value tuples."""
        if not self.columns:
            return NO_MATCH

        if self.mode is MatchingMode.FUZZY:
            scores = []
            for value1, value2 in zip(left, right):
                score = similarity(value1, value2)
                if score < self.options.fuzzy_threshold:
                    return NO_MATCH
                scores.append(score)
            return MatchScore(True, sum(scores) / len(scores))

        if left == right:
            return MatchScore(True, 1.0)
        return NO_MATCH

    def rows_match(self, record1: Record, record2: Record) -> MatchScore:
        return self.compare(self.prepare(record1), self.prepare(record2))

    def cluster(self, records: Sequence[Record]) -> List[MatchGroup]:
        """
        Partition records into match groups.

        Records are visited in input order. Each unassigned record opens a
        group as its representative, and every later unassigned record that
        matches the representative joins it. Members are only compared to
        the representative, so under fuzzy or phonetic matching two members
        of one group may not match each other. With ``mutual_clustering`` a
        candidate must also match every member already in the group.
        """
        prepared = [self.prepare(record) for record in records]
        assigned = [False] * len(records)
        groups: List[MatchGroup] = []

        for i, record in enumerate(records):
            if assigned[i]:
                continue
            assigned[i] = True

            group = MatchGroup(representative=record, members=[GroupMember(record)])
            member_indices = [i]

            for j in range(i + 1, len(records)):
                if assigned[j]:
                    continue

                score = self.compare(prepared[i], prepared[j])
                if not score.is_match:
                    continue

                if self.options.mutual_clustering and not all(
                    self.compare(prepared[k], prepared[j]).is_match
                    for k in member_indices[1:]
                ):
                    continue

                assigned[j] = True
                member_indices.append(j)
                group.members.append(GroupMember(records[j], score.confidence))

            groups.append(group)

        logger.debug(
            f"Clustered {len(records)} records into {len(groups)} groups "
            f"({self.mode.value} on {list(self.columns)})"
        )
        return groups

def rows_match(
    record1: Record,
    record2: Record,
    columns: Sequence[str],
    options: MatchOptions
) -> MatchScore:
    """Test whether two records match on the given columns."""
    return ClusterMatcher(columns, options).rows_match(record1, record2)

def cluster(
    records: Sequence[Record],
    columns: Sequence[str],
    options: MatchOptions
) -> List[MatchGroup]:
    """Cluster records on the given columns."""
    return ClusterMatcher(columns, options).cluster(records)
