"""Configuration and result models for the record reconciliation system."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from enum import Enum

import pandas as pd

from reconciler.config.rules import ConflictRules

Record = Dict[str, Any]

SOURCE_FILE_COLUMN = 'Source File'

class MatchingMode(str, Enum):
    """How secondary columns are compared."""
    EXACT = "exact"
    FUZZY = "fuzzy"
    PHONETIC = "phonetic"

    @property
    def label(self) -> str:
        return self.value.capitalize()

@dataclass(frozen=True)
class NormalizationProfile:
    """Flags driving the cell normalization pipeline."""
    case_sensitive: bool = False
    trim_whitespace: bool = True
    strip_non_alphanumeric: bool = False

    def case_folded(self) -> 'NormalizationProfile':
        """Return the same profile with case folding forced on."""
        return type(self)(
            case_sensitive=False,
            trim_whitespace=self.trim_whitespace,
            strip_non_alphanumeric=self.strip_non_alphanumeric
        )

@dataclass(frozen=True)
class KeyProfile(NormalizationProfile):
    """Profile for primary-key identity. Never folds case."""

    def __post_init__(self):
        object.__setattr__(self, 'case_sensitive', True)

    def case_folded(self) -> 'KeyProfile':
        return self

@dataclass(frozen=True)
class MatchProfile(NormalizationProfile):
    """Profile for secondary matching, fully caller-configurable."""

@dataclass(frozen=True)
class MatchOptions:
    """Options shared by the dedup, comparison and N-way engines."""
    case_sensitive: bool = False
    trim_whitespace: bool = True
    strip_non_alphanumeric: bool = False
    matching_mode: Union[MatchingMode, str] = MatchingMode.EXACT
    fuzzy_threshold: float = 0.8
    primary_columns: Tuple[str, ...] = ()
    secondary_columns: Tuple[str, ...] = ()
    mutual_clustering: bool = False

    def __post_init__(self):
        """Coerce mode and column lists, and validate the threshold."""
        mode = self.matching_mode
        if isinstance(mode, str) and not isinstance(mode, MatchingMode):
            mode = mode.strip().lower()
        try:
            mode = MatchingMode(mode)
        except ValueError:
            raise ValueError(f"Unknown matching mode: {self.matching_mode}")
        object.__setattr__(self, 'matching_mode', mode)
        object.__setattr__(self, 'primary_columns', tuple(self.primary_columns))
        object.__setattr__(self, 'secondary_columns', tuple(self.secondary_columns))

        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            raise ValueError(
                f"fuzzy_threshold must be within [0, 1], got {self.fuzzy_threshold}"
            )

    @property
    def key_profile(self) -> KeyProfile:
        return KeyProfile(
            trim_whitespace=self.trim_whitespace,
            strip_non_alphanumeric=self.strip_non_alphanumeric
        )

    @property
    def match_profile(self) -> MatchProfile:
        return MatchProfile(
            case_sensitive=self.case_sensitive,
            trim_whitespace=self.trim_whitespace,
            strip_non_alphanumeric=self.strip_non_alphanumeric
        )

@dataclass
class Table:
    """An in-memory parsed file: ordered headers plus records."""
    name: str
    headers: List[str]
    records: List[Record]

    @property
    def row_count(self) -> int:
        return len(self.records)

    @classmethod
    def from_records(cls, name: str, records: List[Record]) -> 'Table':
        """Build a table, deriving headers from the records in first-seen order."""
        headers: Dict[str, None] = {}
        for record in records:
            for column in record:
                headers.setdefault(column, None)
        return cls(name=name, headers=list(headers), records=list(records))

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, name: str = 'table') -> 'Table':
        """Wrap a DataFrame. Missing cells stay as NaN and read as blank."""
        return cls(
            name=name,
            headers=[str(col) for col in df.columns],
            records=df.rename(columns=str).to_dict(orient='records')
        )

    def to_dataframe(self) -> pd.DataFrame:
        return records_to_dataframe(self.records, self.headers)

def records_to_dataframe(records: List[Record], headers: List[str]) -> pd.DataFrame:
    """Render result records under a fixed column order."""
    return pd.DataFrame(records, columns=headers)

@dataclass
class GroupMember:
    record: Record
    confidence: float = 1.0

@dataclass
class MatchGroup:
    """A representative and the records matched to it, representative first."""
    representative: Record
    members: List[GroupMember] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def records(self) -> List[Record]:
        return [member.record for member in self.members]

@dataclass
class DedupResult:
    duplicates: List[Record]
    cleaned: List[Record]
    total_duplicates: int
    total_rows_processed: int

@dataclass
class ComparisonResult:
    common: List[Record]
    unique: List[Record]

@dataclass
class DuplicateReport:
    """Every member of every duplicate group, tagged with group metadata."""
    rows: List[Record]
    headers: List[str]
    total_duplicate_rows: int
    total_groups: int

@dataclass
class FileDifference:
    file_name: str
    records: List[Record]

@dataclass
class NWayResult:
    intersection: List[Record]
    differences: List[FileDifference]

@dataclass
class ConflictValue:
    file_name: str
    value: Any

@dataclass
class ConflictField:
    column: str
    values: List[ConflictValue] = field(default_factory=list)

@dataclass
class MergeConflict:
    id: int
    primary_key_values: Record
    conflicting_fields: List[ConflictField] = field(default_factory=list)

@dataclass
class MergeResult:
    merged_data: List[Record]
    conflicts: List[MergeConflict]
    headers: List[str]
    dropped_rows: int = 0

@dataclass
class MergeResolution:
    """Chosen values for the fields of one conflict."""
    conflict_id: int
    values: Dict[str, Any] = field(default_factory=dict)

@dataclass(frozen=True)
class MergeOptions:
    """Options for key-based merging.

    key_profile: when set, key cells are normalized with it before joining.
        Keys are raw stringified cells otherwise.
    conflict_rules: selects the non-key columns checked for conflicts.
    blank_strings_absent: when set, empty-string cells count as absent like
        None and NaN, so they never conflict and never fill a resolved row.
    """
    add_source_column: bool = False
    key_profile: Optional[NormalizationProfile] = None
    conflict_rules: Optional[ConflictRules] = None
    blank_strings_absent: bool = False

@dataclass
class ColumnKeyStats:
    column_name: str
    overlap: float
    uniqueness: float

@dataclass
class MergeAnalysisReport:
    common_columns: List[ColumnKeyStats]
    suggested_keys: List[str]

@dataclass
class ColumnComparisonResult:
    mismatches: List[Record]
    total_mismatches: int
    total_rows_processed: int
