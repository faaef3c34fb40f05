"""Column rules selecting which merge columns are checked for conflicts."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from dataclasses import dataclass, field
import regex as re

class ColumnRule(ABC):
    """Base class for column selection rules."""

    @abstractmethod
    def should_compare(self, column_name: str, key_columns: Sequence[str]) -> bool:
        """
        Determine if a column takes part in conflict detection.

        Args:
            column_name: Name of a merged header
            key_columns: Primary key columns of the merge

        Returns:
            bool: Whether differing values in the column are a conflict
        """
        pass

class AllColumnsRule(ColumnRule):
    """Select every column."""

    def should_compare(self, column_name: str, key_columns: Sequence[str]) -> bool:
        return True

class PatternRule(ColumnRule):
    """Select columns matching a regex pattern."""

    def __init__(self, pattern: str):
        self.pattern = re.compile(pattern)

    def should_compare(self, column_name: str, key_columns: Sequence[str]) -> bool:
        return bool(self.pattern.match(column_name))

@dataclass
class ConflictRules:
    """Configuration for which columns are checked during a merge."""

    include_rules: List[ColumnRule] = field(default_factory=lambda: [AllColumnsRule()])
    exclude_columns: Optional[List[str]] = None

    def should_compare(self, column_name: str, key_columns: Sequence[str]) -> bool:
        """
        Determine if a column should be compared based on all rules.

        Key columns are never compared; they define the merge identity.
        """
        if column_name in key_columns:
            return False

        if self.exclude_columns and column_name in self.exclude_columns:
            return False

        return any(
            rule.should_compare(column_name, key_columns)
            for rule in self.include_rules
        )
