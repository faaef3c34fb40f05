"""
Record Reconciler
=================

A system for reconciling tabular datasets: finding duplicates within a
file, comparing two files, comparing N files, and merging several files on
a key with conflict detection.

Key Features:
- Configurable normalization (trim, character stripping, case folding)
- Exact, fuzzy (Levenshtein) and phonetic (Soundex) matching
- Hierarchical primary/secondary key clustering
- Duplicate reports with group ids and confidence scores
- Key-based merging with per-field conflict detection and resolution
"""

from reconciler.core.reconciler import RecordReconciler

from reconciler.config.models import (
    MatchingMode,
    MatchOptions,
    MergeOptions,
    MergeResolution,
    KeyProfile,
    MatchProfile,
    Table
)
from reconciler.config.rules import ConflictRules, PatternRule

__version__ = "1.0.0"
