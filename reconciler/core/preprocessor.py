"""Cell normalization pipeline shared by every matching engine."""

from typing import Any
from abc import ABC, abstractmethod
import numpy as np
import pandas as pd
import regex as re

from reconciler.config.models import NormalizationProfile

_NON_ALPHANUMERIC = re.compile(r'[^A-Za-z0-9]')

class BasePreprocessor(ABC):
    """Base class for preprocessors with common functionality."""

    @abstractmethod
    def process(self, value: Any) -> str:
        """Process a value into a comparable string."""
        pass

    def _handle_null(self, value: Any) -> bool:
        """Check if value is null/absent."""
        return is_blank(value)

def is_blank(value: Any) -> bool:
    """True for None, NaN, NaT and pd.NA."""
    if value is None:
        return True
    if pd.api.types.is_scalar(value):
        return bool(pd.isna(value))
    return False

def to_cell_string(value: Any) -> str:
    """
    Coerce a cell to its display string.

    Booleans render as ``true``/``false`` and integral floats drop the
    trailing ``.0``, so a spreadsheet ``1.0`` equals a CSV ``1``.
    """
    if is_blank(value):
        return ''
    if isinstance(value, (bool, np.bool_)):
        return 'true' if value else 'false'
    if isinstance(value, (float, np.floating)):
        if np.isfinite(value) and float(value).is_integer():
            return str(int(value))
        return str(float(value))
    if isinstance(value, np.integer):
        return str(int(value))
    return str(value)

class CellNormalizer(BasePreprocessor):
    """Applies trim, character stripping and case folding, in that order."""

    def __init__(self, profile: NormalizationProfile):
        self.profile = profile

    def process(self, value: Any) -> str:
        if self._handle_null(value):
            return ''

        text = to_cell_string(value)

        if self.profile.trim_whitespace:
            text = text.strip()

        if self.profile.strip_non_alphanumeric:
            text = _NON_ALPHANUMERIC.sub('', text)

        if not self.profile.case_sensitive:
            text = text.lower()

        return text

def normalize(value: Any, profile: NormalizationProfile) -> str:
    """Normalize a single cell under the given profile."""
    return CellNormalizer(profile).process(value)
