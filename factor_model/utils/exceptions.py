"""
Error types for the factor model.

Missing metric values and thin cohorts are not errors; they are handled
by the neutral-score and skip rules in the scoring code.
"""

from typing import Optional


class FactorModelError(Exception):
    """Base class for all factor model errors."""


class ConfigurationError(FactorModelError):
    """
    A metric or factor is referenced without a catalog entry, or the
    catalog itself is inconsistent.
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class MissingInputError(FactorModelError):
    """A whole run cannot proceed, e.g. no years are stored."""
