# src/errors.py
"""
Error and warning types raised by the splitting engines.
"""


class InsufficientGroups(ValueError):
    """Fewer than six 5-year age groups (open group included)."""


class DimensionMismatch(ValueError):
    """Coefficient matrix columns do not match the rows of the count matrix."""


class InvalidPivotAge(UserWarning):
    """
    Closeout pivot age too close to the top of the age range.

    Emitted as a warning: the pivot is moved down, or the closeout is skipped
    and the un-closed split is returned.
    """
