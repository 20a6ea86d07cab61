"""
Pipeline exception types.

Every failure inside a pipeline step is raised immediately and propagates to
the caller of the chain; no step catches and continues.

- MappingResolutionError: a visual role does not resolve to a column,
  a computed expression, or a literal.
- MissingGroupKeyError: a grouping operation names columns that are absent,
  or requires a grouping key on ungrouped data.
- EmptyDatasetError: a Layering step received zero rows.
- ConfigError: pipeline options could not be loaded.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

__all__ = [
    'PipelineError',
    'MappingResolutionError',
    'MissingGroupKeyError',
    'EmptyDatasetError',
    'ConfigError',
]


class PipelineError(Exception):
    """Base class for every error raised by plotpipe."""


class MappingResolutionError(PipelineError):
    """
    Raised when a visual role cannot be resolved against a dataset.

    Attributes:
        role: Visual role name (``'x'``, ``'color'``, ...).
        reference: The column reference that failed, or ``None`` when a
            mark requires the role and no mapping supplies it.
        available: Column names present in the dataset.
    """

    def __init__(
        self,
        role: str,
        reference: object = None,
        available: Optional[Sequence[str]] = None,
    ) -> None:
        self.role = role
        self.reference = reference
        self.available: List[str] = list(available or [])
        if reference is None:
            msg = f"Visual role '{role}' is required but not mapped"
        else:
            msg = (
                f"Visual role '{role}' references {reference!r}, which is not "
                f"a column of the dataset"
            )
        if self.available:
            msg += f" (columns: {self.available})"
        super().__init__(msg)


class MissingGroupKeyError(PipelineError):
    """
    Raised when a grouping key is absent from the dataset.

    An empty ``keys`` tuple means the operation requires a grouping key and
    the dataset carries none.
    """

    def __init__(self, keys: Sequence[str] = (), operation: str = '') -> None:
        self.keys = tuple(keys)
        self.operation = operation
        if self.keys:
            msg = f"Grouping key(s) not found in dataset: {list(self.keys)}"
        else:
            msg = "Operation requires a grouped dataset, but no grouping key is set"
        if operation:
            msg = f"{operation}: {msg}"
        super().__init__(msg)


class EmptyDatasetError(PipelineError):
    """Raised when a Layering step would build a layer from zero rows."""


class ConfigError(PipelineError):
    """Raised when pipeline options are invalid or cannot be read."""
