"""
plotpipe Data Package (Imperative Shell)

Dataset model and Tabular Source loaders.  File reading happens here and
nowhere else.

Modules:
- dataset: Immutable Dataset (DataFrame + ordered grouping key)
- sources: CSV / JSON / in-memory loaders
"""

from .dataset import Dataset, group_label
from .sources import as_dataset, from_records, read_csv, read_json

__all__ = [
    # Dataset
    'Dataset',
    'group_label',
    # Sources
    'as_dataset',
    'from_records',
    'read_csv',
    'read_json',
]
