"""
plotpipe: chainable data-to-plot pipelines for Plotly.

A pipeline threads an immutable Scene through steps that transform the
current dataset, append layers, edit the layout, or branch into a scoped
sub-pipeline:

    from plotpipe import Pipeline, const

    fig = (
        Pipeline(df, x='date', y='median')
        .group_by('city')
        .add_lines(color=const('lightgray'), hoverable=False)
        .figure()
    )

Packages:
    data:     Dataset model and tabular source loaders
    analysis: Mapping resolution, transforms, group gap rows, statistics
    pipeline: Scene model, steps, ``apply`` and the ``Pipeline`` chain
    plotting: Mark registry and Figure rendering
"""

from .config import PipelineOptions, load_options
from .errors import (
    ConfigError,
    EmptyDatasetError,
    MappingResolutionError,
    MissingGroupKeyError,
    PipelineError,
)
from .data import Dataset, as_dataset, read_csv, read_json
from .analysis import Bin, Constant, Density, Smooth, const
from .pipeline import (
    Layer,
    Layering,
    Layout,
    LayoutEdit,
    Pipeline,
    Scene,
    ScopedTransform,
    StyleEdit,
    Transform,
    apply,
    apply_all,
)
from .plotting import to_figure, write_html
from .utils.logging import configure_logging

__version__ = "0.1.0"

__all__ = [
    # Configuration
    'PipelineOptions',
    'load_options',
    'configure_logging',
    # Errors
    'PipelineError',
    'MappingResolutionError',
    'MissingGroupKeyError',
    'EmptyDatasetError',
    'ConfigError',
    # Data
    'Dataset',
    'as_dataset',
    'read_csv',
    'read_json',
    # Mapping / stats
    'Constant',
    'const',
    'Bin',
    'Density',
    'Smooth',
    # Pipeline
    'Pipeline',
    'Scene',
    'Layer',
    'Layout',
    'Transform',
    'Layering',
    'LayoutEdit',
    'ScopedTransform',
    'StyleEdit',
    'apply',
    'apply_all',
    # Rendering
    'to_figure',
    'write_html',
]
