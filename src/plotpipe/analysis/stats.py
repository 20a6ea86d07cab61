"""
Statistical Summaries (Functional Core)

Stats turn raw observations into the table a layer actually draws: bin
counts, a density curve, a fitted model with a confidence band.  They are
pure; the pipeline decides whether the raw or the computed table stays
current for later steps.

Package Location: src/plotpipe/analysis/stats.py

Per-Group Rule:
    A grouped Dataset is summarised group by group, in order of first
    appearance.  Grouping columns are carried into the output and the
    output keeps the input's grouping key.  ``Bin`` shares one set of bin
    edges across all groups so bars line up.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from statistics import NormalDist
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..data.dataset import Dataset
from ..errors import MappingResolutionError


def _column_for(
    ds: Dataset,
    explicit: Optional[str],
    mapping: Mapping[str, Any],
    role: str,
) -> str:
    """Pick the stat's input column: explicit name first, then the mapped role."""
    name = explicit if explicit is not None else mapping.get(role)
    if not isinstance(name, str):
        raise MappingResolutionError(role, name, ds.columns)
    if name not in ds:
        raise MappingResolutionError(role, name, ds.columns)
    return name


def _finite(values: pd.Series) -> np.ndarray:
    arr = pd.to_numeric(values, errors='coerce').to_numpy(dtype=float)
    return arr[np.isfinite(arr)]


def _per_group(
    ds: Dataset,
    compute: Callable[[pd.DataFrame], pd.DataFrame],
    columns: List[str],
) -> Dataset:
    parts: List[pd.DataFrame] = []
    for key, sub in ds.iter_groups():
        out = compute(sub)
        for col, value in zip(ds.groups, key):
            out[col] = value
        parts.append(out)

    ordered = list(ds.groups) + columns
    if not parts:
        return Dataset(pd.DataFrame(columns=ordered), ds.groups)
    frame = pd.concat(parts, ignore_index=True)[ordered]
    return Dataset(frame, ds.groups)


# ---------------------------------------------------------------------------
# Binning
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Bin:
    """
    Histogram counts.

    Output columns: ``x`` (bin centre), ``xmin``, ``xmax``, ``width``,
    ``count``, ``density``.  One row per bin per group.

    Args:
        column: Column to bin.  Defaults to the column mapped to ``x``.
        bins: Number of equal-width bins.
    """

    column: Optional[str] = None
    bins: int = 10

    name = 'bin'
    default_mapping = MappingProxyType({'x': 'x', 'y': 'count'})

    def __post_init__(self) -> None:
        if self.bins < 1:
            raise ValueError(f"bins must be >= 1, got {self.bins}")

    def compute(self, ds: Dataset, mapping: Mapping[str, Any]) -> Dataset:
        col = _column_for(ds, self.column, mapping, 'x')
        edges = np.histogram_bin_edges(_finite(ds.column(col)), bins=self.bins)
        width = np.diff(edges)

        def _bin(sub: pd.DataFrame) -> pd.DataFrame:
            counts, _ = np.histogram(_finite(sub[col]), bins=edges)
            total = counts.sum()
            density = counts / (total * width) if total else np.zeros_like(width)
            return pd.DataFrame({
                'x': (edges[:-1] + edges[1:]) / 2.0,
                'xmin': edges[:-1],
                'xmax': edges[1:],
                'width': width,
                'count': counts,
                'density': density,
            })

        return _per_group(ds, _bin, ['x', 'xmin', 'xmax', 'width', 'count', 'density'])


# ---------------------------------------------------------------------------
# Kernel density
# ---------------------------------------------------------------------------

def silverman_bandwidth(values: np.ndarray) -> float:
    """
    Silverman's rule-of-thumb bandwidth ``0.9 * min(sd, IQR/1.34) * n^-1/5``.

    Degenerate samples (one value, or zero spread) fall back to a tenth of
    the magnitude of the data, or ``1.0`` for all-zero data.
    """
    n = values.size
    if n < 2:
        spread = 0.0
    else:
        sd = float(np.std(values, ddof=1))
        q75, q25 = np.percentile(values, [75, 25])
        iqr = float(q75 - q25) / 1.34
        spread = min(sd, iqr) if iqr > 0 else sd
    if spread <= 0:
        mag = float(np.abs(values).mean()) if n else 0.0
        return 0.1 * mag if mag > 0 else 1.0
    return 0.9 * spread * n ** (-0.2)


@dataclass(frozen=True)
class Density:
    """
    Gaussian kernel density estimate.

    Output columns: ``x`` (evaluation grid), ``density``.  The grid spans the
    data range padded by three bandwidths on each side.

    Args:
        column: Column to estimate.  Defaults to the column mapped to ``x``.
        n: Grid size per group.
        bw: Kernel bandwidth; ``None`` uses Silverman's rule per group.
    """

    column: Optional[str] = None
    n: int = 512
    bw: Optional[float] = None

    name = 'density'
    default_mapping = MappingProxyType({'x': 'x', 'y': 'density'})

    def __post_init__(self) -> None:
        if self.n < 2:
            raise ValueError(f"n must be >= 2, got {self.n}")
        if self.bw is not None and self.bw <= 0:
            raise ValueError(f"bw must be positive, got {self.bw}")

    def compute(self, ds: Dataset, mapping: Mapping[str, Any]) -> Dataset:
        col = _column_for(ds, self.column, mapping, 'x')

        def _kde(sub: pd.DataFrame) -> pd.DataFrame:
            values = _finite(sub[col])
            if values.size == 0:
                return pd.DataFrame({'x': [], 'density': []})
            bw = self.bw if self.bw is not None else silverman_bandwidth(values)
            grid = np.linspace(values.min() - 3 * bw, values.max() + 3 * bw, self.n)
            z = (grid[:, None] - values[None, :]) / bw
            dens = np.exp(-0.5 * z ** 2).sum(axis=1) / (values.size * bw * math.sqrt(2 * math.pi))
            return pd.DataFrame({'x': grid, 'density': dens})

        return _per_group(ds, _kde, ['x', 'density'])


# ---------------------------------------------------------------------------
# Polynomial smoothing
# ---------------------------------------------------------------------------

def fit_polynomial(
    x: np.ndarray,
    y: np.ndarray,
    degree: int,
    grid: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Least-squares polynomial fit evaluated on *grid*.

    Returns:
        Tuple ``(fitted, se)``: fitted values and pointwise standard errors
        of the mean.  ``se`` is NaN when there are no residual degrees of
        freedom (``len(x) <= degree + 1``).
    """
    p = degree + 1
    design = np.vander(x, p)
    beta, _, rank, _ = np.linalg.lstsq(design, y, rcond=None)
    grid_design = np.vander(grid, p)
    fitted = grid_design @ beta

    dof = x.size - p
    if dof <= 0 or rank < p:
        return fitted, np.full(grid.size, np.nan)

    resid = y - design @ beta
    sigma2 = float(resid @ resid) / dof
    cov = sigma2 * np.linalg.inv(design.T @ design)
    se = np.sqrt(np.einsum('ij,jk,ik->i', grid_design, cov, grid_design))
    return fitted, se


@dataclass(frozen=True)
class Smooth:
    """
    Polynomial regression smoother with a pointwise confidence band.

    Output columns: ``x``, ``fitted``, ``se``, ``lower``, ``upper``.  The
    band uses a normal critical value for *level*.

    Args:
        x: Predictor column.  Defaults to the column mapped to ``x``.
        y: Response column.  Defaults to the column mapped to ``y``.
        degree: Polynomial degree (``1`` is a straight line).
        n: Number of evaluation points per group.
        level: Confidence level of the band.
    """

    x: Optional[str] = None
    y: Optional[str] = None
    degree: int = 1
    n: int = 80
    level: float = 0.95

    name = 'smooth'
    default_mapping = MappingProxyType(
        {'x': 'x', 'y': 'fitted', 'ymin': 'lower', 'ymax': 'upper'}
    )

    def __post_init__(self) -> None:
        if self.degree < 0:
            raise ValueError(f"degree must be >= 0, got {self.degree}")
        if not 0 < self.level < 1:
            raise ValueError(f"level must be in (0, 1), got {self.level}")

    def compute(self, ds: Dataset, mapping: Mapping[str, Any]) -> Dataset:
        x_col = _column_for(ds, self.x, mapping, 'x')
        y_col = _column_for(ds, self.y, mapping, 'y')
        crit = NormalDist().inv_cdf((1 + self.level) / 2)

        def _fit(sub: pd.DataFrame) -> pd.DataFrame:
            xv = pd.to_numeric(sub[x_col], errors='coerce').to_numpy(dtype=float)
            yv = pd.to_numeric(sub[y_col], errors='coerce').to_numpy(dtype=float)
            ok = np.isfinite(xv) & np.isfinite(yv)
            xv, yv = xv[ok], yv[ok]
            if xv.size == 0:
                return pd.DataFrame({c: [] for c in ('x', 'fitted', 'se', 'lower', 'upper')})
            grid = np.linspace(xv.min(), xv.max(), self.n) if xv.min() < xv.max() else xv[:1]
            fitted, se = fit_polynomial(xv, yv, self.degree, grid)
            return pd.DataFrame({
                'x': grid,
                'fitted': fitted,
                'se': se,
                'lower': fitted - crit * se,
                'upper': fitted + crit * se,
            })

        return _per_group(ds, _fit, ['x', 'fitted', 'se', 'lower', 'upper'])
