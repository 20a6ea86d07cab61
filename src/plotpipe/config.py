"""
Pipeline options.

Options are fixed when a pipeline is initiated and travel with every Scene
derived from it.  They can be built in code, from a plain dict, or read from
a JSON file:

    {
        "original_data": false,
        "single_trace": true,
        "template": "plotly_white"
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from plotly.colors import qualitative as qualitative_colors

from .errors import ConfigError

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Layout defaults
# ---------------------------------------------------------------------------

DEFAULT_TEMPLATE: str = 'plotly_white'
DEFAULT_HOVERMODE: str = 'closest'
DEFAULT_COLORWAY: Tuple[str, ...] = tuple(qualitative_colors.Plotly)


@dataclass(frozen=True)
class PipelineOptions:
    """
    Settings fixed at pipeline initiation.

    Attributes:
        original_data: When ``True`` (default) a statistical layer leaves the
            raw, pre-transform dataset current for downstream steps.  When
            ``False`` the computed statistics (bin counts, fitted values)
            become the current dataset instead.
        single_trace: Default grouping strategy for continuous marks: one
            trace with gap rows between groups (``True``) or one trace per
            group (``False``).  Each Layering step may override it.
        template: Plotly template name applied by the renderer.
        hovermode: Plotly layout ``hovermode``.
        colorway: Colours assigned, in order, to categorical colour levels.
        default_hoverable: Whether marks respond to hover unless a step
            says otherwise.
    """

    original_data: bool = True
    single_trace: bool = True
    template: str = DEFAULT_TEMPLATE
    hovermode: str = DEFAULT_HOVERMODE
    colorway: Tuple[str, ...] = DEFAULT_COLORWAY
    default_hoverable: bool = True

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'PipelineOptions':
        """
        Build options from a plain dict, rejecting unknown keys.

        Raises:
            ConfigError: On unknown keys or a malformed ``colorway``.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown pipeline option(s): {unknown}")

        values = dict(values)
        if 'colorway' in values:
            colorway = values['colorway']
            if isinstance(colorway, str) or not colorway:
                raise ConfigError("'colorway' must be a non-empty list of colours")
            values['colorway'] = tuple(str(c) for c in colorway)
        for key in ('original_data', 'single_trace', 'default_hoverable'):
            if key in values and not isinstance(values[key], bool):
                raise ConfigError(f"'{key}' must be a boolean, got {values[key]!r}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out['colorway'] = list(self.colorway)
        return out


def load_options(path: Union[str, Path]) -> PipelineOptions:
    """
    Read pipeline options from a JSON file.

    Args:
        path: Path to a JSON object whose keys are ``PipelineOptions`` fields.

    Returns:
        Parsed ``PipelineOptions``.

    Raises:
        ConfigError: If the file is missing, unparseable, not a JSON object,
            or contains unknown keys.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Options file not found: {path}")
    try:
        with path.open() as fh:
            raw = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} must contain a JSON object")

    options = PipelineOptions.from_dict(raw)
    log.info(f"Loaded pipeline options from {path}", extra={"options_path": str(path)})
    return options
