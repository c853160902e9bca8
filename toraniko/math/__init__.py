"""Cross-sectional math and linear algebra primitives."""

from .cross_section import (
    center,
    center_xsection,
    norm_xsection,
    normalize,
    percentile_mask,
    percentiles_xsection,
    winsorize,
    winsorize_xsection,
)
from .linalg import (
    ConstrainedWlsResult,
    WlsResult,
    constrained_wls,
    residualize_against,
    weighted_least_squares,
)
from .weights import exp_weights

__all__ = [
    "center",
    "normalize",
    "winsorize",
    "percentile_mask",
    "exp_weights",
    "center_xsection",
    "norm_xsection",
    "winsorize_xsection",
    "percentiles_xsection",
    "WlsResult",
    "ConstrainedWlsResult",
    "weighted_least_squares",
    "constrained_wls",
    "residualize_against",
]
