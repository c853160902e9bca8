"""
toraniko: cross-sectional characteristic factor model

Keep this file light: subpackages are imported explicitly, e.g.
``from toraniko.model import FactorReturnsEstimator`` or
``from toraniko.factors import default_registry``.
"""

from importlib.metadata import PackageNotFoundError, version

from .exceptions import (
    DuplicateFactorError,
    EstimationError,
    InsufficientDataError,
    InvalidConfigError,
    RankDeficientError,
    SchemaMismatchError,
    ToranikoError,
    UnknownFactorError,
)

try:
    __version__ = version("toraniko")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "common",
    "factors",
    "math",
    "model",
    "utils",
    "ToranikoError",
    "EstimationError",
    "RankDeficientError",
    "InsufficientDataError",
    "InvalidConfigError",
    "SchemaMismatchError",
    "UnknownFactorError",
    "DuplicateFactorError",
]
