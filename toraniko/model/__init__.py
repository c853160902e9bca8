"""Factor return estimation and attribution."""

from .attribution import AttributionResult, FactorContribution, compute_attribution
from .estimator import (
    DateEstimate,
    EstimatorConfig,
    FactorReturnsEstimator,
    estimate_factor_returns,
)

__all__ = [
    "EstimatorConfig",
    "FactorReturnsEstimator",
    "DateEstimate",
    "estimate_factor_returns",
    "AttributionResult",
    "FactorContribution",
    "compute_attribution",
]
