"""Style factor abstraction, built-in factors and the factor registry."""

from .base import FactorConfig, StyleFactor, merge_score_panels, standardize_scores
from .custom import CustomFactor
from .momentum import MomentumFactor
from .registry import (
    FactorRegistry,
    create_factor,
    default_registry,
    get_factor_class,
    register_factor_class,
    registered_factor_classes,
)
from .size import SizeFactor
from .value import ValueFactor

__all__ = [
    "FactorConfig",
    "StyleFactor",
    "CustomFactor",
    "MomentumFactor",
    "SizeFactor",
    "ValueFactor",
    "FactorRegistry",
    "default_registry",
    "create_factor",
    "get_factor_class",
    "register_factor_class",
    "registered_factor_classes",
    "merge_score_panels",
    "standardize_scores",
]
