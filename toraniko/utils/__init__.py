"""Panel preprocessing utilities."""

from .panel_ops import fill_features, smooth_features, top_n_by_group
from .pipeline import PanelPipeline

__all__ = ["fill_features", "smooth_features", "top_n_by_group", "PanelPipeline"]
