"""
Evaluation and Visualization Module.

Modules:
    metrics: Pose and landmark errors, RMSE, NEES
    plots: Trajectory and landmark map figures
"""

from .metrics import (
    compute_nees,
    compute_pose_errors,
    compute_rmse,
    landmark_errors,
)
from .plots import plot_slam_map, save_figure

__all__ = [
    # Metrics
    "compute_pose_errors",
    "compute_rmse",
    "compute_nees",
    "landmark_errors",
    # Plots
    "plot_slam_map",
    "save_figure",
]
