"""
Visualization utilities for EKF-SLAM runs.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Ellipse

from ekfslam.utils.covariance import covariance_ellipse


def plot_slam_map(
    truth_xy: np.ndarray,
    est_xy: np.ndarray,
    true_landmarks: Optional[np.ndarray] = None,
    est_landmarks: Optional[np.ndarray] = None,
    landmark_covariances: Optional[Sequence[np.ndarray]] = None,
    odometry_xy: Optional[np.ndarray] = None,
    n_sigma: float = 2.0,
    title: str = "EKF-SLAM",
) -> plt.Figure:
    """
    Plot trajectories and the landmark map with uncertainty ellipses.

    Args:
        truth_xy: True trajectory, shape (N, 2)
        est_xy: Estimated trajectory, shape (N, 2)
        true_landmarks: True landmark positions, shape (M, 2) (optional)
        est_landmarks: Estimated landmark positions, shape (K, 2) (optional)
        landmark_covariances: 2×2 covariance per estimated landmark (optional)
        odometry_xy: Dead-reckoning trajectory, shape (N, 2) (optional)
        n_sigma: Ellipse size in standard deviations
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    truth_xy = np.asarray(truth_xy)
    est_xy = np.asarray(est_xy)
    fig, ax = plt.subplots(figsize=(10, 8))

    ax.plot(truth_xy[:, 0], truth_xy[:, 1], "k-", linewidth=2, label="Ground Truth", zorder=10)
    ax.plot(truth_xy[0, 0], truth_xy[0, 1], "go", markersize=10, label="Start", zorder=11)
    if odometry_xy is not None:
        odometry_xy = np.asarray(odometry_xy)
        ax.plot(odometry_xy[:, 0], odometry_xy[:, 1], color="orange", linestyle=":",
                linewidth=1.5, label="Odometry")
    ax.plot(est_xy[:, 0], est_xy[:, 1], "b--", linewidth=1.5, label="EKF-SLAM")

    if true_landmarks is not None and len(true_landmarks):
        true_landmarks = np.asarray(true_landmarks)
        ax.scatter(true_landmarks[:, 0], true_landmarks[:, 1], marker="*", s=150,
                   c="black", label="True Landmarks", zorder=12)

    if est_landmarks is not None and len(est_landmarks):
        est_landmarks = np.asarray(est_landmarks)
        ax.scatter(est_landmarks[:, 0], est_landmarks[:, 1], marker="x", s=60,
                   c="red", label="Estimated Landmarks", zorder=13)

        if landmark_covariances is not None:
            for position, P in zip(est_landmarks, landmark_covariances):
                major, minor, orientation = covariance_ellipse(P, n_sigma=n_sigma)
                ax.add_patch(
                    Ellipse(
                        xy=position,
                        width=2 * major,
                        height=2 * minor,
                        angle=np.degrees(orientation),
                        fill=False,
                        edgecolor="red",
                        alpha=0.6,
                    )
                )

    ax.set_xlabel("East [m]", fontsize=12)
    ax.set_ylabel("North [m]", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(loc="best", fontsize=10)
    ax.grid(True, alpha=0.3)
    ax.axis("equal")

    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("svg", "pdf", "png"),
) -> List[Path]:
    """
    Save figure in multiple formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
