"""EKF-SLAM: joint estimation of an agent pose and a landmark map.

This package contains:
- models: Motion and range/bearing measurement models
- association: Mahalanobis gating and nearest-neighbour data association
- estimators: The EKF-SLAM estimator
- sim: Simulated world for testing and demos
- eval: Metrics and plots
"""

from ekfslam.config import EKFSlamConfig, noise_from_std
from ekfslam.errors import (
    ErrorKind,
    InvalidInputError,
    LandmarkIndexError,
    NumericalDegeneracyError,
    Outcome,
    SlamError,
)
from ekfslam.estimators.ekf_slam import EKFSlam
from ekfslam.types import Landmark, OdometryControl, Pose2, RangeBearing, VelocityControl

__version__ = "0.1.0"

__all__ = [
    "EKFSlam",
    "EKFSlamConfig",
    "noise_from_std",
    "ErrorKind",
    "Outcome",
    "SlamError",
    "InvalidInputError",
    "LandmarkIndexError",
    "NumericalDegeneracyError",
    "Pose2",
    "Landmark",
    "RangeBearing",
    "VelocityControl",
    "OdometryControl",
]
