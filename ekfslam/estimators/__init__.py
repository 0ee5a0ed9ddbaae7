"""
State estimators.

This package provides:
- StateEstimator: common base of recursive estimators
- EKFSlam: Extended Kalman Filter SLAM over pose and landmarks
"""

from .base import StateEstimator
from .ekf_slam import Correction, EKFSlam, ObservationResult, StepResult

__all__ = [
    "StateEstimator",
    "EKFSlam",
    "Correction",
    "ObservationResult",
    "StepResult",
]
