"""Data association for EKF-SLAM.

This package provides:
- Chi-square gating and squared Mahalanobis distance
- Nearest-neighbour association of observations to known landmarks
"""

from ekfslam.association.data_association import (
    Match,
    MatchKind,
    associate,
    associate_batch,
    range_bearing_innovation,
)
from ekfslam.association.gating import (
    chi_square_threshold,
    mahalanobis_distance_squared,
)

__all__ = [
    "Match",
    "MatchKind",
    "associate",
    "associate_batch",
    "range_bearing_innovation",
    "chi_square_threshold",
    "mahalanobis_distance_squared",
]
