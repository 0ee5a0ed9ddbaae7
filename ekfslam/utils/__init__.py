"""
Utility functions for the EKF-SLAM estimator.

This module provides common utility functions used across the codebase,
including angle canonicalization and covariance checks.
"""

from .angles import AngleRange, wrap_angle, wrap_angle_array, angle_diff
from .covariance import symmetrize, is_symmetric, check_covariance, covariance_ellipse

__all__ = [
    'AngleRange',
    'wrap_angle',
    'wrap_angle_array',
    'angle_diff',
    'symmetrize',
    'is_symmetric',
    'check_covariance',
    'covariance_ellipse',
]
