"""
Evaluation metrics for EKF-SLAM runs.

This module provides error metrics and consistency statistics comparing an
estimated trajectory and map against ground truth.
"""

from typing import Optional, Sequence, Union

import numpy as np

from ekfslam.types import Landmark
from ekfslam.utils.angles import angle_diff


def compute_pose_errors(truth: np.ndarray, estimated: np.ndarray) -> np.ndarray:
    """
    Compute pose errors between true and estimated poses.

    Args:
        truth: True poses, shape (N, 3) as [x, y, theta]
        estimated: Estimated poses, shape (N, 3)

    Returns:
        errors: Error vectors estimated - truth, shape (N, 3), heading error
                wrapped to [-pi, pi)

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    truth = np.atleast_2d(np.asarray(truth, dtype=float))
    estimated = np.atleast_2d(np.asarray(estimated, dtype=float))

    if truth.shape != estimated.shape:
        raise ValueError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )
    if truth.shape[1] != 3:
        raise ValueError(f"Poses must have 3 columns, got {truth.shape[1]}")

    errors = estimated - truth
    errors[:, 2] = angle_diff(estimated[:, 2], truth[:, 2])
    return errors


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error vectors, shape (N, d) or (N,)
        axis: Axis along which to compute RMSE
              None: scalar RMSE across all dimensions
              0: per-dimension RMSE
              1: per-sample RMSE

    Returns:
        rmse: RMSE value(s)
    """
    errors = np.asarray(errors)

    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_nees(errors: np.ndarray, covariance: np.ndarray) -> np.ndarray:
    """
    Compute Normalized Estimation Error Squared (NEES).

    NEES is a consistency metric for filter performance:
        NEES = e^T P^{-1} e

    For consistent estimators, NEES follows chi-squared distribution
    with n degrees of freedom (state dimension).

    Args:
        errors: Estimation errors, shape (N, n); use ``compute_pose_errors``
                so heading errors are wrapped
        covariance: Estimation covariances, shape (N, n, n)

    Returns:
        nees: NEES values, shape (N,); nan where P is singular
    """
    errors = np.atleast_2d(np.asarray(errors, dtype=float))
    covariance = np.asarray(covariance, dtype=float)

    N, n = errors.shape
    if covariance.shape != (N, n, n):
        raise ValueError(
            f"covariance must have shape ({N}, {n}, {n}), "
            f"got {covariance.shape}"
        )

    nees = np.zeros(N)
    for i in range(N):
        try:
            nees[i] = errors[i] @ np.linalg.solve(covariance[i], errors[i])
        except np.linalg.LinAlgError:
            nees[i] = np.nan

    return nees


def landmark_errors(
    true_landmarks: np.ndarray,
    estimated: Sequence[Landmark],
    correspondence: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """
    Euclidean error of each estimated landmark.

    Args:
        true_landmarks: True landmark positions, shape (M, 2)
        estimated: Landmark estimates in index order
        correspondence: True landmark id of each estimate. When omitted each
                        estimate is compared with its nearest true landmark.

    Returns:
        errors: Distance per estimated landmark, shape (len(estimated),)
    """
    true_landmarks = np.asarray(true_landmarks, dtype=float).reshape(-1, 2)
    if not estimated:
        return np.zeros(0)

    positions = np.array([[lm.x, lm.y] for lm in estimated])
    if correspondence is not None:
        if len(correspondence) != len(positions):
            raise ValueError("correspondence must list one true id per estimate")
        return np.linalg.norm(positions - true_landmarks[np.asarray(correspondence)], axis=1)

    if len(true_landmarks) == 0:
        raise ValueError("No true landmarks to compare against")
    distances = np.linalg.norm(positions[:, None, :] - true_landmarks[None, :, :], axis=2)
    return distances.min(axis=1)
