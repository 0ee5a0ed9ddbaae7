"""Innovation gating utilities for data association.

This module implements chi-square statistical gating: an observation is a
plausible match for a landmark only if the squared Mahalanobis distance of
its innovation lies below a chi-square critical value.

The API uses a 'confidence' parameter (e.g. 0.99 for 99% confidence), the
upper quantile of the chi-square distribution.
"""

import numpy as np
from scipy import stats

from ekfslam.errors import NumericalDegeneracyError


def mahalanobis_distance_squared(
    y: np.ndarray,
    S: np.ndarray
) -> float:
    """Compute squared Mahalanobis distance of an innovation.

        d^2 = y^T S^{-1} y

    Under the hypothesis that the observation belongs to the landmark, d^2
    follows a chi-square distribution with len(y) degrees of freedom.

    Args:
        y: Innovation vector (m,).
        S: Innovation covariance matrix (m × m), must be positive definite.

    Returns:
        Squared Mahalanobis distance d^2 (scalar).

    Raises:
        ValueError: If dimensions are incompatible.
        NumericalDegeneracyError: If S is singular or non-finite.

    Example:
        >>> y = np.array([3.0, 4.0])
        >>> S = np.diag([1.0, 1.0])
        >>> mahalanobis_distance_squared(y, S)
        25.0
    """
    y = np.asarray(y, dtype=float)
    S = np.asarray(S, dtype=float)

    if y.ndim != 1:
        raise ValueError(f"Innovation y must be 1D, got shape {y.shape}")
    if S.ndim != 2:
        raise ValueError(f"Covariance S must be 2D, got shape {S.shape}")

    m = len(y)
    if S.shape != (m, m):
        raise ValueError(
            f"Innovation dimension {m} incompatible with S shape {S.shape}"
        )
    if not np.all(np.isfinite(S)):
        raise NumericalDegeneracyError("Innovation covariance S contains non-finite entries")

    # Solve instead of inverting; LinAlgError means S is exactly singular
    try:
        d_squared = y @ np.linalg.solve(S, y)
    except np.linalg.LinAlgError as e:
        raise NumericalDegeneracyError(f"Innovation covariance S is singular: {e}") from e

    if not np.isfinite(d_squared):
        raise NumericalDegeneracyError("Innovation covariance S is ill-conditioned")

    return float(d_squared)


def chi_square_threshold(dof: int, confidence: float = 0.99) -> float:
    """Get chi-square critical value for a given confidence level.

    Args:
        dof: Degrees of freedom m (measurement dimension).
        confidence: Confidence level (default 0.99). Common values:
                    - 0.99 (very conservative, rarely rejects true matches)
                    - 0.95 (standard)
                    - 0.90 (tight gate, more new landmarks)

    Returns:
        Chi-square critical value χ²(m, confidence).

    Example:
        >>> round(chi_square_threshold(dof=2, confidence=0.95), 3)
        5.991
        >>> round(chi_square_threshold(dof=2, confidence=0.99), 3)
        9.21
    """
    if dof < 1:
        raise ValueError(f"Degrees of freedom must be positive, got {dof}")
    if not (0 < confidence < 1):
        raise ValueError(
            f"Confidence level must be in (0, 1), got {confidence}"
        )

    return float(stats.chi2.ppf(confidence, dof))
