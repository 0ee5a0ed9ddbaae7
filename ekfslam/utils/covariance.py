"""
Covariance matrix utilities.

Provides functions for:
- Symmetrizing covariances after floating-point updates
- Checking symmetry and positive semi-definiteness
- Extracting uncertainty ellipses for external visualization
"""

from typing import Tuple

import numpy as np

from ekfslam.errors import NumericalDegeneracyError


def symmetrize(P: np.ndarray) -> np.ndarray:
    """
    Return (P + P^T) / 2.

    Repeated products such as (I - K H) P accumulate small asymmetries that
    grow over long runs; this removes them without changing a symmetric P.

    Args:
        P: Square matrix

    Returns:
        Symmetric matrix of the same shape
    """
    P = np.asarray(P, dtype=float)
    return 0.5 * (P + P.T)


def is_symmetric(P: np.ndarray, tolerance: float = 1e-9) -> bool:
    """Check that P equals its transpose within an absolute tolerance."""
    P = np.asarray(P)
    if P.ndim != 2 or P.shape[0] != P.shape[1]:
        return False
    return bool(np.allclose(P, P.T, rtol=0.0, atol=tolerance))


def check_covariance(
    P: np.ndarray,
    psd_tolerance: float = 1e-9,
    symmetry_tolerance: float = 1e-9,
    name: str = "covariance",
) -> None:
    """
    Validate that P is a usable covariance matrix.

    A negative variance or a negative eigenvalue beyond tolerance means the
    estimate is numerically broken, not merely uncertain.

    Args:
        P: Candidate covariance, shape (n, n)
        psd_tolerance: Largest allowed negative eigenvalue magnitude, scaled
            by max(1, largest |eigenvalue|)
        symmetry_tolerance: Absolute tolerance for P == P^T
        name: Name used in error messages

    Raises:
        NumericalDegeneracyError: If P is non-finite, asymmetric, has a
            negative variance or is not positive semi-definite.
    """
    P = np.asarray(P, dtype=float)

    if P.ndim != 2 or P.shape[0] != P.shape[1]:
        raise NumericalDegeneracyError(f"{name} must be square, got shape {P.shape}")
    if not np.all(np.isfinite(P)):
        raise NumericalDegeneracyError(f"{name} contains non-finite entries")
    if not is_symmetric(P, symmetry_tolerance):
        asym = float(np.max(np.abs(P - P.T)))
        raise NumericalDegeneracyError(
            f"{name} is not symmetric (max |P - P^T| = {asym:.3e})"
        )

    diag = np.diag(P)
    if np.any(diag < -psd_tolerance):
        raise NumericalDegeneracyError(
            f"{name} has negative variance(s): {diag[diag < -psd_tolerance]}"
        )

    eigvals = np.linalg.eigvalsh(P)
    scale = max(1.0, float(np.max(np.abs(eigvals)))) if eigvals.size else 1.0
    if eigvals.size and eigvals[0] < -psd_tolerance * scale:
        raise NumericalDegeneracyError(
            f"{name} is not positive semi-definite (min eigenvalue {eigvals[0]:.3e})"
        )


def covariance_ellipse(
    P: np.ndarray, n_sigma: float = 2.0
) -> Tuple[float, float, float]:
    """
    Uncertainty ellipse of a 2x2 position covariance.

    Args:
        P: 2x2 covariance of an (x, y) estimate
        n_sigma: Number of standard deviations spanned by the semi-axes

    Returns:
        Tuple (semi_major, semi_minor, orientation) with orientation in
        radians, measured from the x-axis to the major axis.

    Example:
        >>> covariance_ellipse(np.diag([4.0, 1.0]), n_sigma=1.0)
        (2.0, 1.0, 0.0)
    """
    P = np.asarray(P, dtype=float)
    if P.shape != (2, 2):
        raise ValueError(f"Expected a 2x2 covariance, got shape {P.shape}")

    # eigh returns ascending eigenvalues for symmetric input
    eigvals, eigvecs = np.linalg.eigh(symmetrize(P))
    eigvals = np.clip(eigvals, 0.0, None)
    major = eigvecs[:, 1]
    orientation = float(np.arctan2(major[1], major[0]))
    if orientation < 0.0:
        orientation += np.pi
    if orientation >= np.pi:
        orientation -= np.pi
    return (
        float(n_sigma * np.sqrt(eigvals[1])),
        float(n_sigma * np.sqrt(eigvals[0])),
        orientation,
    )
