"""
Angle wrapping and manipulation utilities.

Provides functions for keeping angular quantities inside one fixed half-open
interval. Two conventions are supported:

- ``AngleRange.SYMMETRIC``: [-π, π)
- ``AngleRange.POSITIVE``:  [0, 2π)

Critical for:
- Robot heading in the SLAM state vector
- Bearing observations of landmarks
- Angular innovations in the EKF correction step
"""

from enum import Enum
from typing import Union

import numpy as np


TWO_PI = 2.0 * np.pi


class AngleRange(Enum):
    """Half-open interval that canonical angles are mapped into."""

    SYMMETRIC = "symmetric"
    POSITIVE = "positive"

    @property
    def lower(self) -> float:
        """Inclusive lower bound of the interval."""
        return -np.pi if self is AngleRange.SYMMETRIC else 0.0

    @property
    def upper(self) -> float:
        """Exclusive upper bound of the interval."""
        return self.lower + TWO_PI

    @classmethod
    def parse(cls, value: Union[str, "AngleRange"]) -> "AngleRange":
        """Accept either an ``AngleRange`` or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown angle range '{value}', expected one of: {valid}")


def wrap_angle(angle: float, angle_range: AngleRange = AngleRange.SYMMETRIC) -> float:
    """
    Wrap angle into the half-open interval of ``angle_range``.

    Without wrapping, headings and bearings near the interval boundary produce
    large incorrect innovations (e.g. -179° vs +179° = 358° error instead of
    2° error).

    Args:
        angle: Angle in radians (any finite value)
        angle_range: Target interval, [-π, π) by default

    Returns:
        Wrapped angle in [lower, lower + 2π)

    Example:
        >>> wrap_angle(3.5 * np.pi)  # 630° -> -90°
        -1.5707963267948966
        >>> wrap_angle(np.pi)  # upper bound is exclusive
        -3.141592653589793
        >>> wrap_angle(-np.pi / 2, AngleRange.POSITIVE)
        4.71238898038469
    """
    lower = angle_range.lower
    wrapped = (float(angle) - lower) % TWO_PI + lower
    # Float modulo can round up to exactly 2π for tiny negative offsets
    if wrapped >= lower + TWO_PI:
        wrapped -= TWO_PI
    return wrapped


def wrap_angle_array(
    angles: np.ndarray, angle_range: AngleRange = AngleRange.SYMMETRIC
) -> np.ndarray:
    """
    Wrap array of angles into the interval of ``angle_range``.

    Vectorized version of wrap_angle().

    Args:
        angles: Array of angles in radians
        angle_range: Target interval

    Returns:
        Array of wrapped angles

    Example:
        >>> wrap_angle_array(np.array([0, np.pi/2, np.pi, 3*np.pi]))
        array([ 0.        ,  1.57079633, -3.14159265, -3.14159265])
    """
    lower = angle_range.lower
    wrapped = np.mod(np.asarray(angles, dtype=float) - lower, TWO_PI) + lower
    return np.where(wrapped >= lower + TWO_PI, wrapped - TWO_PI, wrapped)


def angle_diff(angle1: Union[float, np.ndarray],
               angle2: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Compute the shortest signed angular difference between two angles.

    Returns angle1 - angle2 wrapped to [-π, π). This is the bearing innovation
    of the EKF correction step regardless of which interval the state uses:
    a difference is always centred on zero.

    Args:
        angle1: First angle in radians (measured)
        angle2: Second angle in radians (predicted)

    Returns:
        Shortest signed difference angle1 - angle2

    Example:
        >>> round(angle_diff(np.pi - 0.1, -np.pi + 0.1), 6)  # Nearly opposite
        -0.2
        >>> round(angle_diff(0.1, -0.1), 6)
        0.2
    """
    if isinstance(angle1, np.ndarray) or isinstance(angle2, np.ndarray):
        return wrap_angle_array(np.asarray(angle1) - np.asarray(angle2))
    return wrap_angle(angle1 - angle2)
