"""Type definitions and data structures for EKF-SLAM.

Key types:
    - Pose2: planar pose [x, y, theta]
    - Landmark: landmark estimate with its stable index
    - RangeBearing: relative observation of one landmark
    - VelocityControl: forward velocity and turn rate command
    - OdometryControl: rotate-translate-rotate odometry delta

Inputs coming from external collaborators (controls, observations) are not
validated at construction; the estimator validates them at its operation
boundary so an invalid value fails the call without touching the estimate.
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from ekfslam.errors import InvalidInputError


POSE_DIM = 3
LANDMARK_DIM = 2


@dataclass(frozen=True)
class Pose2:
    """
    Planar pose of the agent.

    Attributes:
        x: Position along the global x-axis.
        y: Position along the global y-axis.
        theta: Heading (radians), counter-clockwise from the positive x-axis,
            canonicalized by the estimator into its configured angle range.

    Examples:
        >>> p = Pose2(x=1.0, y=2.0, theta=np.pi / 4)
        >>> p.to_array()
        array([1.        , 2.        , 0.78539816])
    """

    x: float
    y: float
    theta: float

    def __post_init__(self) -> None:
        """Validate pose values after initialization."""
        for name in ("x", "y", "theta"):
            if not np.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")

    def to_array(self) -> np.ndarray:
        """Convert pose to NumPy array [x, y, theta]."""
        return np.array([self.x, self.y, self.theta], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Pose2":
        """
        Create Pose2 from array-like [x, y, theta].

        Raises:
            ValueError: If the array does not have exactly 3 elements.
        """
        arr = np.asarray(arr, dtype=float)
        if arr.shape != (POSE_DIM,):
            raise ValueError(f"Array must have shape (3,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]), theta=float(arr[2]))

    @classmethod
    def identity(cls) -> "Pose2":
        """Pose at the origin facing along +x."""
        return cls(x=0.0, y=0.0, theta=0.0)

    def __repr__(self) -> str:
        return f"Pose2(x={self.x:.4f}, y={self.y:.4f}, theta={self.theta:.4f})"


@dataclass(frozen=True)
class Landmark:
    """Landmark position estimate in the global frame with its stable index."""

    index: int
    x: float
    y: float

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)


@dataclass(frozen=True)
class RangeBearing:
    """
    Range/bearing observation of a single landmark.

    Attributes:
        range: Distance from the sensor to the landmark.
        bearing: Angle of the landmark relative to the agent heading (radians).
        landmark_id: Optional external identifier of the observed landmark.
            Only set when correspondences are known (e.g. by a simulator);
            Mahalanobis data association ignores it.
    """

    range: float
    bearing: float
    landmark_id: Optional[int] = None

    def to_array(self) -> np.ndarray:
        return np.array([self.range, self.bearing], dtype=np.float64)


@dataclass(frozen=True)
class VelocityControl:
    """Forward velocity ``v`` and turn rate ``omega`` (rad per time unit)."""

    v: float
    omega: float

    def to_array(self) -> np.ndarray:
        return np.array([self.v, self.omega], dtype=np.float64)


@dataclass(frozen=True)
class OdometryControl:
    """
    Odometry delta expressed as rotate, translate, rotate.

    Attributes:
        rot1: Rotation before translating (radians).
        trans: Distance travelled along the rotated heading.
        rot2: Rotation after translating (radians).
    """

    rot1: float
    trans: float
    rot2: float

    def to_array(self) -> np.ndarray:
        return np.array([self.rot1, self.trans, self.rot2], dtype=np.float64)


Control = Union[VelocityControl, OdometryControl, np.ndarray]
Observation = Union[RangeBearing, np.ndarray]


def as_vector(value, dim: int, name: str) -> np.ndarray:
    """
    Convert a dataclass input or array-like into a float vector of length dim.

    Raises:
        InvalidInputError: If the value cannot be read as a vector of that
            length.
    """
    try:
        if hasattr(value, "to_array"):
            value = value.to_array()
        arr = np.asarray(value, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} is not numeric: {e}") from e
    if arr.shape != (dim,):
        raise InvalidInputError(f"{name} must have shape ({dim},), got {arr.shape}")
    return arr
