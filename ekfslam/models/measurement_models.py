"""
Measurement models for EKF-SLAM.

A measurement model predicts the observation of one landmark from one pose,
linearized at the current estimate:

    z_hat    = h(pose, landmark)
    H_pose   = ∂h/∂pose      (m × 3)
    H_lm     = ∂h/∂landmark  (m × 2)

and inverts an observation into a global landmark position for first-time
insertion, with the Jacobians of that inverse:

    l        = g(pose, z)
    G_pose   = ∂g/∂pose      (2 × 3)
    G_obs    = ∂g/∂z         (2 × m)

The estimator only talks to the ``MeasurementModel`` interface, so another
sensor model can be substituted without touching it.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from ekfslam.errors import InvalidInputError, NumericalDegeneracyError
from ekfslam.types import LANDMARK_DIM, POSE_DIM, as_vector
from ekfslam.utils.angles import AngleRange, angle_diff, wrap_angle


# Below this range the bearing and its Jacobian are undefined
MIN_RANGE = 1e-9


class MeasurementModel(ABC):
    """Base class for landmark observation models."""

    measurement_dim: int = 0
    name: str = "measurement model"

    @abstractmethod
    def predict_observation(
        self, pose, landmark
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return (z_hat, H_pose, H_landmark) evaluated at the given estimate."""

    @abstractmethod
    def initial_landmark_estimate(self, pose, observation) -> np.ndarray:
        """Back-project an observation into a global landmark position."""

    @abstractmethod
    def inverse_jacobians(self, pose, observation) -> Tuple[np.ndarray, np.ndarray]:
        """Return (G_pose, G_obs), the Jacobians of ``initial_landmark_estimate``."""

    @abstractmethod
    def innovation(self, z: np.ndarray, z_hat: np.ndarray) -> np.ndarray:
        """Observation residual z - z_hat with angular components wrapped."""

    @abstractmethod
    def validate_observation(self, observation) -> np.ndarray:
        """Return the observation as a vector or raise ``InvalidInputError``."""


class RangeBearingModel(MeasurementModel):
    """
    Range and bearing to a landmark relative to the agent pose.

    Measurement:
        range   = ||l - p||
        bearing = wrap(atan2(ly - py, lx - px) - theta)

    Example:
        >>> model = RangeBearingModel()
        >>> z_hat, H_pose, H_lm = model.predict_observation([0.0, 0.0, 0.0], [2.0, 0.0])
        >>> z_hat
        array([2., 0.])
        >>> model.initial_landmark_estimate([0.0, 0.0, 0.0], [2.0, 0.0])
        array([2., 0.])
    """

    measurement_dim = 2
    name = "range-bearing model"

    def __init__(self, angle_range: AngleRange = AngleRange.SYMMETRIC, min_range: float = MIN_RANGE):
        """
        Initialize range-bearing model.

        Args:
            angle_range: Interval predicted bearings are wrapped into
            min_range: Smallest landmark distance with a defined Jacobian
        """
        self.angle_range = AngleRange.parse(angle_range)
        if not min_range > 0:
            raise ValueError(f"min_range must be positive, got {min_range}")
        self.min_range = float(min_range)

    def predict_observation(self, pose, landmark):
        """
        Predicted (range, bearing) of ``landmark`` seen from ``pose``.

        Args:
            pose: Pose2 or array [x, y, theta]
            landmark: Landmark or array [lx, ly]

        Returns:
            Tuple (z_hat (2,), H_pose (2 × 3), H_landmark (2 × 2)).

        Raises:
            InvalidInputError: If pose or landmark is non-finite.
            NumericalDegeneracyError: If the landmark coincides with the
                sensor, where the bearing is undefined.
        """
        x = self._finite(pose, POSE_DIM, "pose")
        lm = self._finite(landmark, LANDMARK_DIM, "landmark")

        dx = lm[0] - x[0]
        dy = lm[1] - x[1]
        q = dx**2 + dy**2
        r = np.sqrt(q)

        if r < self.min_range:
            raise NumericalDegeneracyError(
                f"{self.name}: landmark at range {r:.3e} from the sensor, "
                "bearing Jacobian undefined"
            )

        z_hat = np.array([r, wrap_angle(np.arctan2(dy, dx) - x[2], self.angle_range)])

        H_pose = np.array([
            [-dx / r, -dy / r,  0.0],
            [ dy / q, -dx / q, -1.0],
        ])
        H_landmark = np.array([
            [ dx / r, dy / r],
            [-dy / q, dx / q],
        ])

        return z_hat, H_pose, H_landmark

    def initial_landmark_estimate(self, pose, observation):
        """
        Global landmark position from a pose and a raw observation.

        l = p + range [cos(theta + bearing), sin(theta + bearing)]
        """
        x = self._finite(pose, POSE_DIM, "pose")
        r, b = self.validate_observation(observation)
        heading = x[2] + b
        return np.array([
            x[0] + r * np.cos(heading),
            x[1] + r * np.sin(heading),
        ])

    def inverse_jacobians(self, pose, observation):
        """
        Jacobians of ``initial_landmark_estimate``.

        Returns:
            Tuple (G_pose (2 × 3), G_obs (2 × 2)).
        """
        x = self._finite(pose, POSE_DIM, "pose")
        r, b = self.validate_observation(observation)
        heading = x[2] + b
        c, s = np.cos(heading), np.sin(heading)

        G_pose = np.array([
            [1.0, 0.0, -r * s],
            [0.0, 1.0,  r * c],
        ])
        G_obs = np.array([
            [c, -r * s],
            [s,  r * c],
        ])
        return G_pose, G_obs

    def innovation(self, z, z_hat):
        """
        Compute innovation with the bearing difference wrapped.

        Bearings near the interval boundary would otherwise produce
        innovations of almost 2π.
        """
        z = np.asarray(z, dtype=float)
        z_hat = np.asarray(z_hat, dtype=float)
        return np.array([z[0] - z_hat[0], angle_diff(z[1], z_hat[1])])

    def validate_observation(self, observation):
        z = as_vector(observation, self.measurement_dim, f"{self.name}: observation")
        if not np.all(np.isfinite(z)):
            raise InvalidInputError(f"{self.name}: observation must be finite, got {z}")
        if z[0] < 0:
            raise InvalidInputError(f"{self.name}: range must be non-negative, got {z[0]}")
        return z

    def _finite(self, value, dim: int, what: str) -> np.ndarray:
        arr = as_vector(value, dim, f"{self.name}: {what}")
        if not np.all(np.isfinite(arr)):
            raise InvalidInputError(f"{self.name}: {what} must be finite, got {arr}")
        return arr
