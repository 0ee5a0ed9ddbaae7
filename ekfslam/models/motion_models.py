"""
Motion models (process models) for EKF-SLAM.

Provides interchangeable strategies that propagate the planar pose
[x, y, theta] from a control input:
- Velocity (unicycle) model with midpoint heading integration
- Odometry model (rotate, translate, rotate)

Every model returns the predicted pose together with the Jacobians needed
for covariance propagation:

    F_x = ∂f/∂x  (3 × 3), Jacobian w.r.t. the previous pose
    F_u = ∂f/∂u  (3 × k), Jacobian w.r.t. the control (noise)

so the estimator can form P_rr' = F_x P_rr F_x^T + F_u Q F_u^T without
knowing which model is in use.
"""

import warnings
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import numpy as np

from ekfslam.errors import InvalidInputError
from ekfslam.types import POSE_DIM, as_vector
from ekfslam.utils.angles import AngleRange, wrap_angle


# Larger steps usually mean the host passed milliseconds instead of seconds
LARGE_DT_WARNING = 10.0


class MotionModel(ABC):
    """
    Base class for pose propagation models.

    Subclasses implement ``_propagate`` for a validated, strictly positive
    time step. Input validation, the zero-dt shortcut and heading
    canonicalization live here so every model behaves the same at the
    boundary.

    Attributes:
        control_dim: Length k of the control vector.
        angle_range: Interval the predicted heading is wrapped into.
        noise_ratio: Optional per-component factors a_i adding
            (a_i |u_i|)^2 to the control noise variance.
    """

    control_dim: int = 0
    name: str = "motion model"

    def __init__(
        self,
        angle_range: AngleRange = AngleRange.SYMMETRIC,
        noise_ratio: Optional[Sequence[float]] = None,
    ):
        self.angle_range = AngleRange.parse(angle_range)
        if noise_ratio is not None:
            noise_ratio = np.asarray(noise_ratio, dtype=float)
            if noise_ratio.shape != (self.control_dim,):
                raise ValueError(
                    f"{self.name}: noise_ratio must have {self.control_dim} entries, "
                    f"got shape {noise_ratio.shape}"
                )
            if np.any(noise_ratio < 0) or not np.all(np.isfinite(noise_ratio)):
                raise ValueError(f"{self.name}: noise_ratio must be finite and non-negative")
        self.noise_ratio = noise_ratio

    def predict_pose(
        self, pose, control, dt: float
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Propagate ``pose`` by ``control`` over ``dt``.

        Args:
            pose: Pose2 or array [x, y, theta]
            control: Control dataclass or array of length ``control_dim``
            dt: Elapsed time, finite and non-negative

        Returns:
            Tuple (predicted_pose (3,), F_x (3 × 3), F_u (3 × k)).
            For dt == 0 the pose is returned unchanged (heading
            canonicalized) with F_x = I and F_u = 0.

        Raises:
            InvalidInputError: If any input is non-finite, dt is negative,
                or the model produces a non-finite pose.
        """
        x, u = self.validate_inputs(pose, control, dt)

        if dt == 0.0:
            x_next = x.copy()
            F_x = np.eye(POSE_DIM)
            F_u = np.zeros((POSE_DIM, self.control_dim))
        else:
            x_next, F_x, F_u = self._propagate(x, u, float(dt))

        if not (np.all(np.isfinite(x_next)) and np.all(np.isfinite(F_x))
                and np.all(np.isfinite(F_u))):
            raise InvalidInputError(
                f"{self.name}: non-finite prediction from control {u} and dt={dt}"
            )

        x_next = np.asarray(x_next, dtype=float)
        x_next[2] = wrap_angle(x_next[2], self.angle_range)
        return x_next, F_x, F_u

    def control_noise(self, control, Q: np.ndarray) -> np.ndarray:
        """
        Control-space noise covariance for one step.

        Args:
            control: Control used for the step
            Q: Configured constant control noise (k × k)

        Returns:
            Q, plus diag((a_i |u_i|)^2) when ``noise_ratio`` is set.
        """
        Q = np.asarray(Q, dtype=float)
        if Q.shape != (self.control_dim, self.control_dim):
            raise ValueError(
                f"{self.name}: process noise must be "
                f"({self.control_dim}, {self.control_dim}), got {Q.shape}"
            )
        if self.noise_ratio is None:
            return Q
        u = as_vector(control, self.control_dim, "control")
        return Q + np.diag((self.noise_ratio * np.abs(u)) ** 2)

    def validate_inputs(self, pose, control, dt) -> Tuple[np.ndarray, np.ndarray]:
        """
        Check pose, control and dt before propagation.

        Raises:
            InvalidInputError: If validation fails.
        """
        x = as_vector(pose, POSE_DIM, f"{self.name}: pose")
        u = as_vector(control, self.control_dim, f"{self.name}: control")

        if not np.all(np.isfinite(x)):
            raise InvalidInputError(f"{self.name}: pose must be finite, got {x}")
        if not np.all(np.isfinite(u)):
            raise InvalidInputError(f"{self.name}: control must be finite, got {u}")

        if isinstance(dt, bool) or not isinstance(dt, (int, float, np.floating, np.integer)):
            raise InvalidInputError(f"{self.name}: dt must be numeric, got {type(dt)}")
        if not np.isfinite(dt):
            raise InvalidInputError(f"{self.name}: dt must be finite, got {dt}")
        if dt < 0:
            raise InvalidInputError(f"{self.name}: dt must be non-negative, got {dt}")
        if dt > LARGE_DT_WARNING:
            warnings.warn(
                f"{self.name}: dt={dt} is unusually large. "
                "Check units (should be seconds).",
                RuntimeWarning
            )
        return x, u

    @abstractmethod
    def _propagate(
        self, x: np.ndarray, u: np.ndarray, dt: float
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Model-specific propagation for dt > 0, returning (x_next, F_x, F_u)."""


class VelocityMotionModel(MotionModel):
    """
    Unicycle model driven by forward velocity and turn rate.

    Control: u = [v, omega]
    Integration uses the heading at the middle of the step:

        theta_m = theta + omega dt / 2
        x'      = x + v dt cos(theta_m)
        y'      = y + v dt sin(theta_m)
        theta'  = theta + omega dt

    Example:
        >>> model = VelocityMotionModel()
        >>> pose, F_x, F_u = model.predict_pose([0.0, 0.0, 0.0], [1.0, 0.0], dt=1.0)
        >>> pose
        array([1., 0., 0.])
    """

    control_dim = 2
    name = "velocity motion model"

    def _propagate(self, x, u, dt):
        theta = x[2]
        v, omega = u
        theta_m = theta + 0.5 * omega * dt
        c, s = np.cos(theta_m), np.sin(theta_m)

        x_next = np.array([
            x[0] + v * dt * c,
            x[1] + v * dt * s,
            theta + omega * dt,
        ])

        F_x = np.array([
            [1.0, 0.0, -v * dt * s],
            [0.0, 1.0,  v * dt * c],
            [0.0, 0.0,  1.0],
        ])

        # omega also moves the midpoint heading, hence the dt^2 / 2 terms
        F_u = np.array([
            [dt * c, -0.5 * v * dt**2 * s],
            [dt * s,  0.5 * v * dt**2 * c],
            [0.0,     dt],
        ])

        return x_next, F_x, F_u


class OdometryMotionModel(MotionModel):
    """
    Odometry model: rotate by rot1, translate by trans, rotate by rot2.

    Control: u = [rot1, trans, rot2], an already integrated delta. dt only
    gates the step (dt == 0 is a no-op) and does not scale the delta.

        x'     = x + trans cos(theta + rot1)
        y'     = y + trans sin(theta + rot1)
        theta' = theta + rot1 + rot2
    """

    control_dim = 3
    name = "odometry motion model"

    def _propagate(self, x, u, dt):
        rot1, trans, rot2 = u
        heading = x[2] + rot1
        c, s = np.cos(heading), np.sin(heading)

        x_next = np.array([
            x[0] + trans * c,
            x[1] + trans * s,
            x[2] + rot1 + rot2,
        ])

        F_x = np.array([
            [1.0, 0.0, -trans * s],
            [0.0, 1.0,  trans * c],
            [0.0, 0.0,  1.0],
        ])

        F_u = np.array([
            [-trans * s, c,   0.0],
            [ trans * c, s,   0.0],
            [1.0,        0.0, 1.0],
        ])

        return x_next, F_x, F_u
