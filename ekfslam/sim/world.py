"""
Simulated 2D world for exercising EKF-SLAM.

A ground-truth agent moves among static point landmarks. Each step the
world integrates the true pose with the commanded control, reports a noisy
odometry reading of that control, and produces noisy range/bearing
observations of every landmark within sensor range, tagged with the true
landmark id.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ekfslam.models.motion_models import VelocityMotionModel
from ekfslam.types import RangeBearing, VelocityControl, as_vector
from ekfslam.utils.angles import AngleRange, wrap_angle


@dataclass
class SimulatedStep:
    """
    One tick of the simulation.

    Attributes:
        true_pose: Ground-truth pose after the move [x, y, theta].
        control: Commanded (noise-free) control.
        odometry: Noisy control as the agent measured it.
        observations: Noisy range/bearing observations in landmark order.
    """

    true_pose: np.ndarray
    control: VelocityControl
    odometry: VelocityControl
    observations: List[RangeBearing] = field(default_factory=list)


class SimulatedWorld:
    """
    Ground truth, odometry and range/bearing sensing for a static landmark map.

    Example:
        >>> world = SimulatedWorld(random_landmarks(10, seed=1), seed=1)
        >>> step = world.step(VelocityControl(1.0, 0.1), dt=0.1)
        >>> step.true_pose.shape
        (3,)
    """

    def __init__(
        self,
        landmarks: np.ndarray,
        initial_pose: Sequence[float] = (0.0, 0.0, 0.0),
        control_noise_std: Sequence[float] = (0.05, 0.01),
        range_noise_std: float = 0.1,
        bearing_noise_std: float = 0.01,
        max_range: float = 10.0,
        seed: Optional[int] = 42,
        angle_range: AngleRange = AngleRange.SYMMETRIC,
    ):
        """
        Initialize simulated world.

        Args:
            landmarks: True landmark positions, shape (M, 2).
            initial_pose: Starting ground-truth pose.
            control_noise_std: Std of the odometry error on (v, omega).
            range_noise_std: Std of the range noise.
            bearing_noise_std: Std of the bearing noise (radians).
            max_range: Sensor range; farther landmarks are not observed.
            seed: Seed of the random generator.
            angle_range: Interval bearings and headings are wrapped into.
        """
        self.landmarks = np.asarray(landmarks, dtype=float).reshape(-1, 2)
        self.control_noise_std = np.asarray(control_noise_std, dtype=float)
        if self.control_noise_std.shape != (2,):
            raise ValueError(
                f"control_noise_std must have 2 entries, got {self.control_noise_std.shape}"
            )
        if range_noise_std < 0 or bearing_noise_std < 0:
            raise ValueError("Observation noise std must be non-negative")
        if max_range <= 0:
            raise ValueError(f"max_range must be positive, got {max_range}")

        self.range_noise_std = float(range_noise_std)
        self.bearing_noise_std = float(bearing_noise_std)
        self.max_range = float(max_range)
        self.angle_range = AngleRange.parse(angle_range)
        self.motion_model = VelocityMotionModel(angle_range=self.angle_range)
        self.rng = np.random.default_rng(seed)

        self.pose = as_vector(initial_pose, 3, "initial_pose").copy()
        self.pose[2] = wrap_angle(self.pose[2], self.angle_range)

    def move(self, control: VelocityControl, dt: float) -> VelocityControl:
        """Advance the true pose and return the noisy odometry reading."""
        self.pose, _, _ = self.motion_model.predict_pose(self.pose, control, dt)

        u = as_vector(control, 2, "control")
        noisy = u + self.rng.normal(0.0, 1.0, 2) * self.control_noise_std
        return VelocityControl(v=float(noisy[0]), omega=float(noisy[1]))

    def observe(self) -> List[RangeBearing]:
        """Noisy observations of all landmarks within ``max_range``."""
        observations = []
        for landmark_id, (lx, ly) in enumerate(self.landmarks):
            dx = lx - self.pose[0]
            dy = ly - self.pose[1]
            true_range = np.hypot(dx, dy)
            if true_range > self.max_range:
                continue

            bearing = np.arctan2(dy, dx) - self.pose[2]
            r = true_range + self.rng.normal(0.0, self.range_noise_std)
            b = bearing + self.rng.normal(0.0, self.bearing_noise_std)
            observations.append(
                RangeBearing(
                    range=float(max(r, 0.0)),
                    bearing=wrap_angle(b, self.angle_range),
                    landmark_id=landmark_id,
                )
            )
        return observations

    def step(self, control: VelocityControl, dt: float) -> SimulatedStep:
        odometry = self.move(control, dt)
        return SimulatedStep(self.pose.copy(), control, odometry, self.observe())

    def run(self, controls: Sequence[VelocityControl], dt: float) -> List[SimulatedStep]:
        """Simulate a whole control sequence."""
        return [self.step(control, dt) for control in controls]


def circle_controls(
    n_steps: int, radius: float = 5.0, speed: float = 1.0
) -> List[VelocityControl]:
    """
    Constant controls driving a circle of the given radius.

    The loop closes when ``n_steps * dt * speed`` equals the circumference
    for the dt the controls are applied with.
    """
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius}")
    if n_steps < 0:
        raise ValueError(f"n_steps must be non-negative, got {n_steps}")
    return [VelocityControl(v=speed, omega=speed / radius) for _ in range(n_steps)]


def random_landmarks(
    n_landmarks: int,
    center: Sequence[float] = (0.0, 0.0),
    half_extent: float = 10.0,
    seed: Optional[int] = 42,
) -> np.ndarray:
    """
    Landmarks scattered uniformly in a square around ``center``.

    Returns:
        Landmark positions [N×2].
    """
    rng = np.random.default_rng(seed)
    center = np.asarray(center, dtype=float)
    return rng.uniform(center - half_extent, center + half_extent, (n_landmarks, 2))
