"""
Unit tests for Jacobian correctness.

Tests analytical Jacobians against numerical differentiation. Incorrect
Jacobians make the EKF-SLAM covariance inconsistent and the data association
gate meaningless.

Run with: python -m pytest tests/test_jacobians.py -v
"""

from typing import Callable

import numpy as np
import pytest

from ekfslam.models import OdometryMotionModel, RangeBearingModel, VelocityMotionModel


def numerical_jacobian(
    f: Callable,
    x: np.ndarray,
    epsilon: float = 1e-7
) -> np.ndarray:
    """
    Compute Jacobian numerically using central differences.

    Args:
        f: Function that takes x and returns y
        x: Point at which to compute Jacobian
        epsilon: Step size for finite differences

    Returns:
        Numerical Jacobian, shape (len(y), len(x))
    """
    x = np.asarray(x, dtype=float)
    y0 = f(x)

    J = np.zeros((len(y0), len(x)))
    for i in range(len(x)):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] += epsilon
        x_minus[i] -= epsilon
        J[:, i] = (f(x_plus) - f(x_minus)) / (2 * epsilon)
    return J


# Headings and bearings stay away from +-pi so wrapping does not split a
# central difference.
POSES = [
    np.array([0.0, 0.0, 0.0]),
    np.array([1.5, -2.0, 0.8]),
    np.array([-3.0, 4.0, -1.9]),
]


class TestVelocityModelJacobians:
    """Test velocity motion model Jacobians."""

    CONTROLS = [np.array([1.0, 0.0]), np.array([2.0, 0.5]), np.array([0.5, -0.8])]

    @pytest.mark.parametrize("dt", [0.1, 0.5])
    def test_state_jacobian(self, dt):
        model = VelocityMotionModel()
        for x in POSES:
            for u in self.CONTROLS:
                _, F_x, _ = model.predict_pose(x, u, dt)
                F_num = numerical_jacobian(lambda p: model.predict_pose(p, u, dt)[0], x)
                np.testing.assert_allclose(F_x, F_num, atol=1e-6)

    @pytest.mark.parametrize("dt", [0.1, 0.5])
    def test_control_jacobian(self, dt):
        model = VelocityMotionModel()
        for x in POSES:
            for u in self.CONTROLS:
                _, _, F_u = model.predict_pose(x, u, dt)
                F_num = numerical_jacobian(lambda c: model.predict_pose(x, c, dt)[0], u)
                np.testing.assert_allclose(F_u, F_num, atol=1e-6)


class TestOdometryModelJacobians:
    """Test odometry motion model Jacobians."""

    CONTROLS = [np.array([0.0, 1.0, 0.0]), np.array([0.3, 2.0, -0.2]), np.array([-0.5, 0.4, 0.6])]

    def test_state_jacobian(self):
        model = OdometryMotionModel()
        for x in POSES:
            for u in self.CONTROLS:
                _, F_x, _ = model.predict_pose(x, u, 1.0)
                F_num = numerical_jacobian(lambda p: model.predict_pose(p, u, 1.0)[0], x)
                np.testing.assert_allclose(F_x, F_num, atol=1e-6)

    def test_control_jacobian(self):
        model = OdometryMotionModel()
        for x in POSES:
            for u in self.CONTROLS:
                _, _, F_u = model.predict_pose(x, u, 1.0)
                F_num = numerical_jacobian(lambda c: model.predict_pose(x, c, 1.0)[0], u)
                np.testing.assert_allclose(F_u, F_num, atol=1e-6)


class TestRangeBearingJacobians:
    """Test range-bearing observation and inverse observation Jacobians."""

    LANDMARKS = [np.array([2.0, 0.5]), np.array([5.0, 3.0]), np.array([-1.0, 6.0])]

    def test_pose_jacobian(self):
        model = RangeBearingModel()
        for x in POSES:
            for lm in self.LANDMARKS:
                _, H_pose, _ = model.predict_observation(x, lm)
                H_num = numerical_jacobian(lambda p: model.predict_observation(p, lm)[0], x)
                np.testing.assert_allclose(H_pose, H_num, atol=1e-6)

    def test_landmark_jacobian(self):
        model = RangeBearingModel()
        for x in POSES:
            for lm in self.LANDMARKS:
                _, _, H_lm = model.predict_observation(x, lm)
                H_num = numerical_jacobian(lambda l: model.predict_observation(x, l)[0], lm)
                np.testing.assert_allclose(H_lm, H_num, atol=1e-6)

    @pytest.mark.parametrize("z", [np.array([2.0, 0.3]), np.array([7.5, -1.2]), np.array([0.5, 2.5])])
    def test_inverse_jacobians(self, z):
        model = RangeBearingModel()
        for x in POSES:
            G_pose, G_obs = model.inverse_jacobians(x, z)
            G_pose_num = numerical_jacobian(lambda p: model.initial_landmark_estimate(p, z), x)
            G_obs_num = numerical_jacobian(lambda o: model.initial_landmark_estimate(x, o), z)
            np.testing.assert_allclose(G_pose, G_pose_num, atol=1e-6)
            np.testing.assert_allclose(G_obs, G_obs_num, atol=1e-6)
