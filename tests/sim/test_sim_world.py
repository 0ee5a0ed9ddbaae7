"""
Unit tests for the simulated world, plus end-to-end EKF-SLAM runs on it.

With every simulator noise source set to zero the filter sees exactly the
odometry and observations its own models predict, so its estimate has to
track the ground truth to numerical precision.
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from ekfslam import EKFSlam, EKFSlamConfig, VelocityControl, noise_from_std
from ekfslam.eval import compute_pose_errors, landmark_errors
from ekfslam.sim import SimulatedWorld, circle_controls, random_landmarks

LANDMARKS = np.array([
    [2.0, 2.0], [-2.0, 2.0], [-2.0, -2.0], [2.0, -2.0],
    [6.0, 0.0], [-6.0, 0.0], [0.0, 6.0],
])
START = np.array([0.0, -4.0, 0.0])


def noise_free_world(**kwargs):
    params = dict(
        initial_pose=START,
        control_noise_std=(0.0, 0.0),
        range_noise_std=0.0,
        bearing_noise_std=0.0,
        max_range=6.0,
        seed=0,
    )
    params.update(kwargs)
    return SimulatedWorld(LANDMARKS, **params)


class TestSimulatedWorld(unittest.TestCase):

    def test_noise_free_observation(self):
        world = SimulatedWorld(
            [[3.0, 4.0]], control_noise_std=(0.0, 0.0),
            range_noise_std=0.0, bearing_noise_std=0.0, max_range=10.0,
        )
        observations = world.observe()
        self.assertEqual(len(observations), 1)
        self.assertAlmostEqual(observations[0].range, 5.0)
        self.assertAlmostEqual(observations[0].bearing, np.arctan2(4.0, 3.0))
        self.assertEqual(observations[0].landmark_id, 0)

    def test_max_range(self):
        world = SimulatedWorld([[3.0, 0.0], [20.0, 0.0], [0.0, -4.0]], max_range=5.0, seed=1)
        ids = [z.landmark_id for z in world.observe()]
        self.assertEqual(ids, [0, 2])

    def test_true_pose_follows_commanded_control(self):
        world = noise_free_world()
        step = world.step(VelocityControl(1.0, 0.0), 1.0)
        assert_allclose(step.true_pose, [1.0, -4.0, 0.0], atol=1e-12)
        self.assertEqual(step.odometry, VelocityControl(1.0, 0.0))

    def test_odometry_noise(self):
        world = SimulatedWorld(LANDMARKS, control_noise_std=(0.1, 0.1), seed=5)
        step = world.step(VelocityControl(1.0, 0.0), 0.1)
        self.assertNotEqual(step.odometry, step.control)

    def test_same_seed_same_run(self):
        controls = circle_controls(20, radius=4.0)
        runs = []
        for _ in range(2):
            world = SimulatedWorld(LANDMARKS, initial_pose=START, seed=11)
            runs.append(world.run(controls, 0.1))
        for a, b in zip(*runs):
            assert_allclose(a.true_pose, b.true_pose)
            self.assertEqual(a.odometry, b.odometry)
            self.assertEqual(a.observations, b.observations)

    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            SimulatedWorld(LANDMARKS, max_range=0.0)
        with self.assertRaises(ValueError):
            SimulatedWorld(LANDMARKS, range_noise_std=-1.0)
        with self.assertRaises(ValueError):
            SimulatedWorld(LANDMARKS, control_noise_std=(0.1,))


class TestGenerators(unittest.TestCase):

    def test_circle_controls(self):
        controls = circle_controls(10, radius=4.0, speed=2.0)
        self.assertEqual(len(controls), 10)
        self.assertEqual(controls[0], VelocityControl(v=2.0, omega=0.5))
        with self.assertRaises(ValueError):
            circle_controls(10, radius=0.0)

    def test_circle_closes(self):
        dt = 0.1
        n_steps = 100
        radius = n_steps * dt / (2 * np.pi)
        world = SimulatedWorld(np.zeros((0, 2)), control_noise_std=(0.0, 0.0))
        steps = world.run(circle_controls(n_steps, radius=radius, speed=1.0), dt)
        assert_allclose(steps[-1].true_pose[:2], [0.0, 0.0], atol=1e-9)

    def test_random_landmarks(self):
        landmarks = random_landmarks(15, center=(1.0, -1.0), half_extent=5.0, seed=3)
        self.assertEqual(landmarks.shape, (15, 2))
        self.assertTrue(np.all(np.abs(landmarks - [1.0, -1.0]) <= 5.0))
        assert_allclose(landmarks, random_landmarks(15, center=(1.0, -1.0), half_extent=5.0, seed=3))


class TestEKFSlamOnSimulatedWorld(unittest.TestCase):

    def setUp(self):
        self.config = EKFSlamConfig(
            process_noise=noise_from_std([0.05, 0.02]),
            measurement_noise=noise_from_std([0.1, 0.02]),
            initial_pose=START,
        )
        self.controls = circle_controls(120, radius=4.0, speed=1.0)

    def _run(self, known_correspondences):
        world = noise_free_world()
        slam = EKFSlam(self.config)
        observed = set()
        truth, estimate = [], []
        for control in self.controls:
            step = world.step(control, 0.1)
            result = slam.step(step.odometry, 0.1, step.observations,
                               known_correspondences=known_correspondences)
            self.assertTrue(result.ok)
            observed.update(z.landmark_id for z in step.observations)
            truth.append(step.true_pose)
            estimate.append(slam.pose.to_array())
        return slam, observed, np.array(truth), np.array(estimate)

    def test_data_association_tracks_truth(self):
        slam, observed, truth, estimate = self._run(known_correspondences=False)
        self.assertEqual(slam.num_landmarks, len(observed))
        errors = compute_pose_errors(truth, estimate)
        self.assertLess(np.abs(errors).max(), 1e-6)
        self.assertLess(landmark_errors(LANDMARKS, slam.landmarks()).max(), 1e-6)

    def test_known_correspondences_track_truth(self):
        slam, observed, truth, estimate = self._run(known_correspondences=True)
        self.assertEqual(slam.num_landmarks, len(observed))
        ids = sorted(observed)
        correspondence = [None] * slam.num_landmarks
        for landmark_id in ids:
            correspondence[slam.landmark_index_for_id(landmark_id)] = landmark_id
        self.assertLess(landmark_errors(LANDMARKS, slam.landmarks(), correspondence).max(), 1e-6)


if __name__ == "__main__":
    unittest.main()
