"""Unit tests for ekfslam.eval.metrics."""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from ekfslam.eval.metrics import (
    compute_nees,
    compute_pose_errors,
    compute_rmse,
    landmark_errors,
)
from ekfslam.types import Landmark


class TestPoseErrors(unittest.TestCase):

    def test_heading_error_wrapped(self):
        truth = np.array([[0.0, 0.0, np.pi - 0.1]])
        estimated = np.array([[1.0, -1.0, -np.pi + 0.1]])
        assert_allclose(compute_pose_errors(truth, estimated), [[1.0, -1.0, 0.2]], atol=1e-12)

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            compute_pose_errors(np.zeros((3, 3)), np.zeros((2, 3)))
        with self.assertRaises(ValueError):
            compute_pose_errors(np.zeros((3, 2)), np.zeros((3, 2)))


class TestRMSE(unittest.TestCase):

    def test_scalar(self):
        self.assertAlmostEqual(compute_rmse(np.array([3.0, 4.0])), np.sqrt(12.5))

    def test_per_axis(self):
        errors = np.array([[1.0, 2.0], [-1.0, 2.0]])
        assert_allclose(compute_rmse(errors, axis=0), [1.0, 2.0])


class TestNEES(unittest.TestCase):

    def test_identity_covariance(self):
        errors = np.array([[1.0, 2.0, 2.0], [0.0, 0.0, 1.0]])
        covariance = np.stack([np.eye(3), np.eye(3)])
        assert_allclose(compute_nees(errors, covariance), [9.0, 1.0])

    def test_scaled_covariance(self):
        errors = np.array([[2.0, 0.0, 0.0]])
        assert_allclose(compute_nees(errors, np.diag([4.0, 1.0, 1.0])[None]), [1.0])

    def test_singular_covariance_is_nan(self):
        nees = compute_nees(np.array([[1.0, 0.0, 0.0]]), np.zeros((1, 3, 3)))
        self.assertTrue(np.isnan(nees[0]))

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            compute_nees(np.zeros((2, 3)), np.zeros((3, 3, 3)))


class TestLandmarkErrors(unittest.TestCase):

    def setUp(self):
        self.truth = np.array([[0.0, 0.0], [5.0, 0.0], [0.0, 5.0]])
        self.estimated = [Landmark(0, 5.1, 0.0), Landmark(1, 0.0, 4.8)]

    def test_nearest_truth(self):
        assert_allclose(landmark_errors(self.truth, self.estimated), [0.1, 0.2], atol=1e-12)

    def test_with_correspondence(self):
        errors = landmark_errors(self.truth, self.estimated, correspondence=[0, 2])
        assert_allclose(errors, [5.1, 0.2], atol=1e-12)

    def test_correspondence_length_checked(self):
        with self.assertRaises(ValueError):
            landmark_errors(self.truth, self.estimated, correspondence=[0])

    def test_no_estimates(self):
        self.assertEqual(len(landmark_errors(self.truth, [])), 0)


if __name__ == "__main__":
    unittest.main()
