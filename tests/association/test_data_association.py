"""
Unit tests for nearest-neighbour data association.

Tests cover:
    - New landmark when nothing is known or nothing is inside the gate
    - Known landmark for an observation at its predicted position
    - Deterministic tie-breaking towards the lower index
    - Per-cycle exclusivity in batch association
"""

import unittest

import numpy as np

from ekfslam.association import (
    Match,
    MatchKind,
    associate,
    associate_batch,
    chi_square_threshold,
)
from ekfslam.errors import InvalidInputError
from ekfslam.types import RangeBearing

GATE = chi_square_threshold(dof=2, confidence=0.99)


class TestAssociate(unittest.TestCase):

    def setUp(self):
        self.S = {0: np.diag([0.01, 0.001])}
        self.z_hat = {0: np.array([2.0, 0.0])}

    def test_no_landmarks_is_new(self):
        match = associate({}, np.array([2.0, 0.0]), {}, GATE)
        self.assertEqual(match.kind, MatchKind.NEW)
        self.assertIsNone(match.index)
        self.assertEqual(match.distance_squared, float("inf"))

    def test_observation_at_prediction_is_known(self):
        match = associate(self.z_hat, np.array([2.0, 0.0]), self.S, GATE)
        self.assertEqual(match, Match.known(0, 0.0))

    def test_accepts_range_bearing(self):
        match = associate(self.z_hat, RangeBearing(range=2.05, bearing=0.01), self.S, GATE)
        self.assertEqual(match.kind, MatchKind.KNOWN)
        self.assertEqual(match.index, 0)

    def test_far_observation_is_new(self):
        match = associate(self.z_hat, np.array([10.0, 1.0]), self.S, GATE)
        self.assertTrue(match.is_new)
        self.assertTrue(np.isfinite(match.distance_squared))
        self.assertGreater(match.distance_squared, GATE)

    def test_bearing_wraps_across_pi(self):
        z_hat = {0: np.array([3.0, -np.pi + 0.01])}
        match = associate(z_hat, np.array([3.0, np.pi - 0.01]), {0: np.diag([0.01, 0.01])}, GATE)
        self.assertEqual(match.kind, MatchKind.KNOWN)
        self.assertAlmostEqual(match.distance_squared, 0.04, places=6)

    def test_nearest_candidate_wins(self):
        z_hat = {0: np.array([2.0, 0.3]), 1: np.array([2.0, 0.05])}
        S = {0: np.eye(2) * 0.01, 1: np.eye(2) * 0.01}
        match = associate(z_hat, np.array([2.0, 0.0]), S, GATE)
        self.assertEqual(match.index, 1)

    def test_exact_tie_goes_to_lower_index(self):
        z_hat = {1: np.array([2.0, 0.1]), 0: np.array([2.0, 0.1])}
        S = {1: np.eye(2), 0: np.eye(2)}
        match = associate(z_hat, np.array([2.0, 0.0]), S, GATE)
        self.assertEqual(match.index, 0)

    def test_tie_within_tolerance_goes_to_lower_index(self):
        z_hat = {0: np.array([2.0, 0.1]), 1: np.array([2.0, -0.1 + 1e-12])}
        S = {0: np.eye(2), 1: np.eye(2)}
        match = associate(z_hat, np.array([2.0, 0.0]), S, GATE)
        self.assertEqual(match.index, 0)

    def test_ties_are_measured_against_the_minimum(self):
        # Successive gaps below the tolerance must not chain towards the highest index
        d2 = {0: 1.0, 1: 1.0 - 0.6e-9, 2: 1.0 - 1.2e-9}
        z_hat = {i: np.array([np.sqrt(v), 0.0]) for i, v in d2.items()}
        S = {i: np.eye(2) for i in d2}
        match = associate(z_hat, np.zeros(2), S, GATE, innovation_func=lambda z, zh: zh)
        self.assertEqual(match.index, 1)

    def test_gate_is_strict(self):
        z_hat = {0: np.array([2.0, 0.0])}
        S = {0: np.eye(2)}
        # d^2 == 1.0 exactly
        self.assertTrue(associate(z_hat, np.array([3.0, 0.0]), S, 1.0).is_new)
        self.assertFalse(associate(z_hat, np.array([3.0, 0.0]), S, 1.0 + 1e-6).is_new)

    def test_excluded_and_missing_covariance_are_not_candidates(self):
        z_hat = {0: np.array([2.0, 0.0]), 1: np.array([2.0, 0.0])}
        S = {0: np.eye(2) * 0.01}
        self.assertTrue(associate(z_hat, np.array([2.0, 0.0]), S, GATE, excluded=[0]).is_new)

    def test_custom_innovation(self):
        def euclidean(z, z_hat):
            return np.asarray(z) - np.asarray(z_hat)

        z_hat = {0: np.array([3.0, -np.pi + 0.01])}
        match = associate(
            z_hat, np.array([3.0, np.pi - 0.01]), {0: np.eye(2) * 0.01}, GATE,
            innovation_func=euclidean,
        )
        self.assertTrue(match.is_new)

    def test_non_finite_observation_rejected(self):
        with self.assertRaises(InvalidInputError):
            associate(self.z_hat, np.array([np.nan, 0.0]), self.S, GATE)

    def test_invalid_gate_rejected(self):
        with self.assertRaises(ValueError):
            associate(self.z_hat, np.array([2.0, 0.0]), self.S, 0.0)
        with self.assertRaises(ValueError):
            associate(self.z_hat, np.array([2.0, 0.0]), self.S, np.inf)

    def test_deterministic(self):
        z_hat = {i: np.array([2.0 + 0.5 * i, 0.1 * i]) for i in range(5)}
        S = {i: np.eye(2) * 0.05 for i in range(5)}
        z = np.array([2.9, 0.15])
        first = associate(z_hat, z, S, GATE)
        for _ in range(5):
            self.assertEqual(associate(z_hat, z, S, GATE), first)


class TestAssociateBatch(unittest.TestCase):

    def test_landmark_matched_once_per_cycle(self):
        z_hat = {0: np.array([2.0, 0.0])}
        S = {0: np.eye(2) * 0.01}
        matches = associate_batch(z_hat, [np.array([2.0, 0.0]), np.array([2.0, 0.0])], S, GATE)
        self.assertEqual(matches[0], Match.known(0, 0.0))
        self.assertTrue(matches[1].is_new)

    def test_second_observation_falls_back_to_next_candidate(self):
        z_hat = {0: np.array([2.0, 0.0]), 1: np.array([2.1, 0.0])}
        S = {0: np.eye(2) * 0.01, 1: np.eye(2) * 0.01}
        matches = associate_batch(z_hat, [np.array([2.0, 0.0]), np.array([2.0, 0.0])], S, GATE)
        self.assertEqual([m.index for m in matches], [0, 1])

    def test_order_preserved(self):
        z_hat = {0: np.array([2.0, 0.0]), 1: np.array([5.0, 1.0])}
        S = {0: np.eye(2) * 0.01, 1: np.eye(2) * 0.01}
        observations = [np.array([5.0, 1.0]), np.array([20.0, 0.0]), np.array([2.0, 0.0])]
        matches = associate_batch(z_hat, observations, S, GATE)
        self.assertEqual([m.index for m in matches], [1, None, 0])

    def test_empty_batch(self):
        self.assertEqual(associate_batch({}, [], {}, GATE), [])


if __name__ == "__main__":
    unittest.main()
