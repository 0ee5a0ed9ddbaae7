"""
Base class for state estimators.

This module defines the common interface of recursive estimators that own a
state vector and its covariance.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from ekfslam.errors import Outcome


class StateEstimator(ABC):
    """Abstract base class for recursive state estimators."""

    def __init__(self, state: np.ndarray, covariance: np.ndarray):
        """
        Initialize state estimator.

        Args:
            state: Initial state vector (n,).
            covariance: Initial covariance (n × n).

        Raises:
            ValueError: If dimensions are inconsistent.
        """
        state = np.array(state, dtype=float)
        covariance = np.array(covariance, dtype=float)
        n = len(state)
        if covariance.shape != (n, n):
            raise ValueError(
                f"Covariance shape {covariance.shape} inconsistent with state_dim {n}"
            )
        self._state = state
        self._covariance = covariance

    @property
    def state_dim(self) -> int:
        """Current dimension of the state vector."""
        return len(self._state)

    @property
    def state(self) -> np.ndarray:
        """Copy of the current state vector."""
        return self._state.copy()

    @property
    def covariance(self) -> np.ndarray:
        """Copy of the current covariance matrix."""
        return self._covariance.copy()

    @abstractmethod
    def predict(self, control, dt: float) -> Outcome:
        """
        Perform prediction step (time update).

        Args:
            control: Control input.
            dt: Elapsed time.
        """

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current state estimate and covariance.

        Returns:
            Tuple of (state_vector, covariance_matrix), both copies.
        """
        return self._state.copy(), self._covariance.copy()

    def _commit(self, state: np.ndarray, covariance: np.ndarray) -> None:
        # Whole-structure replacement; callers validate before committing
        self._state = state
        self._covariance = covariance
