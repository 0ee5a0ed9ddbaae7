"""
EKF-SLAM estimator.

Joint estimation of the agent pose and a growing set of point landmarks with
an Extended Kalman Filter.

Augmented state vector:
    x = [x_r, y_r, theta, l0_x, l0_y, l1_x, l1_y, ...]

Covariance structure:
    P = [ P_rr  P_rm ]
        [ P_mr  P_mm ]

Cycle:
    1. predict(control, dt)
         x_r   = f(x_r, u)
         P_rr  = F_x P_rr F_x^T + F_u Q F_u^T
         P_rm  = F_x P_rm                      (landmarks are static)
    2. association of each observation against the predicted observations
    3. insert_landmark(z) for new landmarks
         l     = g(x_r, z)
         P_ll  = G_r P_rr G_r^T + G_y R G_y^T
         P_lx  = G_r P_rx
    4. correct(i, z) for matched landmarks
         S     = H P H^T + R
         K     = P H^T S^{-1}
         x     = x + K (z - h(x))
         P     = (I - K H) P                   (or Joseph form)

Landmark i always lives at offset 3 + 2 i; insertion only appends, so an
index stays valid for the lifetime of the estimator.

Every mutating operation computes the new state and covariance on copies,
validates them and only then replaces the estimate, returning an ``Outcome``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from ekfslam.association.data_association import Match, associate
from ekfslam.config import EKFSlamConfig
from ekfslam.errors import (
    ErrorKind,
    InvalidInputError,
    LandmarkIndexError,
    NumericalDegeneracyError,
    Outcome,
    SlamError,
)
from ekfslam.estimators.base import StateEstimator
from ekfslam.models.measurement_models import MeasurementModel, RangeBearingModel
from ekfslam.models.motion_models import MotionModel, VelocityMotionModel
from ekfslam.types import LANDMARK_DIM, POSE_DIM, Landmark, Pose2
from ekfslam.utils.angles import wrap_angle
from ekfslam.utils.covariance import check_covariance, symmetrize

logger = logging.getLogger(__name__)

# Innovation covariances above this condition number are treated as singular
MAX_INNOVATION_CONDITION = 1e12


@dataclass(frozen=True)
class Correction:
    """Value of a successful ``correct`` call."""

    index: int
    innovation: np.ndarray
    innovation_covariance: np.ndarray


@dataclass(frozen=True)
class ObservationResult:
    """
    What happened to one observation of a batch.

    Attributes:
        observation: The raw observation as given.
        match: Association decision; None when association itself failed or
            correspondences were supplied by the caller.
        outcome: Outcome of the association, insertion or correction.
    """

    observation: object
    match: Optional[Match]
    outcome: Outcome


@dataclass(frozen=True)
class StepResult:
    """Outcome of one full predict/associate/update cycle."""

    prediction: Outcome
    observations: List[ObservationResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.prediction.ok and all(r.outcome.ok for r in self.observations)


class EKFSlam(StateEstimator):
    """
    Extended Kalman Filter SLAM with Mahalanobis data association.

    Attributes:
        config: Frozen configuration of the run.
        motion_model: Strategy propagating the pose.
        measurement_model: Strategy predicting and inverting observations.

    Example:
        >>> slam = EKFSlam(EKFSlamConfig())
        >>> slam.predict(VelocityControl(v=1.0, omega=0.0), dt=1.0).ok
        True
        >>> slam.pose
        Pose2(x=1.0000, y=0.0000, theta=0.0000)
        >>> slam.insert_landmark(RangeBearing(range=2.0, bearing=0.0)).value
        0
    """

    def __init__(
        self,
        config: Optional[EKFSlamConfig] = None,
        motion_model: Optional[MotionModel] = None,
        measurement_model: Optional[MeasurementModel] = None,
    ):
        """
        Initialize the estimator with a pose-only state and an empty map.

        Args:
            config: Run configuration (defaults to ``EKFSlamConfig()``).
            motion_model: Defaults to a velocity model using the configured
                angle range and noise ratio.
            measurement_model: Defaults to a range-bearing model.

        Raises:
            ValueError: If the noise matrices do not fit the models.
        """
        self.config = config if config is not None else EKFSlamConfig()
        self.motion_model = motion_model if motion_model is not None else VelocityMotionModel(
            angle_range=self.config.angle_range, noise_ratio=self.config.noise_ratio
        )
        self.measurement_model = (
            measurement_model if measurement_model is not None
            else RangeBearingModel(angle_range=self.config.angle_range)
        )

        k = self.motion_model.control_dim
        if self.config.process_noise.shape != (k, k):
            raise ValueError(
                f"process_noise must be ({k}, {k}) for {self.motion_model.name}, "
                f"got {self.config.process_noise.shape}"
            )
        m = self.measurement_model.measurement_dim
        if self.config.measurement_noise.shape != (m, m):
            raise ValueError(
                f"measurement_noise must be ({m}, {m}) for {self.measurement_model.name}, "
                f"got {self.config.measurement_noise.shape}"
            )

        state = np.array(self.config.initial_pose, dtype=float)
        state[2] = wrap_angle(state[2], self.config.angle_range)
        super().__init__(state, np.array(self.config.initial_covariance, dtype=float))

        self._landmark_offsets: List[int] = []
        self._landmark_ids: Dict[Hashable, int] = {}

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def num_landmarks(self) -> int:
        return len(self._landmark_offsets)

    @property
    def pose(self) -> Pose2:
        return Pose2.from_array(self._state[:POSE_DIM])

    @property
    def pose_covariance(self) -> np.ndarray:
        return self._covariance[:POSE_DIM, :POSE_DIM].copy()

    def landmark(self, index: int) -> Landmark:
        """
        Landmark estimate by index.

        Raises:
            LandmarkIndexError: If the index was never allocated.
        """
        offset = self._offset(index)
        return Landmark(index, float(self._state[offset]), float(self._state[offset + 1]))

    def landmarks(self) -> List[Landmark]:
        """All landmark estimates in index order."""
        return [self.landmark(i) for i in range(self.num_landmarks)]

    def landmark_covariance(self, index: int) -> np.ndarray:
        """2 × 2 covariance block of one landmark."""
        s = self._block(index)
        return self._covariance[s, s].copy()

    def pose_landmark_covariance(self, index: int) -> np.ndarray:
        """3 × 2 cross-covariance between the pose and one landmark."""
        s = self._block(index)
        return self._covariance[:POSE_DIM, s].copy()

    def landmark_index_for_id(self, landmark_id: Hashable) -> Optional[int]:
        """Index allocated for an external landmark id by ``observe_known``."""
        return self._landmark_ids.get(landmark_id)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, control, dt: float) -> Outcome:
        """
        Time update of the pose and its correlations.

        Only the pose row/column blocks of P change: process noise enters the
        pose block through F_u Q F_u^T and the cross-covariances are rotated
        by F_x. The map block P_mm is untouched.

        Args:
            control: Control input for the motion model.
            dt: Elapsed time, non-negative.

        Returns:
            Outcome with no value on success; INVALID_INPUT for non-finite
            input or negative dt.
        """
        try:
            x_r, F_x, F_u = self.motion_model.predict_pose(self._state[:POSE_DIM], control, dt)
            Q = self.motion_model.control_noise(control, self.config.process_noise)

            P = self._covariance.copy()
            r = slice(0, POSE_DIM)
            m = slice(POSE_DIM, None)
            P[r, r] = F_x @ P[r, r] @ F_x.T + F_u @ Q @ F_u.T
            if self.num_landmarks:
                P[r, m] = F_x @ P[r, m]
                P[m, r] = P[r, m].T
            P = symmetrize(P)
            self._check(P)
        except SlamError as e:
            return self._failure("predict", e)

        state = self._state.copy()
        state[:POSE_DIM] = x_r
        self._commit(state, P)

        logger.debug("predict dt=%s -> pose %s", dt, state[:POSE_DIM])
        return Outcome.success()

    # ------------------------------------------------------------------
    # Landmark insertion
    # ------------------------------------------------------------------

    def insert_landmark(self, observation) -> Outcome:
        """
        Append a landmark first seen in ``observation``.

        The new block is initialised from the back-projected observation;
        its covariance combines the current pose uncertainty and the
        measurement noise through the Jacobians of the inverse observation,
        and its correlation with every existing state entry is G_r P_rx.

        Returns:
            Outcome whose value is the new, never reused landmark index.
        """
        try:
            z = self.measurement_model.validate_observation(observation)
            x_r = self._state[:POSE_DIM]
            landmark = self.measurement_model.initial_landmark_estimate(x_r, z)
            G_r, G_y = self.measurement_model.inverse_jacobians(x_r, z)

            n = self.state_dim
            P = self._covariance
            R = self.config.measurement_noise

            P_ll = G_r @ P[:POSE_DIM, :POSE_DIM] @ G_r.T + G_y @ R @ G_y.T
            P_lx = G_r @ P[:POSE_DIM, :]

            P_new = np.zeros((n + LANDMARK_DIM, n + LANDMARK_DIM))
            P_new[:n, :n] = P
            P_new[n:, :n] = P_lx
            P_new[:n, n:] = P_lx.T
            P_new[n:, n:] = P_ll
            P_new = symmetrize(P_new)
            self._check(P_new)
        except SlamError as e:
            return self._failure("insert_landmark", e)

        state = np.concatenate([self._state, landmark])
        index = len(self._landmark_offsets)
        self._landmark_offsets.append(n)
        self._commit(state, P_new)

        logger.debug("inserted landmark %d at %s", index, landmark)
        return Outcome.success(index)

    # ------------------------------------------------------------------
    # Correction
    # ------------------------------------------------------------------

    def innovation(self, index: int, observation) -> Tuple[np.ndarray, np.ndarray]:
        """
        Innovation and innovation covariance of an observation of landmark ``index``.

        Raises:
            LandmarkIndexError, InvalidInputError, NumericalDegeneracyError
        """
        y, S, _ = self._innovation(index, observation)
        return y, S

    def correct(self, landmark_index: int, observation) -> Outcome:
        """
        EKF measurement update with an observation of a known landmark.

        Args:
            landmark_index: Index returned by ``insert_landmark``.
            observation: Raw observation of that landmark.

        Returns:
            Outcome whose value is a ``Correction``. INDEX_CONTRACT for an
            unknown index, NUMERICAL_DEGENERACY for a singular or
            ill-conditioned S or a covariance that stops being PSD.
        """
        try:
            y, S, H = self._innovation(landmark_index, observation)

            cond = np.linalg.cond(S)
            if not np.isfinite(cond) or cond > MAX_INNOVATION_CONDITION:
                raise NumericalDegeneracyError(
                    f"innovation covariance is singular or ill-conditioned (cond={cond:.3e})"
                )

            P = self._covariance
            try:
                # K = P H^T S^-1, via S K^T = H P with P symmetric
                K = np.linalg.solve(S, H @ P).T
            except np.linalg.LinAlgError as e:
                raise NumericalDegeneracyError(f"innovation covariance is singular: {e}") from e

            state = self._state + K @ y
            state[2] = wrap_angle(state[2], self.config.angle_range)

            I_KH = np.eye(self.state_dim) - K @ H
            if self.config.joseph_form:
                R = self.config.measurement_noise
                P_new = I_KH @ P @ I_KH.T + K @ R @ K.T
            else:
                P_new = I_KH @ P
            P_new = symmetrize(P_new)

            if not np.all(np.isfinite(state)):
                raise NumericalDegeneracyError("state became non-finite during correction")
            self._check(P_new)
        except SlamError as e:
            return self._failure("correct", e)

        self._commit(state, P_new)

        logger.debug("corrected with landmark %d, innovation %s", landmark_index, y)
        return Outcome.success(Correction(int(landmark_index), y, S))

    # ------------------------------------------------------------------
    # Association and full cycles
    # ------------------------------------------------------------------

    def predicted_observations(self) -> Tuple[Dict[int, np.ndarray], Dict[int, np.ndarray]]:
        """
        Predicted observation and innovation covariance of every landmark.

        Landmarks whose observation is undefined from the current pose (the
        agent sits on the landmark) are left out; they cannot be candidates.

        Returns:
            Tuple (z_hat_by_index, S_by_index).
        """
        z_hats: Dict[int, np.ndarray] = {}
        covariances: Dict[int, np.ndarray] = {}
        R = self.config.measurement_noise
        for index in range(self.num_landmarks):
            try:
                z_hat, H = self._linearize(index)
            except NumericalDegeneracyError as e:
                logger.debug("landmark %d has no predicted observation: %s", index, e)
                continue
            z_hats[index] = z_hat
            covariances[index] = symmetrize(H @ self._covariance @ H.T + R)
        return z_hats, covariances

    def process_observations(self, observations: Sequence) -> List[ObservationResult]:
        """
        Associate and apply an ordered batch of observations.

        Observations are handled in order. Each one is validated, then
        associated against the current estimate, excluding landmarks already
        matched or inserted in this batch, then inserted or used for a
        correction. A malformed observation fails with INVALID_INPUT.
        Processing stops at the first failure; the returned list then ends
        with the failed observation and ``observations[len(results):]`` were
        not touched.
        """
        results: List[ObservationResult] = []
        matched = set()
        for observation in observations:
            try:
                z = self.measurement_model.validate_observation(observation)
                z_hats, covariances = self.predicted_observations()
                match = associate(
                    z_hats, z, covariances, self.config.gate_threshold,
                    innovation_func=self.measurement_model.innovation, excluded=matched,
                )
            except SlamError as e:
                results.append(ObservationResult(observation, None, self._failure("associate", e)))
                break

            if match.is_new:
                outcome = self.insert_landmark(observation)
                if outcome.ok:
                    matched.add(outcome.value)
            else:
                matched.add(match.index)
                outcome = self.correct(match.index, observation)

            results.append(ObservationResult(observation, match, outcome))
            if not outcome.ok:
                break
        return results

    def observe_known(self, landmark_id: Hashable, observation) -> Outcome:
        """
        Update with a known correspondence.

        The first observation of ``landmark_id`` inserts a landmark and
        remembers its index; later ones correct that landmark.
        """
        index = self._landmark_ids.get(landmark_id)
        if index is not None:
            return self.correct(index, observation)

        outcome = self.insert_landmark(observation)
        if outcome.ok:
            self._landmark_ids[landmark_id] = outcome.value
        return outcome

    def step(
        self,
        control,
        dt: float,
        observations: Sequence = (),
        known_correspondences: bool = False,
    ) -> StepResult:
        """
        Run one cycle: predict, then associate and apply observations.

        Args:
            control: Control input for the prediction.
            dt: Elapsed time.
            observations: Ordered observation batch of this cycle.
            known_correspondences: Use each observation's ``landmark_id``
                instead of Mahalanobis association.

        Returns:
            StepResult. If the prediction fails the observations are not
            processed. With ``known_correspondences`` set, an observation
            without ``landmark_id`` rejects the whole step before the
            prediction: the StepResult carries an INVALID_INPUT prediction
            outcome and nothing is applied.
        """
        if known_correspondences:
            landmark_ids = [getattr(observation, "landmark_id", None) for observation in observations]
            if any(landmark_id is None for landmark_id in landmark_ids):
                error = InvalidInputError(
                    "known_correspondences requires observations with a landmark_id"
                )
                return StepResult(self._failure("step", error))

        prediction = self.predict(control, dt)
        if not prediction.ok:
            return StepResult(prediction)

        if not known_correspondences:
            return StepResult(prediction, self.process_observations(observations))

        results = []
        for landmark_id, observation in zip(landmark_ids, observations):
            outcome = self.observe_known(landmark_id, observation)
            results.append(ObservationResult(observation, None, outcome))
            if not outcome.ok:
                break
        return StepResult(prediction, results)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _offset(self, index) -> int:
        if isinstance(index, (bool, np.bool_)) or not isinstance(index, (int, np.integer)):
            raise LandmarkIndexError(f"Landmark index must be an integer, got {index!r}")
        if not 0 <= index < len(self._landmark_offsets):
            raise LandmarkIndexError(
                f"Landmark index {index} out of range ({self.num_landmarks} landmarks)"
            )
        return self._landmark_offsets[index]

    def _block(self, index) -> slice:
        offset = self._offset(index)
        return slice(offset, offset + LANDMARK_DIM)

    def _linearize(self, index: int) -> Tuple[np.ndarray, np.ndarray]:
        """Predicted observation of landmark ``index`` and its sparse full-state Jacobian."""
        s = self._block(index)
        z_hat, H_r, H_l = self.measurement_model.predict_observation(
            self._state[:POSE_DIM], self._state[s]
        )
        H = np.zeros((self.measurement_model.measurement_dim, self.state_dim))
        H[:, :POSE_DIM] = H_r
        H[:, s] = H_l
        return z_hat, H

    def _innovation(self, index: int, observation) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        z_hat, H = self._linearize(index)
        z = self.measurement_model.validate_observation(observation)
        y = self.measurement_model.innovation(z, z_hat)
        S = symmetrize(H @ self._covariance @ H.T + self.config.measurement_noise)
        return y, S, H

    def _check(self, P: np.ndarray) -> None:
        check_covariance(
            P,
            psd_tolerance=self.config.psd_tolerance,
            symmetry_tolerance=self.config.symmetry_tolerance,
        )

    def _failure(self, operation: str, error: SlamError) -> Outcome:
        outcome = Outcome.failure(error)
        if outcome.error_kind is ErrorKind.NUMERICAL_DEGENERACY:
            logger.warning("%s failed: %s", operation, error)
        else:
            logger.debug("%s rejected: %s", operation, error)
        return outcome
