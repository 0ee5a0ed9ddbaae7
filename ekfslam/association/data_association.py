"""Nearest-neighbour data association with Mahalanobis gating.

Each raw observation is compared against the predicted observation of every
known landmark. The candidate with the smallest squared Mahalanobis distance
wins, but is only accepted if that distance falls inside the chi-square gate;
otherwise the observation is classified as a new landmark.

Within one cycle observations are processed in their given order and a
landmark matched by an earlier observation is no longer a candidate for later
ones, so two observations never update the same landmark in one cycle. The
estimator also withholds landmarks it inserted earlier in the same cycle.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from ekfslam.association.gating import mahalanobis_distance_squared
from ekfslam.errors import InvalidInputError
from ekfslam.utils.angles import angle_diff

logger = logging.getLogger(__name__)

# Relative tolerance under which two distances count as a tie
TIE_TOLERANCE = 1e-9

InnovationFunc = Callable[[np.ndarray, np.ndarray], np.ndarray]


class MatchKind(Enum):
    KNOWN = "known"
    NEW = "new"


@dataclass(frozen=True)
class Match:
    """
    Association decision for one raw observation.

    Attributes:
        kind: KNOWN if matched to an existing landmark, NEW otherwise.
        index: Matched landmark index (None for NEW).
        distance_squared: Squared Mahalanobis distance of the best candidate,
            inf when there was no candidate at all.
    """

    kind: MatchKind
    index: Optional[int] = None
    distance_squared: float = float("inf")

    @classmethod
    def known(cls, index: int, distance_squared: float) -> "Match":
        return cls(MatchKind.KNOWN, int(index), float(distance_squared))

    @classmethod
    def new(cls, distance_squared: float = float("inf")) -> "Match":
        return cls(MatchKind.NEW, None, float(distance_squared))

    @property
    def is_new(self) -> bool:
        return self.kind is MatchKind.NEW


def range_bearing_innovation(z: np.ndarray, z_hat: np.ndarray) -> np.ndarray:
    """Innovation z - z_hat with the bearing (second component) wrapped."""
    y = np.asarray(z, dtype=float) - np.asarray(z_hat, dtype=float)
    y[1] = angle_diff(float(z[1]), float(z_hat[1]))
    return y


def associate(
    predicted_observations: Mapping[int, np.ndarray],
    raw_observation,
    innovation_covariances: Mapping[int, np.ndarray],
    gate_threshold: float,
    innovation_func: Optional[InnovationFunc] = None,
    excluded: Iterable[int] = (),
) -> Match:
    """
    Match one raw observation to a known landmark or classify it as new.

    Args:
        predicted_observations: Predicted observation per landmark index.
        raw_observation: Observation vector (or object with ``to_array``).
        innovation_covariances: Innovation covariance S per landmark index.
            Only indices present in both mappings are candidates.
        gate_threshold: Chi-square critical value; the best candidate is
            accepted only if its squared distance is strictly below it.
        innovation_func: Residual function, range/bearing wrapping by default.
        excluded: Indices that are not candidates (already matched this cycle).

    Returns:
        ``Match.known(index, d2)`` or ``Match.new(d2)``. Ties within
        ``TIE_TOLERANCE`` go to the lower landmark index.

    Raises:
        InvalidInputError: If the observation is non-finite.
        ValueError: If gate_threshold is not a positive number.
        NumericalDegeneracyError: If a candidate's S is singular.

    Example:
        >>> match = associate({0: np.array([2.0, 0.0])}, np.array([2.0, 0.0]),
        ...                   {0: np.eye(2) * 0.01}, gate_threshold=9.21)
        >>> match.kind, match.index
        (<MatchKind.KNOWN: 'known'>, 0)
    """
    if not (np.isfinite(gate_threshold) and gate_threshold > 0):
        raise ValueError(f"gate_threshold must be positive and finite, got {gate_threshold}")

    if hasattr(raw_observation, "to_array"):
        raw_observation = raw_observation.to_array()
    z = np.asarray(raw_observation, dtype=float)
    if z.ndim != 1 or not np.all(np.isfinite(z)):
        raise InvalidInputError(f"Raw observation must be a finite vector, got {z}")

    if innovation_func is None:
        innovation_func = range_bearing_innovation

    excluded = set(excluded)
    candidates = sorted(
        i for i in predicted_observations
        if i in innovation_covariances and i not in excluded
    )

    distances = {}
    for index in candidates:
        y = innovation_func(z, predicted_observations[index])
        distances[index] = mahalanobis_distance_squared(y, innovation_covariances[index])

    best_index = None
    best_d2 = min(distances.values(), default=float("inf"))
    if distances:
        # Lowest index among all candidates tied with the minimum
        cutoff = best_d2 + TIE_TOLERANCE * max(1.0, best_d2)
        best_index = next(i for i in candidates if distances[i] <= cutoff)
        best_d2 = distances[best_index]

    if best_index is not None and best_d2 < gate_threshold:
        logger.debug("Observation %s matched landmark %d (d2=%.4f)", z, best_index, best_d2)
        return Match.known(best_index, best_d2)

    logger.debug("Observation %s is a new landmark (best d2=%.4f)", z, best_d2)
    return Match.new(best_d2)


def associate_batch(
    predicted_observations: Mapping[int, np.ndarray],
    raw_observations: Sequence,
    innovation_covariances: Mapping[int, np.ndarray],
    gate_threshold: float,
    innovation_func: Optional[InnovationFunc] = None,
) -> List[Match]:
    """
    Associate an ordered batch of observations from one cycle.

    Observations are processed in the given order; once a landmark is matched
    it is removed from candidacy for the rest of the batch.

    Returns:
        One Match per observation, in the same order.
    """
    matched: Dict[int, int] = {}
    matches = []
    for position, raw in enumerate(raw_observations):
        match = associate(
            predicted_observations, raw, innovation_covariances, gate_threshold,
            innovation_func=innovation_func, excluded=matched,
        )
        if not match.is_new:
            matched[match.index] = position
        matches.append(match)
    return matches
