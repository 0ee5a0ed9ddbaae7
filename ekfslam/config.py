"""Estimator configuration.

``EKFSlamConfig`` gathers everything an ``EKFSlam`` instance needs at
construction: noise models, the association gate, the angle convention and
the prior. It is frozen; a running estimator never sees its configuration
change.

Example:
    >>> config = EKFSlamConfig(
    ...     process_noise=noise_from_std([0.05, 0.01]),
    ...     measurement_noise=noise_from_std([0.1, 0.02]),
    ...     gate_threshold=chi_square_threshold(dof=2, confidence=0.99),
    ... )
    >>> config.angle_range
    <AngleRange.SYMMETRIC: 'symmetric'>
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from ekfslam.association.gating import chi_square_threshold
from ekfslam.types import POSE_DIM
from ekfslam.utils.angles import AngleRange


def noise_from_std(noise_std: Sequence[float]) -> np.ndarray:
    """
    Diagonal covariance from per-component standard deviations.

    Example:
        >>> noise_from_std([0.1, 0.01])
        array([[1.e-02, 0.e+00],
               [0.e+00, 1.e-04]])
    """
    noise_std = np.asarray(noise_std, dtype=float)
    if noise_std.ndim != 1:
        raise ValueError(f"noise_std must be 1D array, got shape {noise_std.shape}")
    if np.any(noise_std < 0):
        raise ValueError("noise_std must be non-negative")
    return np.diag(noise_std**2)


def _covariance(value, shape: Optional[Tuple[int, int]], name: str) -> np.ndarray:
    matrix = np.array(value, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"{name} must be a square matrix, got shape {matrix.shape}")
    if shape is not None and matrix.shape != shape:
        raise ValueError(f"{name} must have shape {shape}, got {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError(f"{name} must be finite")
    if not np.allclose(matrix, matrix.T):
        raise ValueError(f"{name} must be symmetric")
    eigvals = np.linalg.eigvalsh(matrix)
    if np.any(eigvals < -1e-12):
        raise ValueError(f"{name} must be positive semi-definite, got eigenvalues {eigvals}")
    matrix.setflags(write=False)
    return matrix


@dataclass(frozen=True, eq=False)
class EKFSlamConfig:
    """
    Configuration of one EKF-SLAM run.

    Attributes:
        process_noise: Control-space noise covariance Q (k × k, k is the
            motion model's control dimension).
        measurement_noise: Observation noise covariance R (2 × 2 for
            range/bearing).
        gate_threshold: Chi-square critical value used by data association.
        angle_range: Interval headings and bearings are canonicalized into.
        initial_pose: Prior pose [x, y, theta].
        initial_covariance: Prior pose covariance (3 × 3); zeros means the
            start pose defines the map frame exactly.
        noise_ratio: Optional per-control factors adding (a_i |u_i|)^2 to Q.
        joseph_form: Use the Joseph covariance update instead of (I - K H) P.
        psd_tolerance: Allowed negative eigenvalue (relative) before a
            covariance counts as degenerate.
        symmetry_tolerance: Absolute tolerance of the symmetry check.
    """

    process_noise: np.ndarray = field(default_factory=lambda: noise_from_std([0.01, 0.01]))
    measurement_noise: np.ndarray = field(default_factory=lambda: noise_from_std([0.1, 0.01]))
    gate_threshold: float = field(default_factory=lambda: chi_square_threshold(dof=2, confidence=0.99))
    angle_range: AngleRange = AngleRange.SYMMETRIC
    initial_pose: np.ndarray = field(default_factory=lambda: np.zeros(POSE_DIM))
    initial_covariance: np.ndarray = field(default_factory=lambda: np.zeros((POSE_DIM, POSE_DIM)))
    noise_ratio: Optional[Tuple[float, ...]] = None
    joseph_form: bool = False
    psd_tolerance: float = 1e-9
    symmetry_tolerance: float = 1e-9

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        set_ = object.__setattr__

        set_(self, "process_noise", _covariance(self.process_noise, None, "process_noise"))
        set_(self, "measurement_noise", _covariance(self.measurement_noise, None, "measurement_noise"))
        set_(self, "initial_covariance",
             _covariance(self.initial_covariance, (POSE_DIM, POSE_DIM), "initial_covariance"))
        set_(self, "angle_range", AngleRange.parse(self.angle_range))

        pose = np.array(self.initial_pose, dtype=float)
        if pose.shape != (POSE_DIM,) or not np.all(np.isfinite(pose)):
            raise ValueError(f"initial_pose must be 3 finite values, got {self.initial_pose}")
        pose.setflags(write=False)
        set_(self, "initial_pose", pose)

        if not (np.isfinite(self.gate_threshold) and self.gate_threshold > 0):
            raise ValueError(f"gate_threshold must be positive, got {self.gate_threshold}")
        set_(self, "gate_threshold", float(self.gate_threshold))

        if self.noise_ratio is not None:
            set_(self, "noise_ratio", tuple(float(a) for a in self.noise_ratio))

        for name in ("psd_tolerance", "symmetry_tolerance"):
            value = getattr(self, name)
            if not (np.isfinite(value) and value >= 0):
                raise ValueError(f"{name} must be a non-negative number, got {value}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EKFSlamConfig":
        """
        Build a configuration from plain (JSON-like) data.

        Besides the field names, accepts ``process_noise_std``,
        ``measurement_noise_std`` and ``initial_covariance_std`` as diagonal
        shortcuts, and ``gate_confidence`` in place of ``gate_threshold``.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        data = dict(data)
        kwargs: Dict[str, Any] = {}

        for short, full in (
            ("process_noise_std", "process_noise"),
            ("measurement_noise_std", "measurement_noise"),
            ("initial_covariance_std", "initial_covariance"),
        ):
            if short in data:
                if full in data:
                    raise ValueError(f"Give either '{short}' or '{full}', not both")
                kwargs[full] = noise_from_std(data.pop(short))

        if "gate_confidence" in data:
            if "gate_threshold" in data:
                raise ValueError("Give either 'gate_confidence' or 'gate_threshold', not both")
            dof = len(kwargs.get("measurement_noise", data.get("measurement_noise", [0, 0])))
            kwargs["gate_threshold"] = chi_square_threshold(dof=dof, confidence=data.pop("gate_confidence"))

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

        kwargs.update(data)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation, e.g. for printing or writing as JSON."""
        return {
            "process_noise": self.process_noise.tolist(),
            "measurement_noise": self.measurement_noise.tolist(),
            "gate_threshold": self.gate_threshold,
            "angle_range": self.angle_range.value,
            "initial_pose": self.initial_pose.tolist(),
            "initial_covariance": self.initial_covariance.tolist(),
            "noise_ratio": list(self.noise_ratio) if self.noise_ratio is not None else None,
            "joseph_form": self.joseph_form,
            "psd_tolerance": self.psd_tolerance,
            "symmetry_tolerance": self.symmetry_tolerance,
        }
