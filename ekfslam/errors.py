"""
Error taxonomy and call outcomes for the EKF-SLAM core.

The numeric building blocks (motion models, measurement models, gating)
raise exceptions from the hierarchy below. The estimator catches them at its
public boundary and reports an ``Outcome`` instead, so a host always inspects
the result of ``predict`` / ``insert_landmark`` / ``correct`` before trusting
the updated estimate. Hosts that prefer exceptions call ``Outcome.unwrap()``.

Error kinds:
    - INVALID_INPUT: NaN/inf control or observation, negative dt
    - INDEX_CONTRACT: correcting a landmark index that does not exist
    - NUMERICAL_DEGENERACY: singular innovation covariance, covariance losing
      positive semi-definiteness, undefined Jacobian
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class SlamError(Exception):
    """Base class for every failure raised by the EKF-SLAM core."""


class InvalidInputError(SlamError, ValueError):
    """Non-finite or out-of-domain input at an operation boundary."""


class LandmarkIndexError(SlamError, IndexError):
    """A landmark index that was never allocated by the estimator."""


class NumericalDegeneracyError(SlamError, ArithmeticError):
    """Numerical breakdown: singular matrices or a non-PSD covariance."""


class ErrorKind(Enum):
    """Distinguishable failure kinds reported in an ``Outcome``."""

    INVALID_INPUT = "invalid_input"
    INDEX_CONTRACT = "index_contract"
    NUMERICAL_DEGENERACY = "numerical_degeneracy"


_KIND_BY_EXCEPTION = (
    (InvalidInputError, ErrorKind.INVALID_INPUT),
    (LandmarkIndexError, ErrorKind.INDEX_CONTRACT),
    (NumericalDegeneracyError, ErrorKind.NUMERICAL_DEGENERACY),
)

_EXCEPTION_BY_KIND = {kind: exc for exc, kind in _KIND_BY_EXCEPTION}


def error_kind_of(error: SlamError) -> ErrorKind:
    """Map a core exception to its ``ErrorKind``."""
    for exc_type, kind in _KIND_BY_EXCEPTION:
        if isinstance(error, exc_type):
            return kind
    raise TypeError(f"No error kind registered for {type(error).__name__}")


@dataclass(frozen=True)
class Outcome:
    """
    Result of one estimator operation.

    Attributes:
        ok: True if the operation was applied to the estimate.
        value: Operation result on success (e.g. the new landmark index).
        error_kind: Failure category when ``ok`` is False.
        message: Human-readable failure description.

    Example:
        >>> outcome = slam.correct(0, observation)
        >>> if not outcome.ok:
        ...     print(outcome.error_kind, outcome.message)
    """

    ok: bool
    value: Any = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: SlamError) -> "Outcome":
        return cls(ok=False, error_kind=error_kind_of(error), message=str(error))

    def unwrap(self) -> Any:
        """Return ``value`` or raise the exception matching ``error_kind``."""
        if self.ok:
            return self.value
        raise _EXCEPTION_BY_KIND[self.error_kind](self.message)

    def __bool__(self) -> bool:
        return self.ok
