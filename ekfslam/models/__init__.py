"""
Motion and measurement models for EKF-SLAM.

Both families are strategy objects: the estimator only depends on the
``MotionModel`` and ``MeasurementModel`` interfaces, so a different odometry
or sensor model can be plugged in without changing the filter.
"""

from .motion_models import (
    MotionModel,
    VelocityMotionModel,
    OdometryMotionModel,
)

from .measurement_models import (
    MeasurementModel,
    RangeBearingModel,
)

__all__ = [
    # Motion models
    'MotionModel',
    'VelocityMotionModel',
    'OdometryMotionModel',

    # Measurement models
    'MeasurementModel',
    'RangeBearingModel',
]
