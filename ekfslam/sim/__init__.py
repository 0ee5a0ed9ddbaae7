"""
Simulation utilities.

Ground truth, noisy odometry and range/bearing observations for testing and
demonstrating the estimator.
"""

from .world import SimulatedStep, SimulatedWorld, circle_controls, random_landmarks

__all__ = [
    "SimulatedStep",
    "SimulatedWorld",
    "circle_controls",
    "random_landmarks",
]
