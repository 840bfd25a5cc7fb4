"""
Utility functions for the Wi-Fi indoor positioning system.
"""

import math
from typing import Optional, Sequence

import numpy as np


def as_point(point: Sequence[float], dimensions: Optional[int] = None) -> np.ndarray:
    """
    Convert a sequence of coordinates into a float vector.

    Args:
        point: Point coordinates
        dimensions: Expected number of coordinates, if any

    Returns:
        Coordinates as a 1D numpy array
    """
    result = np.asarray(point, dtype=float).reshape(-1)
    if dimensions is not None and result.size != dimensions:
        raise ValueError(f"Point must have {dimensions} coordinates")
    return result


def calculate_distance(point1: Sequence[float], point2: Sequence[float]) -> float:
    """
    Calculate Euclidean distance between two points.

    Args:
        point1: First point coordinates
        point2: Second point coordinates

    Returns:
        Distance between points in meters
    """
    return float(np.linalg.norm(as_point(point1) - as_point(point2)))


def min_required_sources(dimensions: int) -> int:
    """Number of sources needed to solve a lateration problem."""
    if dimensions not in (2, 3):
        raise ValueError("Only 2D and 3D positions are supported")
    return dimensions + 1


def validate_sources(sources: Sequence, dimensions: int) -> bool:
    """
    Validate a list of located sources.

    Args:
        sources: Located sources
        dimensions: Number of dimensions of the positions to estimate

    Returns:
        True if there are enough sources and all of them have the right
        dimensions, False otherwise
    """
    if sources is None or len(sources) < min_required_sources(dimensions):
        return False
    return all(len(source.position) == dimensions for source in sources)


def required_iterations(confidence: float, inlier_ratio: float, subset_size: int,
                        max_iterations: int) -> int:
    """
    Number of random subsets needed to draw at least one outlier-free subset
    with the requested confidence.

    Args:
        confidence: Probability of success in (0, 1)
        inlier_ratio: Estimated fraction of inliers
        subset_size: Number of samples drawn on each iteration
        max_iterations: Upper bound of the result

    Returns:
        Number of iterations, between 1 and max_iterations
    """
    if inlier_ratio <= 0.0:
        return max_iterations

    good_subset = inlier_ratio ** subset_size
    if good_subset >= 1.0:
        return 1

    denominator = math.log(1.0 - good_subset)
    if denominator == 0.0:
        return max_iterations

    iterations = math.log(1.0 - confidence) / denominator
    return int(max(1, min(max_iterations, math.ceil(iterations))))
