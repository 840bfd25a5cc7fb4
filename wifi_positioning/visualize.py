"""
Visualization module for position estimation results.
"""

from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure
from matplotlib.patches import Ellipse

from .robust import InliersData
from .utils import calculate_distance


class PositionVisualizer:
    """Plots located sources and an estimated position in the horizontal plane."""

    def __init__(self, sources: Sequence):
        """
        Initialize the visualizer.

        Args:
            sources: Located sources (2D or 3D, only x and y are drawn)
        """
        self.sources = list(sources)
        self.source_positions = np.array([source.position[:2] for source in self.sources], dtype=float)

    @staticmethod
    def covariance_ellipse(center: Sequence[float], covariance: np.ndarray, n_std: float = 1.0, **kwargs) -> Ellipse:
        """
        Build the n-sigma ellipse of the horizontal part of a covariance.

        Args:
            center: Ellipse center
            covariance: 2x2 (or larger, only x and y are used) covariance
            n_std: Number of standard deviations

        Returns:
            Matplotlib ellipse patch
        """
        cov = np.asarray(covariance, dtype=float)[:2, :2]
        eigenvalues, eigenvectors = np.linalg.eigh(cov)
        eigenvalues = np.clip(eigenvalues, 0.0, None)
        major = eigenvectors[:, 1]
        angle = np.degrees(np.arctan2(major[1], major[0]))
        width, height = 2.0 * n_std * np.sqrt(eigenvalues[::-1])
        return Ellipse(xy=tuple(center[:2]), width=width, height=height, angle=angle, **kwargs)

    def plot_estimate(self,
                      estimated_position: Sequence[float],
                      covariance: Optional[np.ndarray] = None,
                      inliers_data: Optional[InliersData] = None,
                      sample_sources: Optional[Sequence] = None,
                      ground_truth: Optional[Sequence[float]] = None,
                      title: str = "Position Estimate") -> Figure:
        """
        Plot sources, the estimated position and its uncertainty.

        Args:
            estimated_position: Estimated position
            covariance: Optional covariance of the estimate, drawn as a 1-sigma ellipse
            inliers_data: Optional inliers of a robust estimate
            sample_sources: Source of each robust sample, required to mark outlier sources
            ground_truth: Optional true position
            title: Plot title

        Returns:
            The figure
        """
        fig, ax = plt.subplots(figsize=(10, 8))

        ax.scatter(self.source_positions[:, 0], self.source_positions[:, 1],
                   c='red', marker='^', s=100, label='Sources')

        if inliers_data is not None and sample_sources is not None:
            outlier_ids = {source.id for source, inlier in zip(sample_sources, inliers_data.inliers) if not inlier}
            outliers = np.array([source.position[:2] for source in self.sources if source.id in outlier_ids])
            if len(outliers):
                ax.scatter(outliers[:, 0], outliers[:, 1], facecolors='none', edgecolors='black',
                           marker='o', s=250, label='Outlier readings')

        position = np.asarray(estimated_position, dtype=float)
        ax.scatter(position[0], position[1], c='blue', marker='o', label='Estimated Position')

        if covariance is not None:
            ax.add_patch(self.covariance_ellipse(position, covariance, fill=False, edgecolor='blue',
                                                 linestyle='--', label='1-sigma'))

        if ground_truth is not None:
            truth = np.asarray(ground_truth, dtype=float)
            ax.scatter(truth[0], truth[1], c='green', marker='x', label='Ground Truth')
            error = calculate_distance(position[:len(truth)], truth)
            ax.set_title(f"{title}\nError: {error:.2f}m")
        else:
            ax.set_title(title)

        ax.set_xlabel('X Position (m)')
        ax.set_ylabel('Y Position (m)')
        ax.grid(True)
        ax.legend()
        ax.axis('equal')
        return fig
