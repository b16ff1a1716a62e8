import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from tabletop_pipeline.cloud import PointCloud, NormalCloud

logger = logging.getLogger(__name__)


@dataclass
class PlaneModel:
    """
    Represents a 3D plane: normal * point + d = 0
    """
    # Unit vector with distance parameter to represent plane
    normal: np.ndarray
    d: float

    def signed_distance(self, points: np.ndarray) -> np.ndarray:
        return np.dot(points[:, :3], self.normal) + self.d

    def distance_to_points(self, points: np.ndarray) -> np.ndarray:
        return np.abs(self.signed_distance(points))

    def project(self, points: np.ndarray) -> np.ndarray:
        return points[:, :3] - np.outer(self.signed_distance(points), self.normal)

    def oriented_towards(self, viewpoint: Sequence[float]) -> "PlaneModel":
        """
        Flip the plane so that the viewpoint lies on its positive side.
        """
        if np.dot(self.normal, viewpoint) + self.d < 0:
            return PlaneModel(normal=-self.normal, d=-self.d)
        return self

    @property
    def coefficients(self) -> np.ndarray:
        return np.append(self.normal, self.d)

    @property
    def equation_string(self) -> str:
        return f"{self.normal[0]:.4f}x + {self.normal[1]:.4f}y + {self.normal[2]:.4f}z + {self.d:.4f} = 0"


@dataclass
class PlaneFit:
    plane: Optional[PlaneModel]
    inliers: np.ndarray
    iterations: int = 0

    @property
    def inlier_count(self) -> int:
        return len(self.inliers)


def fit_plane_from_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> PlaneModel:
    """
    Fit a plane through three 3D points.
    """
    v1 = p2 - p1
    v2 = p3 - p1

    normal = np.cross(v1, v2)

    norm = np.linalg.norm(normal)
    if norm < 1e-10:
        raise ValueError("Points are collinear")

    normal = normal / norm

    d = -np.dot(normal, p1)

    return PlaneModel(normal=normal, d=d)


def fit_plane_least_squares(points: np.ndarray) -> PlaneModel:
    """
    Total least squares plane through the points (smallest principal axis).
    """
    if len(points) < 3:
        raise ValueError("Need at least 3 points")
    centroid = points.mean(axis=0)
    _, _, vt = np.linalg.svd(points - centroid, full_matrices=False)
    normal = vt[-1] / np.linalg.norm(vt[-1])
    return PlaneModel(normal=normal, d=-np.dot(normal, centroid))


def axis_from_tilt(tilt_angle: float) -> np.ndarray:
    """
    Table axis in the sensor frame for a head tilted by tilt_angle (radians):
    sensor z rotated about x by tilt_angle + 90 degrees, components taken absolute.
    """
    angle = tilt_angle + math.pi / 2
    axis = np.array([0.0, -math.sin(angle), math.cos(angle)])
    return np.abs(axis)


def angle_to_axis(normal: np.ndarray, axis: np.ndarray) -> float:
    """
    Angle in radians between a normal and an axis, ignoring orientation.
    """
    cos = abs(float(np.dot(normal, axis))) / (np.linalg.norm(normal) * np.linalg.norm(axis))
    return math.acos(min(cos, 1.0))


def weighted_plane_error(
    plane: PlaneModel,
    points: np.ndarray,
    normals: np.ndarray,
    curvature: np.ndarray,
    normal_distance_weight: float,
) -> np.ndarray:
    """
    Blend of point-to-plane distance and normal deviation angle, weighted by flatness.
    """
    distances = plane.distance_to_points(points)
    cos = np.clip(np.abs(normals @ plane.normal), 0.0, 1.0)
    angles = np.arccos(cos)
    weights = normal_distance_weight * (1.0 - curvature)
    return np.abs(weights * angles + (1.0 - weights) * distances)


def required_iterations(inlier_ratio: float, probability: float, sample_size: int = 3) -> float:
    """
    Iterations needed to draw an all-inlier sample with the given probability.
    """
    if inlier_ratio <= 0.0:
        return math.inf
    p_good = inlier_ratio ** sample_size
    if p_good >= 1.0:
        return 0.0
    p_no_outliers = max(1.0 - p_good, np.finfo(float).eps)
    return math.log(max(1.0 - probability, np.finfo(float).eps)) / math.log(p_no_outliers)


def segment_plane(
    cloud: PointCloud,
    normals: NormalCloud,
    axis: Sequence[float] = (0.0, 0.0, 1.0),
    eps_angle: float = 15.0,
    distance_threshold: float = 0.03,
    normal_distance_weight: float = 0.1,
    max_iterations: int = 500,
    probability: float = 0.99,
    viewpoint: Sequence[float] = (0.0, 0.0, 0.0),
    rng: Optional[np.random.Generator] = None,
) -> PlaneFit:
    """
    Detect the dominant plane whose normal lies within eps_angle degrees of axis using RANSAC
    over points with a valid normal. Coefficients are refit on the final inlier set.
    """
    if rng is None:
        rng = np.random.default_rng()

    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    eps = math.radians(eps_angle)

    candidates = np.flatnonzero(normals.valid)
    n_candidates = len(candidates)
    if n_candidates < 3:
        logger.debug("Plane fit skipped: only %d points with normals", n_candidates)
        return PlaneFit(plane=None, inliers=np.zeros(0, dtype=int))

    xyz = cloud.xyz[candidates]
    point_normals = normals.normals[candidates]
    point_curvature = normals.curvature[candidates]

    best_plane = None
    best_inlier_count = 0
    best_inlier_mask = np.zeros(n_candidates, dtype=bool)

    needed = math.inf
    iterations = 0
    skipped = 0
    max_skip = 10 * max_iterations

    while iterations < max_iterations and iterations < needed and skipped < max_skip:
        sample_indices = rng.choice(n_candidates, 3, replace=False)
        p1, p2, p3 = xyz[sample_indices]

        try:
            plane = fit_plane_from_points(p1, p2, p3)
        except ValueError:
            skipped += 1
            continue

        if angle_to_axis(plane.normal, axis) > eps:
            skipped += 1
            continue

        iterations += 1

        errors = weighted_plane_error(plane, xyz, point_normals, point_curvature, normal_distance_weight)
        inlier_mask = errors < distance_threshold
        inlier_count = int(np.sum(inlier_mask))

        if inlier_count > best_inlier_count:
            best_inlier_count = inlier_count
            best_plane = plane
            best_inlier_mask = inlier_mask
            needed = required_iterations(inlier_count / n_candidates, probability)

    logger.debug("RANSAC ran %d iterations (%d samples skipped), best consensus %d",
                 iterations, skipped, best_inlier_count)

    if best_plane is None:
        return PlaneFit(plane=None, inliers=np.zeros(0, dtype=int), iterations=iterations)

    inliers = candidates[best_inlier_mask]
    if len(inliers) >= 3:
        refined = fit_plane_least_squares(cloud.xyz[inliers])
    else:
        refined = best_plane

    return PlaneFit(
        plane=refined.oriented_towards(viewpoint),
        inliers=inliers,
        iterations=iterations,
    )
