from dataclasses import dataclass

import numpy as np

from tabletop_pipeline.cloud import PointCloud
from tabletop_pipeline.hull import ConvexHull


@dataclass(frozen=True)
class HeightBand:
    """
    Signed height above the plane, [min_height, max_height).
    """
    min_height: float = 0.01
    max_height: float = 0.4

    def contains(self, heights: np.ndarray) -> np.ndarray:
        return (heights >= self.min_height) & (heights < self.max_height)


def inside_convex_polygon(points_2d: np.ndarray, polygon: np.ndarray, tolerance: float = 1e-12) -> np.ndarray:
    """
    Point-in-polygon test for a counter-clockwise convex polygon, boundary included.
    """
    inside = np.ones(len(points_2d), dtype=bool)
    if len(polygon) < 3:
        return np.zeros(len(points_2d), dtype=bool)

    edges_start = polygon
    edges_end = np.roll(polygon, -1, axis=0)
    for a, b in zip(edges_start, edges_end):
        edge = b - a
        rel = points_2d - a
        cross = edge[0] * rel[:, 1] - edge[1] * rel[:, 0]
        inside &= cross >= -tolerance
    return inside


def extract_prism(cloud: PointCloud, hull: ConvexHull, band: HeightBand) -> np.ndarray:
    """
    Indices of points above the hull footprint whose height falls inside the band.
    """
    if len(cloud) == 0 or len(hull) < 3:
        return np.zeros(0, dtype=int)

    heights = hull.plane.signed_distance(cloud.xyz)
    in_band = band.contains(heights)

    candidates = np.flatnonzero(in_band)
    if len(candidates) == 0:
        return candidates

    projected = hull.plane.project(cloud.xyz[candidates])
    in_footprint = inside_convex_polygon(hull.to_2d(projected), hull.polygon_2d)
    return candidates[in_footprint]
