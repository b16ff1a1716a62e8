from dataclasses import dataclass

import numpy as np
from scipy.spatial import ConvexHull as QhullHull
from scipy.spatial import QhullError

from tabletop_pipeline.cloud import PointCloud
from tabletop_pipeline.errors import DegenerateHull
from tabletop_pipeline.ransac import PlaneModel


@dataclass
class ConvexHull:
    """
    Counter-clockwise boundary polygon of the projected table inliers.
    origin, u and v span the plane; to_2d maps 3D points into that basis.
    """
    vertices: np.ndarray
    plane: PlaneModel
    origin: np.ndarray
    u: np.ndarray
    v: np.ndarray

    def __len__(self) -> int:
        return len(self.vertices)

    def to_2d(self, points: np.ndarray) -> np.ndarray:
        local = points[:, :3] - self.origin
        return np.column_stack((local @ self.u, local @ self.v))

    @property
    def polygon_2d(self) -> np.ndarray:
        return self.to_2d(self.vertices)

    @property
    def area(self) -> float:
        return polygon_area(self.vertices, self.plane.normal)


def plane_basis(normal: np.ndarray):
    """
    Two orthonormal in-plane axes (u, v) with u x v = normal.
    """
    if abs(normal[2]) < 0.9:
        u = np.cross(normal, np.array([0.0, 0.0, 1.0]))
    else:
        u = np.cross(normal, np.array([1.0, 0.0, 0.0]))
    u = u / np.linalg.norm(u)
    v = np.cross(normal, u)
    return u, v


def project_inliers(cloud: PointCloud, inliers: np.ndarray, plane: PlaneModel) -> PointCloud:
    """
    Orthogonally project the inlier points onto the plane.
    """
    projected = cloud.select(inliers)
    projected.xyz = plane.project(projected.xyz)
    return projected


def build_hull(projected: PointCloud, plane: PlaneModel) -> ConvexHull:
    """
    Convex boundary of coplanar points, computed in the plane's own 2D basis.
    """
    points = projected.xyz
    if len(points) < 3:
        raise DegenerateHull(f"Need at least 3 points for a hull, got {len(points)}")

    u, v = plane_basis(plane.normal)
    origin = points.mean(axis=0)
    local = points - origin
    coords_2d = np.column_stack((local @ u, local @ v))

    try:
        hull = QhullHull(coords_2d)
    except QhullError as exc:
        raise DegenerateHull(f"Projected inliers are degenerate: {exc}") from exc

    # qhull returns 2D hull vertices in counter-clockwise order
    vertices = points[hull.vertices]
    return ConvexHull(vertices=vertices, plane=plane, origin=origin, u=u, v=v)


def polygon_area(vertices: np.ndarray, normal: np.ndarray) -> float:
    """
    Area of a planar polygon: project onto the coordinate plane that drops the
    largest normal component, shoelace sum, then undo the projection tilt.
    """
    if len(vertices) < 3:
        return 0.0

    normal = np.asarray(normal, dtype=np.float64)
    k0 = int(np.argmax(np.abs(normal)))
    k1 = (k0 + 1) % 3
    k2 = (k0 + 2) % 3

    # cos(theta) between the polygon plane and the projection plane
    ct = abs(normal[k0]) / np.linalg.norm(normal)

    p_i = vertices[:, :3]
    p_j = np.roll(p_i, -1, axis=0)
    area = np.sum(p_i[:, k1] * p_j[:, k2] - p_i[:, k2] * p_j[:, k1])
    return float(abs(area) / (2 * ct))
