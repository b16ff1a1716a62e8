import logging
from typing import Optional, Sequence

import numpy as np
from scipy.spatial import KDTree

from tabletop_pipeline.cloud import PointCloud, NormalCloud

logger = logging.getLogger(__name__)


def range_filter(cloud: PointCloud, z_min: float = 0.0, z_max: float = 1.5) -> PointCloud:
    """
    Keep points whose z lies in [z_min, z_max]. Non-finite points are dropped.
    """
    xyz = cloud.xyz
    keep_mask = np.all(np.isfinite(xyz), axis=1)
    keep_mask &= (xyz[:, 2] >= z_min) & (xyz[:, 2] <= z_max)
    return cloud.select(keep_mask)


def voxel_downsample(cloud: PointCloud, voxel_size: float = 0.01) -> PointCloud:
    """
    Downsample point cloud using voxel grid filtering.
    """
    if len(cloud) == 0:
        return cloud.select(np.zeros(0, dtype=int))

    xyz = cloud.xyz

    # Compute voxel indices for each point
    # Then shift indices to handle negative values
    # Then create unique hash for each voxel
    # Find unique voxels and compute centroids
    voxel_indices = np.floor(xyz / voxel_size).astype(np.int64)

    min_indices = voxel_indices.min(axis=0)
    shifted_indices = voxel_indices - min_indices

    max_dim = shifted_indices.max(axis=0) + 1
    voxel_hash = (shifted_indices[:, 0] * (max_dim[1] * max_dim[2]) + shifted_indices[:, 1] * max_dim[2] + shifted_indices[:, 2])

    unique_hashes, inverse_indices = np.unique(voxel_hash, return_inverse=True)
    inverse_indices = inverse_indices.reshape(-1)
    num_voxels = len(unique_hashes)

    counts = np.bincount(inverse_indices)
    centroids = np.zeros((num_voxels, 3))
    colors = np.zeros((num_voxels, 3))

    for dim in range(3):
        centroids[:, dim] = np.bincount(inverse_indices, weights=xyz[:, dim]) / counts
        colors[:, dim] = np.bincount(inverse_indices, weights=cloud.rgb[:, dim].astype(np.float64)) / counts

    return PointCloud(
        xyz=centroids,
        rgb=np.round(colors).astype(np.uint8),
        stamp=cloud.stamp,
        frame_id=cloud.frame_id,
    )


def estimate_normals(
    cloud: PointCloud,
    k: int = 10,
    search_radius: Optional[float] = None,
    viewpoint: Sequence[float] = (0.0, 0.0, 0.0),
) -> NormalCloud:
    """
    PCA normals over the k nearest neighbors (query point included), flipped towards the viewpoint.
    Points with fewer than k neighbors inside search_radius get no normal.
    """
    n = len(cloud)
    normals = np.full((n, 3), np.nan)
    curvature = np.full(n, np.nan)
    valid = np.zeros(n, dtype=bool)

    if n < k or k < 3:
        if n > 0:
            logger.debug("Normal estimation skipped: %d points for k=%d", n, k)
        return NormalCloud(normals=normals, curvature=curvature, valid=valid)

    xyz = cloud.xyz
    tree = KDTree(xyz)
    upper = np.inf if search_radius is None else search_radius
    _, neighbor_idx = tree.query(xyz, k=k, distance_upper_bound=upper)
    neighbor_idx = neighbor_idx.reshape(n, k)

    # KDTree pads missing neighbors with index n
    valid = np.all(neighbor_idx < n, axis=1)
    rows = np.flatnonzero(valid)
    if len(rows) > 0:
        neighborhoods = xyz[neighbor_idx[rows]]
        centered = neighborhoods - neighborhoods.mean(axis=1, keepdims=True)
        covariance = np.einsum("nki,nkj->nij", centered, centered) / k
        eigenvalues, eigenvectors = np.linalg.eigh(covariance)

        local_normals = eigenvectors[:, :, 0]
        to_viewpoint = np.asarray(viewpoint, dtype=np.float64) - xyz[rows]
        flip = np.einsum("ni,ni->n", local_normals, to_viewpoint) < 0
        local_normals[flip] *= -1.0

        total = eigenvalues.sum(axis=1)
        local_curvature = np.divide(eigenvalues[:, 0], total, out=np.zeros_like(total), where=total > 0)

        normals[rows] = local_normals
        curvature[rows] = local_curvature

    gaps = n - len(rows)
    if gaps:
        logger.debug("%d of %d points lack %d neighbors for normal estimation", gaps, n, k)

    return NormalCloud(normals=normals, curvature=curvature, valid=valid)
