"""Synthetic depth-sensor frames: a flat table seen from above with box-shaped objects on it.

The sensor looks along +z, so the table is the plane z = table_z and an object
standing h meters on the table occupies z = table_z - h.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from tabletop_pipeline.cloud import PointCloud

TABLE_LABEL = -1
BACKGROUND_LABEL = -2

DEFAULT_BLOB_CENTERS = (
    (-0.25, -0.2),
    (0.25, -0.2),
    (-0.25, 0.2),
    (0.25, 0.2),
)

BLOB_COLORS = np.array([
    [230, 25, 75],
    [60, 180, 75],
    [255, 225, 25],
    [67, 99, 216],
    [245, 130, 49],
    [145, 30, 180],
], dtype=np.uint8)


def table_points(
    n_x: int = 80,
    n_y: int = 50,
    extent: Tuple[float, float] = (1.2, 0.8),
    table_z: float = 0.9,
    noise: float = 0.0005,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Regular grid on the table plane with a little depth noise."""
    rng = rng or np.random.default_rng()
    xs = np.linspace(-extent[0] / 2, extent[0] / 2, n_x)
    ys = np.linspace(-extent[1] / 2, extent[1] / 2, n_y)
    grid_x, grid_y = np.meshgrid(xs, ys, indexing="ij")
    z = np.full(grid_x.size, table_z) + rng.uniform(-noise, noise, grid_x.size)
    return np.column_stack((grid_x.ravel(), grid_y.ravel(), z))


def blob_points(
    center_xy: Sequence[float],
    base_height: float = 0.05,
    shape: Tuple[int, int, int] = (5, 5, 6),
    spacing: float = 0.015,
    table_z: float = 0.9,
    noise: float = 0.001,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Jittered lattice box standing base_height above the table."""
    rng = rng or np.random.default_rng()
    axes = [np.arange(n) * spacing for n in shape]
    gx, gy, gh = np.meshgrid(*axes, indexing="ij")
    x = center_xy[0] - axes[0][-1] / 2 + gx.ravel()
    y = center_xy[1] - axes[1][-1] / 2 + gy.ravel()
    heights = base_height + gh.ravel()
    points = np.column_stack((x, y, table_z - heights))
    return points + rng.uniform(-noise, noise, points.shape)


def make_tabletop_frame(
    n_blobs: int = 3,
    blob_centers: Sequence[Sequence[float]] = DEFAULT_BLOB_CENTERS,
    blob_shape: Tuple[int, int, int] = (5, 5, 6),
    table_z: float = 0.9,
    n_background: int = 550,
    stamp: float = 0.0,
    seed: Optional[int] = 0,
) -> Tuple[PointCloud, np.ndarray]:
    """
    Build one frame and the ground-truth label of each point
    (TABLE_LABEL, BACKGROUND_LABEL, or the blob number).
    Background points lie beyond the default range filter.
    """
    if n_blobs > len(blob_centers):
        raise ValueError(f"Only {len(blob_centers)} blob centers for {n_blobs} blobs")
    rng = np.random.default_rng(seed)

    parts = [table_points(table_z=table_z, rng=rng)]
    labels = [np.full(len(parts[0]), TABLE_LABEL)]
    colors = [np.full((len(parts[0]), 3), 160, dtype=np.uint8)]

    for i in range(n_blobs):
        blob = blob_points(blob_centers[i], shape=blob_shape, table_z=table_z, rng=rng)
        parts.append(blob)
        labels.append(np.full(len(blob), i))
        colors.append(np.tile(BLOB_COLORS[i % len(BLOB_COLORS)], (len(blob), 1)))

    if n_background > 0:
        wall = np.column_stack((
            rng.uniform(-1.5, 1.5, n_background),
            rng.uniform(-1.0, 1.0, n_background),
            rng.uniform(2.0, 3.0, n_background),
        ))
        parts.append(wall)
        labels.append(np.full(n_background, BACKGROUND_LABEL))
        colors.append(np.full((n_background, 3), 90, dtype=np.uint8))

    cloud = PointCloud(
        xyz=np.vstack(parts),
        rgb=np.vstack(colors),
        stamp=stamp,
        frame_id="synthetic",
    )
    return cloud, np.concatenate(labels)


def make_noise_frame(n_points: int = 300, stamp: float = 0.0, seed: Optional[int] = 0) -> PointCloud:
    """Sparse scan with no dominant plane."""
    rng = np.random.default_rng(seed)
    xyz = np.column_stack((
        rng.uniform(-1.0, 1.0, n_points),
        rng.uniform(-1.0, 1.0, n_points),
        rng.uniform(0.2, 1.4, n_points),
    ))
    rgb = rng.integers(0, 256, (n_points, 3), dtype=np.uint8)
    return PointCloud(xyz=xyz, rgb=rgb, stamp=stamp, frame_id="noise")
