import logging
import numpy as np
import open3d as o3d
from pathlib import Path
from typing import Iterable, Iterator, List, Union

from tabletop_pipeline.cloud import PointCloud

logger = logging.getLogger(__name__)

FRAME_SUFFIXES = (".pcd", ".txt", ".npy")


def load_pcd(file_path: Union[str, Path], stamp: float = 0.0) -> PointCloud:
    """
    Load an ascii or binary PCD file with at least x y z fields (rgb optional).
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    pcd = o3d.io.read_point_cloud(str(file_path), format="pcd")
    if pcd.is_empty():
        raise ValueError(f"Failed to load point cloud from {file_path}")
    return PointCloud.from_open3d(pcd, stamp=stamp, frame_id=file_path.stem)


def load_txt(file_path: Union[str, Path], stamp: float = 0.0) -> PointCloud:
    """
    Load a whitespace separated point cloud: x y z [r g b], colors in 0..255.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    points = np.loadtxt(file_path, dtype=np.float64, ndmin=2)
    if points.size == 0:
        return PointCloud.empty(stamp=stamp, frame_id=file_path.stem)
    if points.shape[1] < 3:
        raise ValueError(f"Expected at least 3 columns in {file_path}, got {points.shape[1]}")
    rgb = points[:, 3:6] if points.shape[1] >= 6 else None
    return PointCloud(xyz=points[:, :3], rgb=rgb, stamp=stamp, frame_id=file_path.stem)


def load_npy(file_path: Union[str, Path], stamp: float = 0.0) -> PointCloud:
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    points = np.load(file_path)
    rgb = points[:, 3:6] if points.ndim == 2 and points.shape[1] >= 6 else None
    return PointCloud(xyz=points[:, :3], rgb=rgb, stamp=stamp, frame_id=file_path.stem)


def load_frame(file_path: Union[str, Path], stamp: float = 0.0) -> PointCloud:
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix == ".pcd":
        return load_pcd(file_path, stamp=stamp)
    if suffix == ".txt":
        return load_txt(file_path, stamp=stamp)
    if suffix == ".npy":
        return load_npy(file_path, stamp=stamp)
    raise ValueError(f"Unsupported point cloud format: {file_path}")


def discover_frames(paths: Iterable[Union[str, Path]]) -> List[Path]:
    """
    Expand files and directories into a sorted list of frame files.
    """
    frames = []
    for path in paths:
        path = Path(path)
        if path.is_dir():
            frames.extend(sorted(p for p in path.iterdir() if p.suffix.lower() in FRAME_SUFFIXES))
        elif path.exists():
            frames.append(path)
        else:
            raise FileNotFoundError(f"Point cloud file not found: {path}")
    return frames


def iter_frames(frame_paths: Iterable[Path]) -> Iterator[PointCloud]:
    """
    Load frames lazily, stamping each with its file modification time.
    Frames that cannot be read are logged and skipped.
    """
    for frame_path in frame_paths:
        try:
            cloud = load_frame(frame_path, stamp=frame_path.stat().st_mtime)
        except (ValueError, OSError) as exc:
            logger.error("Skipping frame %s: %s", frame_path, exc)
            continue
        yield cloud
