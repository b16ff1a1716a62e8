import numpy as np
import open3d as o3d
from dataclasses import dataclass, field


@dataclass
class PointCloud:
    """
    Ordered set of colored points sharing one sensor timestamp.
    """
    xyz: np.ndarray
    rgb: np.ndarray = None
    stamp: float = 0.0
    frame_id: str = ""

    def __post_init__(self):
        self.xyz = np.asarray(self.xyz, dtype=np.float64).reshape(-1, 3)
        if self.rgb is None:
            self.rgb = np.zeros((len(self.xyz), 3), dtype=np.uint8)
        else:
            self.rgb = np.asarray(self.rgb, dtype=np.uint8).reshape(-1, 3)
        if len(self.rgb) != len(self.xyz):
            raise ValueError(f"xyz/rgb size mismatch: {len(self.xyz)} vs {len(self.rgb)}")

    def __len__(self) -> int:
        return len(self.xyz)

    def select(self, indices: np.ndarray) -> "PointCloud":
        """
        Copy the given points (mask or index array) into a new cloud with the same header.
        """
        indices = np.asarray(indices)
        return PointCloud(
            xyz=self.xyz[indices].copy(),
            rgb=self.rgb[indices].copy(),
            stamp=self.stamp,
            frame_id=self.frame_id,
        )

    @classmethod
    def empty(cls, stamp: float = 0.0, frame_id: str = "") -> "PointCloud":
        return cls(xyz=np.zeros((0, 3)), stamp=stamp, frame_id=frame_id)

    def to_open3d(self) -> o3d.geometry.PointCloud:
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(self.xyz)
        pcd.colors = o3d.utility.Vector3dVector(self.rgb.astype(np.float64) / 255.0)
        return pcd

    @classmethod
    def from_open3d(cls, pcd: o3d.geometry.PointCloud, stamp: float = 0.0, frame_id: str = "") -> "PointCloud":
        xyz = np.asarray(pcd.points, dtype=np.float64)
        rgb = None
        if pcd.has_colors():
            # open3d keeps colors as floats in [0, 1]
            rgb = np.round(np.clip(np.asarray(pcd.colors), 0.0, 1.0) * 255.0).astype(np.uint8)
        return cls(xyz=xyz, rgb=rgb, stamp=stamp, frame_id=frame_id)


@dataclass
class NormalCloud:
    """
    Per-point normals, index-aligned with the cloud they were estimated from.
    Rows with valid == False had too few neighbors and hold NaN.
    """
    normals: np.ndarray
    curvature: np.ndarray
    valid: np.ndarray = field(default=None)

    def __post_init__(self):
        if self.valid is None:
            self.valid = np.all(np.isfinite(self.normals), axis=1)

    def __len__(self) -> int:
        return len(self.normals)

    @property
    def gap_count(self) -> int:
        return int((~self.valid).sum())
