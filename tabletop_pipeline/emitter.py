"""Cluster selection and hand-off of object clouds to publish and persistence sinks."""

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Union

import open3d as o3d

from tabletop_pipeline.cloud import PointCloud
from tabletop_pipeline.clustering import ClusterResult
from tabletop_pipeline.errors import InsufficientClusters
from tabletop_pipeline.hull import ConvexHull

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish_hull(self, hull: ConvexHull, stamp: float) -> None: ...

    def publish_object(self, obj: PointCloud) -> None: ...


class ObjectWriter(Protocol):
    def write(self, name: str, obj: PointCloud) -> Path: ...


class LoggingPublisher:
    """Publish sink that only reports what it receives."""

    def publish_hull(self, hull: ConvexHull, stamp: float) -> None:
        logger.info("Hull with %d vertices, area %.4f m^2 (stamp %.3f)", len(hull), hull.area, stamp)

    def publish_object(self, obj: PointCloud) -> None:
        logger.info("Object cloud with %d points (stamp %.3f)", len(obj), obj.stamp)


class CollectingPublisher:
    """Publish sink that keeps everything in memory, for the UI and tests."""

    def __init__(self):
        self.hulls: List[ConvexHull] = []
        self.objects: List[PointCloud] = []

    def publish_hull(self, hull: ConvexHull, stamp: float) -> None:
        self.hulls.append(hull)

    def publish_object(self, obj: PointCloud) -> None:
        self.objects.append(obj)


def write_pcd(path: Union[str, Path], cloud: PointCloud) -> Path:
    """
    Write a binary PCD file (x y z rgb) through open3d.
    """
    path = Path(path)
    if len(cloud) == 0:
        raise ValueError(f"Refusing to write empty point cloud: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    if not o3d.io.write_point_cloud(str(path), cloud.to_open3d(), write_ascii=False):
        raise IOError(f"Failed to write point cloud to {path}")
    return path


class PcdWriter:
    """Persistence sink writing each object as <output_dir>/<name>.pcd."""

    def __init__(self, output_dir: Union[str, Path] = "."):
        self.output_dir = Path(output_dir)

    def write(self, name: str, obj: PointCloud) -> Path:
        path = self.output_dir / f"{name}.pcd"
        logger.info("Saving cluster to: %s", path)
        return write_pcd(path, obj)


def object_file_name(object_name: str, index: int) -> str:
    return f"{object_name}_{index:04d}"


def select_clusters(result: ClusterResult, nr_cluster: int, min_size: int = 0) -> List[int]:
    """
    First nr_cluster clusters in discovery order; fewer than that fails the frame.
    """
    if result.num_clusters < nr_cluster:
        raise InsufficientClusters(result.num_clusters, nr_cluster, min_size)
    return list(range(nr_cluster))


def emit_objects(
    objects_cloud: PointCloud,
    cluster_ids: List[int],
    result: ClusterResult,
    publisher: Optional[Publisher] = None,
    writer: Optional[ObjectWriter] = None,
    object_name: str = "object",
) -> List[PointCloud]:
    """
    Materialize one cloud per selected cluster, publish it and optionally persist it.
    """
    emitted = []
    for i, cluster_id in enumerate(cluster_ids):
        obj = objects_cloud.select(result.indices(cluster_id))
        if writer is not None:
            writer.write(object_file_name(object_name, i), obj)
        if publisher is not None:
            publisher.publish_object(obj)
        emitted.append(obj)
    logger.info("Published %d clusters.", len(emitted))
    return emitted
