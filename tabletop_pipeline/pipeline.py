import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
import yaml

from tabletop_pipeline.cloud import PointCloud, NormalCloud
from tabletop_pipeline.clustering import ClusterResult, euclidean_cluster
from tabletop_pipeline.emitter import ObjectWriter, Publisher, emit_objects, select_clusters
from tabletop_pipeline.errors import PipelineError, InsufficientTableInliers, DegenerateHull, InsufficientClusters
from tabletop_pipeline.hull import ConvexHull, build_hull, project_inliers
from tabletop_pipeline.preprocessing import range_filter, voxel_downsample, estimate_normals
from tabletop_pipeline.prism import HeightBand, extract_prism
from tabletop_pipeline.ransac import PlaneModel, axis_from_tilt, segment_plane

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineParams:
    """Parameters for the tabletop object pipeline."""
    # Range filter / downsampling
    z_min_limit: float = 0.0
    z_max_limit: float = 1.5
    downsample: bool = False
    voxel_size: float = 0.01
    # Normals
    k: int = 10
    normal_search_radius: Optional[float] = None
    viewpoint: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    # RANSAC
    sac_distance: float = 0.03
    max_iter: int = 500
    normal_distance_weight: float = 0.1
    eps_angle: float = 15.0
    seg_prob: float = 0.99
    axis: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    head_tilt_angle: Optional[float] = None
    min_table_inliers: int = 100
    # Prism
    cluster_min_height: float = 0.01
    cluster_max_height: float = 0.4
    # Clustering
    object_cluster_tolerance: float = 0.03
    object_cluster_min_size: int = 100
    object_cluster_max_size: Optional[int] = None
    # Selection / output
    nr_cluster: int = 4
    save_to_files: bool = False
    object_name: str = "object"
    seed: Optional[int] = None

    def __post_init__(self):
        if self.z_min_limit > self.z_max_limit:
            raise ValueError(f"z_min_limit {self.z_min_limit} > z_max_limit {self.z_max_limit}")
        if self.cluster_min_height >= self.cluster_max_height:
            raise ValueError("cluster_min_height must be below cluster_max_height")
        if self.k < 3:
            raise ValueError(f"k must be at least 3, got {self.k}")
        if self.nr_cluster < 1:
            raise ValueError(f"nr_cluster must be positive, got {self.nr_cluster}")
        if not 0.0 < self.seg_prob < 1.0:
            raise ValueError(f"seg_prob must be in (0, 1), got {self.seg_prob}")
        for name in ("viewpoint", "axis"):
            object.__setattr__(self, name, tuple(float(c) for c in getattr(self, name)))

    @property
    def table_axis(self) -> np.ndarray:
        if self.head_tilt_angle is not None:
            return axis_from_tilt(self.head_tilt_angle)
        return np.asarray(self.axis, dtype=np.float64)

    @property
    def height_band(self) -> HeightBand:
        return HeightBand(self.cluster_min_height, self.cluster_max_height)

    def replace(self, **changes) -> "PipelineParams":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, values: dict) -> "PipelineParams":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown pipeline parameters: {', '.join(unknown)}")
        return cls(**values)


def load_params(path: Union[str, Path], **overrides) -> PipelineParams:
    """
    Read PipelineParams from a YAML mapping; keyword overrides win over the file.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as file:
        values = yaml.safe_load(file) or {}
    if not isinstance(values, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    values.update({key: value for key, value in overrides.items() if value is not None})
    return PipelineParams.from_dict(values)


class FrameStatus(Enum):
    EMITTED = "emitted"
    NO_TABLE = "no_table"
    DEGENERATE_HULL = "degenerate_hull"
    INSUFFICIENT_CLUSTERS = "insufficient_clusters"


@dataclass
class FrameResult:
    """Result of processing a single frame."""
    status: FrameStatus
    stamp: float
    raw_count: int

    # Filtering / normals
    filtered: PointCloud
    normals: Optional[NormalCloud] = None

    # Table
    plane_model: Optional[PlaneModel] = None
    table_inliers: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    hull: Optional[ConvexHull] = None

    # Objects
    object_indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    clusters: Optional[ClusterResult] = None
    objects: List[PointCloud] = field(default_factory=list)

    error: Optional[PipelineError] = None
    last_frame: bool = False

    @property
    def filtered_count(self) -> int:
        return len(self.filtered)

    @property
    def num_clusters(self) -> int:
        return 0 if self.clusters is None else self.clusters.num_clusters


def process_frame(
    cloud: PointCloud,
    params: PipelineParams,
    publisher: Optional[Publisher] = None,
    writer: Optional[ObjectWriter] = None,
    rng: Optional[np.random.Generator] = None,
) -> FrameResult:
    """
    Run the full pipeline on a single frame.
    """
    if params.save_to_files and writer is None:
        raise ValueError("save_to_files is set but no writer was given")
    logger.info("Received cloud: %d points, cloud time %.3f", len(cloud), cloud.stamp)
    if rng is None:
        rng = np.random.default_rng(params.seed)

    # Range filter
    filtered = range_filter(cloud, params.z_min_limit, params.z_max_limit)
    if params.downsample:
        filtered = voxel_downsample(filtered, params.voxel_size)

    result = FrameResult(
        status=FrameStatus.NO_TABLE,
        stamp=cloud.stamp,
        raw_count=len(cloud),
        filtered=filtered,
    )

    # Normals
    normals = estimate_normals(
        filtered,
        k=params.k,
        search_radius=params.normal_search_radius,
        viewpoint=params.viewpoint,
    )
    result.normals = normals

    try:
        # Table plane
        fit = segment_plane(
            filtered,
            normals,
            axis=params.table_axis,
            eps_angle=params.eps_angle,
            distance_threshold=params.sac_distance,
            normal_distance_weight=params.normal_distance_weight,
            max_iterations=params.max_iter,
            probability=params.seg_prob,
            viewpoint=params.viewpoint,
            rng=rng,
        )
        if fit.plane is not None:
            c = fit.plane.coefficients
            logger.info("Table model: [%f, %f, %f, %f] with %d inliers.", c[0], c[1], c[2], c[3], fit.inlier_count)
        if fit.plane is None or fit.inlier_count <= params.min_table_inliers:
            raise InsufficientTableInliers(fit.inlier_count, params.min_table_inliers)
        result.plane_model = fit.plane
        result.table_inliers = fit.inliers

        # Hull
        result.status = FrameStatus.DEGENERATE_HULL
        projected = project_inliers(filtered, fit.inliers, fit.plane)
        hull = build_hull(projected, fit.plane)
        result.hull = hull
        if publisher is not None:
            publisher.publish_hull(hull, cloud.stamp)

        # Objects above the table
        result.status = FrameStatus.INSUFFICIENT_CLUSTERS
        object_indices = extract_prism(filtered, hull, params.height_band)
        result.object_indices = object_indices
        logger.debug("Number of object point candidates: %d", len(object_indices))
        objects_cloud = filtered.select(object_indices)

        clusters = euclidean_cluster(
            objects_cloud.xyz,
            tolerance=params.object_cluster_tolerance,
            min_cluster_size=params.object_cluster_min_size,
            max_cluster_size=params.object_cluster_max_size,
        )
        result.clusters = clusters

        selected = select_clusters(clusters, params.nr_cluster, params.object_cluster_min_size)
    except (InsufficientTableInliers, DegenerateHull, InsufficientClusters) as exc:
        logger.error("%s", exc)
        result.error = exc
        return result

    result.objects = emit_objects(
        objects_cloud,
        selected,
        clusters,
        publisher=publisher,
        writer=writer if params.save_to_files else None,
        object_name=params.object_name,
    )
    result.status = FrameStatus.EMITTED
    # one-shot capture: stop after the first saved frame
    result.last_frame = params.save_to_files
    return result


def run_stream(
    frames: Iterable[PointCloud],
    params: PipelineParams,
    publisher: Optional[Publisher] = None,
    writer: Optional[ObjectWriter] = None,
) -> Iterator[FrameResult]:
    """
    Process frames one at a time, stopping after a one-shot capture.
    """
    rng = np.random.default_rng(params.seed)
    if params.save_to_files and writer is None:
        raise ValueError("save_to_files is set but no writer was given")
    for cloud in frames:
        result = process_frame(cloud, params, publisher=publisher, writer=writer, rng=rng)
        yield result
        if result.last_frame:
            logger.info("One-shot capture done, not accepting further frames")
            return
