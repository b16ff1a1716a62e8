"""
Tabletop Pipeline: table plane detection and object cluster extraction from depth sensor frames.
"""

from .cloud import PointCloud, NormalCloud
from .data_loader import load_frame, load_pcd
from .preprocessing import range_filter, voxel_downsample, estimate_normals
from .ransac import segment_plane, PlaneModel, PlaneFit
from .hull import build_hull, project_inliers, polygon_area, ConvexHull
from .prism import extract_prism, HeightBand
from .clustering import euclidean_cluster, ClusterResult
from .emitter import select_clusters, emit_objects, PcdWriter
from .pipeline import PipelineParams, FrameResult, FrameStatus, process_frame, run_stream

__version__ = "0.1.0"
