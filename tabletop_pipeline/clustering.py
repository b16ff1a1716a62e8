import numpy as np
from scipy.spatial import KDTree
from dataclasses import dataclass
from typing import Optional, List
from collections import deque


@dataclass
class ClusterResult:
    """
    All clusters of one frame. labels[i] is the discovery index of the
    cluster point i belongs to, or -1 when it was dropped.
    """
    labels: np.ndarray
    num_clusters: int
    cluster_sizes: List[int]
    noise_count: int

    def indices(self, cluster_id: int) -> np.ndarray:
        if not 0 <= cluster_id < self.num_clusters:
            raise IndexError(f"No cluster {cluster_id}, have {self.num_clusters}")
        return np.flatnonzero(self.labels == cluster_id)

    def clusters(self) -> List[np.ndarray]:
        return [self.indices(cid) for cid in range(self.num_clusters)]


def euclidean_cluster(
    points: np.ndarray,
    tolerance: float = 0.03,
    min_cluster_size: int = 100,
    max_cluster_size: Optional[int] = None,
) -> ClusterResult:
    """
    Connected components under "neighbor within tolerance" using a KDTree.
    Clusters are numbered in the order their first point appears in the input.
    """
    if len(points) == 0:
        return ClusterResult(
            labels=np.array([], dtype=int),
            num_clusters=0,
            cluster_sizes=[],
            noise_count=0,
        )

    xyz = points[:, :3]
    n = len(xyz)
    tree = KDTree(xyz)
    neighborhoods = tree.query_ball_point(xyz, tolerance)

    visited = np.zeros(n, dtype=bool)
    labels = np.full(n, -1, dtype=int)
    cluster_sizes = []
    cluster_id = 0

    for i in range(n):
        if visited[i]:
            continue

        members = [i]
        visited[i] = True
        queue = deque([i])

        while queue:
            j = queue.popleft()
            for neighbor in neighborhoods[j]:
                if not visited[neighbor]:
                    visited[neighbor] = True
                    members.append(neighbor)
                    queue.append(neighbor)

        size = len(members)
        if size < min_cluster_size:
            continue
        if max_cluster_size is not None and size > max_cluster_size:
            continue

        labels[members] = cluster_id
        cluster_sizes.append(size)
        cluster_id += 1

    return ClusterResult(
        labels=labels,
        num_clusters=cluster_id,
        cluster_sizes=cluster_sizes,
        noise_count=int((labels == -1).sum()),
    )
