class PipelineError(RuntimeError):
    """Base class for errors that abandon a single frame."""


class InsufficientTableInliers(PipelineError):
    def __init__(self, inlier_count: int, min_inliers: int):
        self.inlier_count = inlier_count
        self.min_inliers = min_inliers
        super().__init__(f"Table has too few inliers: {inlier_count} (need more than {min_inliers})")


class DegenerateHull(PipelineError):
    """Projected table inliers do not span a polygon."""


class InsufficientClusters(PipelineError):
    def __init__(self, found: int, required: int, min_size: int):
        self.found = found
        self.required = required
        self.min_size = min_size
        super().__init__(f"Only {found} clusters found with at least {min_size} points, need {required}")


class InvocationError(Exception):
    """Required startup argument is missing."""
