"""
Unit tests for prism extraction above the table hull.
"""

import unittest

import numpy as np

from tabletop_pipeline.cloud import PointCloud
from tabletop_pipeline.hull import build_hull
from tabletop_pipeline.prism import HeightBand, extract_prism, inside_convex_polygon
from tabletop_pipeline.ransac import PlaneModel


def square_hull(half=0.5, table_z=0.9):
    plane = PlaneModel(normal=np.array([0.0, 0.0, -1.0]), d=table_z)
    corners = np.array([[-half, -half, table_z], [half, -half, table_z], [half, half, table_z], [-half, half, table_z]])
    return build_hull(PointCloud(xyz=corners), plane)


class TestInsidePolygon(unittest.TestCase):

    def test_square(self):
        square = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
        points = np.array([[0.5, 0.5], [1.5, 0.5], [1.0, 0.5], [-0.1, -0.1]])
        np.testing.assert_array_equal(inside_convex_polygon(points, square), [True, False, True, False])


class TestExtractPrism(unittest.TestCase):

    def setUp(self):
        self.hull = square_hull()
        self.band = HeightBand(0.01, 0.4)

    def test_selects_points_above_footprint(self):
        cloud = PointCloud(xyz=[
            [0.0, 0.0, 0.8],    # 0.1 above, inside
            [0.0, 0.0, 0.9],    # on the table
            [0.0, 0.0, 1.0],    # below the table
            [0.7, 0.0, 0.8],    # outside footprint
            [0.2, -0.3, 0.6],   # 0.3 above, inside
            [0.0, 0.0, 0.45],   # 0.45 above, too high
        ])
        np.testing.assert_array_equal(extract_prism(cloud, self.hull, self.band), [0, 4])

    def test_band_is_half_open(self):
        cloud = PointCloud(xyz=[[0.0, 0.0, 0.9 - 0.01], [0.0, 0.0, 0.9 - 0.4]])
        band = HeightBand(0.01, 0.4)
        heights = self.hull.plane.signed_distance(cloud.xyz)
        expected = np.flatnonzero((heights >= 0.01) & (heights < 0.4))
        np.testing.assert_array_equal(extract_prism(cloud, self.hull, band), expected)

    def test_idempotent(self):
        rng = np.random.default_rng(0)
        cloud = PointCloud(xyz=rng.uniform([-1, -1, 0.3], [1, 1, 1.2], (2000, 3)))
        first = extract_prism(cloud, self.hull, self.band)
        self.assertGreater(len(first), 0)
        again = extract_prism(cloud.select(first), self.hull, self.band)
        np.testing.assert_array_equal(again, np.arange(len(first)))
        np.testing.assert_array_equal(first[again], first)

    def test_empty_result_is_valid(self):
        cloud = PointCloud(xyz=[[3.0, 3.0, 0.8]])
        self.assertEqual(len(extract_prism(cloud, self.hull, self.band)), 0)
        self.assertEqual(len(extract_prism(PointCloud.empty(), self.hull, self.band)), 0)


if __name__ == "__main__":
    unittest.main()
