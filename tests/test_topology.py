"""Tests for the boundary topology directory (pybms/topology.py)."""

import numpy as np
import pytest

from pybms.boundary_point import BoundaryPoint, FeatureEdgePoint
from pybms.config import ResolverConfig
from pybms.geometry import DegenerateGeometry, ProjectionMode
from pybms.topology import BoundaryTopology, UnknownLabel, classify_feature_points

SQUARE_POINTS = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
    ]
)
SQUARE_TRIANGLES = np.array([[0, 1, 2], [0, 2, 3]])

# Two facets folded at a right angle along edge (0, 1)
FOLD_POINTS = np.array(
    [
        [0.0, 0.0, 0.0],  # 0
        [1.0, 0.0, 0.0],  # 1
        [0.0, 1.0, 0.0],  # 2
        [0.0, 0.0, 1.0],  # 3
    ]
)
FOLD_TRIANGLES = np.array([[0, 1, 2], [0, 1, 3]])


class TestLookups:
    """Tests for coordinate and facet lookups."""

    def test_coordinate_of(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        np.testing.assert_array_equal(topo.coordinate_of(2), [1.0, 1.0, 0.0])

    def test_facet_set_owned_by(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        assert topo.facet_set_owned_by(0) == frozenset(
            {frozenset({0, 1, 2}), frozenset({0, 2, 3})}
        )
        assert topo.facet_set_owned_by(1) == frozenset({frozenset({0, 1, 2})})

    def test_labels(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        assert topo.labels == [0, 1, 2, 3]

    @pytest.mark.parametrize("label", [-1, 4, 100])
    def test_unknown_label_raises(self, label):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        with pytest.raises(UnknownLabel) as excinfo:
            topo.coordinate_of(label)
        assert excinfo.value.label == label
        with pytest.raises(UnknownLabel):
            topo.facet_set_owned_by(label)
        with pytest.raises(UnknownLabel):
            topo.point_topology(label)

    def test_unknown_label_is_key_error(self):
        assert issubclass(UnknownLabel, KeyError)
        assert str(UnknownLabel(7)) == "Unknown boundary point label 7"

    def test_point_not_on_boundary_is_unknown(self):
        """Points not used by any facet are not boundary points."""
        points = np.vstack([SQUARE_POINTS, [[0.5, 0.5, -1.0]]])
        topo = BoundaryTopology.from_surface(points, SQUARE_TRIANGLES)
        with pytest.raises(UnknownLabel):
            topo.coordinate_of(4)

    def test_numpy_labels_are_accepted(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        np.testing.assert_array_equal(topo.coordinate_of(np.int64(1)), [1.0, 0.0, 0.0])


class TestSetCoordinate:
    """Tests for moving points between smoothing passes."""

    def test_set_coordinate(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        topo.set_coordinate(2, (0.9, 0.9, 0.0))
        np.testing.assert_array_equal(topo.coordinate_of(2), [0.9, 0.9, 0.0])
        np.testing.assert_array_equal(
            topo.point_topology(2).original_coordinate(), [1.0, 1.0, 0.0]
        )

    def test_coordinate_of_is_read_only(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        with pytest.raises(ValueError):
            topo.coordinate_of(2)[0] = 5.0
        with pytest.raises(ValueError):
            topo.point_topology(0).initial_point_of(2)[1] = 5.0
        np.testing.assert_array_equal(topo.coordinate_of(2), [1.0, 1.0, 0.0])

    def test_set_coordinate_after_read(self):
        """Reading a coordinate does not lock it against set_coordinate."""
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        topo.coordinate_of(2)
        topo.set_coordinate(2, (0.9, 0.9, 0.0))
        np.testing.assert_array_equal(topo.coordinate_of(2), [0.9, 0.9, 0.0])

    def test_set_coordinate_unknown_label(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        with pytest.raises(UnknownLabel):
            topo.set_coordinate(10, (0.0, 0.0, 0.0))

    def test_input_points_are_copied(self):
        points = SQUARE_POINTS.copy()
        topo = BoundaryTopology.from_surface(points, SQUARE_TRIANGLES)
        points[0] = [5.0, 5.0, 5.0]
        np.testing.assert_array_equal(topo.coordinate_of(0), [0.0, 0.0, 0.0])


class TestFromSurface:
    """Tests for building the topology from a triangulated surface."""

    def test_one_boundary_point_per_vertex(self):
        topo = BoundaryTopology.from_surface(SQUARE_POINTS, SQUARE_TRIANGLES)
        for label in topo.labels:
            point = topo.point_topology(label)
            assert isinstance(point, BoundaryPoint)
            assert point.label == label
            assert point.topology is topo
            np.testing.assert_array_equal(
                point.original_coordinate(), SQUARE_POINTS[label]
            )

    def test_config_is_shared(self):
        config = ResolverConfig(projection=ProjectionMode.strict)
        topo = BoundaryTopology.from_surface(
            SQUARE_POINTS, SQUARE_TRIANGLES, config=config
        )
        assert topo.config is config
        assert all(topo.point_topology(v).config is config for v in topo.labels)

    def test_explicit_feature_points(self):
        topo = BoundaryTopology.from_surface(
            SQUARE_POINTS, SQUARE_TRIANGLES, feature_points={1, 3}
        )
        assert isinstance(topo.point_topology(1), FeatureEdgePoint)
        assert isinstance(topo.point_topology(3), FeatureEdgePoint)
        assert isinstance(topo.point_topology(0), BoundaryPoint)

    def test_feature_angle_classification(self):
        topo = BoundaryTopology.from_surface(
            FOLD_POINTS, FOLD_TRIANGLES, feature_angle_deg=45.0
        )
        assert isinstance(topo.point_topology(0), FeatureEdgePoint)
        assert isinstance(topo.point_topology(1), FeatureEdgePoint)
        assert isinstance(topo.point_topology(2), BoundaryPoint)
        assert isinstance(topo.point_topology(3), BoundaryPoint)

    def test_degenerate_facet_raises(self):
        points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        with pytest.raises(DegenerateGeometry):
            BoundaryTopology.from_surface(points, [[0, 1, 2]])

    def test_repeated_label_raises(self):
        with pytest.raises(ValueError, match="3 distinct labels"):
            BoundaryTopology.from_surface(SQUARE_POINTS, [[0, 1, 1]])

    def test_out_of_range_label_raises(self):
        with pytest.raises(UnknownLabel):
            BoundaryTopology.from_surface(SQUARE_POINTS, [[0, 1, 9]])

    def test_bad_shapes_raise(self):
        with pytest.raises(ValueError, match="points of shape"):
            BoundaryTopology.from_surface(SQUARE_POINTS[:, :2], SQUARE_TRIANGLES)
        with pytest.raises(ValueError, match="triangles of shape"):
            BoundaryTopology.from_surface(SQUARE_POINTS, [0, 1, 2])


class TestClassifyFeaturePoints:
    """Tests for classify_feature_points."""

    def test_flat_surface_has_no_feature_points(self):
        assert classify_feature_points(SQUARE_POINTS, SQUARE_TRIANGLES, 10.0) == set()

    def test_right_angle_fold(self):
        assert classify_feature_points(FOLD_POINTS, FOLD_TRIANGLES, 45.0) == {0, 1}

    def test_threshold_is_exclusive(self):
        assert classify_feature_points(FOLD_POINTS, FOLD_TRIANGLES, 90.0) == set()

    def test_open_boundary_edges_are_not_features(self):
        """Edges used by a single facet are never feature edges."""
        points = FOLD_POINTS[:3]
        assert classify_feature_points(points, np.array([[0, 1, 2]]), 0.0) == set()


class TestSmallScale:
    """Tolerances follow the size of the facets."""

    def test_tiny_surface_builds_and_resolves(self):
        scale = 1e-7
        topo = BoundaryTopology.from_surface(SQUARE_POINTS * scale, SQUARE_TRIANGLES)
        guess = np.array([0.7, 0.1, 0.0]) * scale
        np.testing.assert_allclose(
            topo.point_topology(0).resolve(guess, 0), guess, rtol=1e-9, atol=0.0
        )
