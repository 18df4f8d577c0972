from collections import defaultdict
from dataclasses import dataclass, field
from typing import Self

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from pybms.boundary_point import BoundaryPoint, FeatureEdgePoint, PointTopology
from pybms.config import ResolverConfig
from pybms.geometry import (
    DegenerateGeometry,
    dihedral_angle,
    is_degenerate_triangle,
    triangle_normal,
)
from pybms.utils import FacetSet, Label, Vec3d, make_facet


class UnknownLabel(KeyError):
    def __init__(self, label: Label) -> None:
        super().__init__(f"Unknown boundary point label {label}")
        self.label = label

    def __str__(self) -> str:
        return str(self.args[0])


def classify_feature_points(
    points: NDArray[np.floating],
    triangles: NDArray[np.integer],
    feature_angle_deg: float,
) -> set[int]:
    """
    Find the vertices lying on feature edges of a triangulated surface.

    An edge shared by exactly two triangles is a feature edge when the angle
    between their planes exceeds ``feature_angle_deg``. Normals are compared
    without orientation, so the angle is in [0, 90].

    Parameters
    ----------
    points : NDArray[np.floating]
        Array of shape (n, 3) with vertex coordinates.
    triangles : NDArray[np.integer]
        Array of shape (m, 3) with vertex labels.
    feature_angle_deg : float
        Threshold angle in degrees.

    Returns
    -------
    set[int]
        Labels of the vertices touching at least one feature edge.
    """
    edge_to_triangles: dict[tuple[int, int], list[int]] = defaultdict(list)
    for tri_idx, tri in enumerate(triangles):
        for i in range(3):
            a, b = int(tri[i]), int(tri[(i + 1) % 3])
            edge_to_triangles[(min(a, b), max(a, b))].append(tri_idx)

    normals = [triangle_normal(*points[tri]) for tri in triangles]

    feature_points = set()
    for (a, b), tris in edge_to_triangles.items():
        if len(tris) != 2:
            continue
        angle = dihedral_angle(normals[tris[0]], normals[tris[1]])
        if angle > feature_angle_deg:
            logger.trace(f"Feature edge ({a}, {b}) with dihedral angle {angle:.2f}")
            feature_points.update((a, b))
    return feature_points


@dataclass
class BoundaryTopology:
    """
    Index of all boundary points of a mesh, answering coordinate and facet
    lookups by label.

    Coordinates are read-only while points are being resolved; move them
    between smoothing passes with ``set_coordinate``.
    """

    points: NDArray[np.floating]
    point_topologies: dict[int, PointTopology] = field(default_factory=dict)
    config: ResolverConfig = field(default_factory=ResolverConfig)

    @property
    def labels(self) -> list[int]:
        return sorted(self.point_topologies)

    def point_topology(self, label: Label) -> PointTopology:
        try:
            return self.point_topologies[int(label)]
        except KeyError:
            raise UnknownLabel(label) from None

    def coordinate_of(self, label: Label) -> NDArray[np.floating]:
        """Read-only view of the current coordinate of a boundary point."""
        self.point_topology(label)
        coord = self.points[int(label)]
        coord.flags.writeable = False
        return coord

    def facet_set_owned_by(self, label: Label) -> FacetSet:
        return self.point_topology(label).incident_facets()

    def set_coordinate(self, label: Label, point: Vec3d) -> None:
        self.point_topology(label)
        self.points[int(label)] = np.asarray(point, dtype=float)

    @classmethod
    def from_surface(
        cls,
        points: NDArray[np.floating],
        triangles: NDArray[np.integer],
        feature_points: set[int] | None = None,
        feature_angle_deg: float | None = None,
        config: ResolverConfig | None = None,
    ) -> Self:
        """
        Build the boundary topology of a triangulated surface.

        One point topology is created for every vertex used by a triangle:
        a FeatureEdgePoint for feature vertices, a BoundaryPoint otherwise.

        Parameters
        ----------
        points : NDArray[np.floating]
            Array of shape (n, 3). Copied.
        triangles : NDArray[np.integer]
            Array of shape (m, 3) with labels indexing ``points``.
        feature_points : set[int], optional
            Labels known to lie on feature edges.
        feature_angle_deg : float, optional
            If given, vertices found by ``classify_feature_points`` are added
            to the feature points.
        config : ResolverConfig, optional
            Shared by every point topology.

        Raises
        ------
        ValueError
            If a triangle repeats a label or the arrays have the wrong shape.
        UnknownLabel
            If a triangle references a label outside ``points``.
        DegenerateGeometry
            If a triangle has zero area.
        """
        points = np.array(points, dtype=float)
        triangles = np.asarray(triangles, dtype=int)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Expected points of shape (n, 3), got {points.shape}")
        if triangles.ndim != 2 or triangles.shape[1] != 3:
            raise ValueError(f"Expected triangles of shape (m, 3), got {triangles.shape}")

        incident: dict[int, set] = defaultdict(set)
        for tri in triangles:
            for label in tri:
                if not 0 <= label < len(points):
                    raise UnknownLabel(int(label))
            facet = make_facet(tri)
            if is_degenerate_triangle(*points[tri]):
                raise DegenerateGeometry(f"Facet {sorted(facet)} has zero area")
            for label in facet:
                incident[label].add(facet)

        feature_points = set(feature_points or ())
        if feature_angle_deg is not None:
            feature_points |= classify_feature_points(points, triangles, feature_angle_deg)

        topology = cls(points=points, config=config or ResolverConfig())
        for label in sorted(incident):
            point_cls = FeatureEdgePoint if label in feature_points else BoundaryPoint
            topology.point_topologies[label] = point_cls(
                label, incident[label], points[label], topology, topology.config
            )

        logger.debug(
            f"Boundary topology with {len(topology.point_topologies)} points, "
            f"{len(triangles)} facets, {len(feature_points & set(incident))} feature points"
        )
        return topology
