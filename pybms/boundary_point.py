import typing
from abc import ABC, abstractmethod
from enum import Enum, auto

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from pybms.config import ResolverConfig
from pybms.debug_utils import plot_facet_fan
from pybms.geometry import project_onto_triangle
from pybms.utils import FacetSet, Label, Vec3d, make_facet, sorted_facets

if typing.TYPE_CHECKING:
    from pybms.topology import BoundaryTopology


class PointKind(Enum):
    boundary = auto()
    feature_edge = auto()


class UnimplementedCapability(NotImplementedError):
    """Raised by the feature edge operations, which have no algorithm yet."""

    def __init__(self, capability: str, message: str) -> None:
        super().__init__(f"{capability}: {message}")
        self.capability = capability


class RehomingLimitError(RuntimeError): ...


class PointTopology(ABC):
    """
    Shared state of a boundary vertex: its facets, its coordinate before
    smoothing and a back-reference to the topology that owns it.

    Parameters
    ----------
    label : int
        Label of the vertex in the boundary topology.
    facets : iterable of iterables of 3 labels
        Facets incident to the vertex. Each must contain ``label``.
    initial_point : Vec3d
        Coordinate of the vertex before any smoothing pass.
    topology : BoundaryTopology
        Directory used for coordinate and facet lookups. Never modified.
    config : ResolverConfig, optional
    """

    kind: PointKind

    def __init__(
        self,
        label: Label,
        facets,
        initial_point: Vec3d,
        topology: "BoundaryTopology",
        config: ResolverConfig | None = None,
    ) -> None:
        self.label = int(label)
        self._facets: FacetSet = frozenset(make_facet(facet) for facet in facets)
        for facet in self._facets:
            if self.label not in facet:
                raise ValueError(
                    f"Facet {sorted(facet)} is not incident to point {self.label}"
                )

        point = np.array(initial_point, dtype=float)
        if point.shape != (3,):
            raise ValueError(f"Expected a 3D coordinate, got shape {point.shape}")
        point.flags.writeable = False
        self._initial_point = point

        self.topology = topology
        self.config = config if config is not None else ResolverConfig()

    def incident_facets(self) -> FacetSet:
        return self._facets

    def original_coordinate(self) -> NDArray[np.floating]:
        return self._initial_point

    def initial_point_of(self, label: Label) -> NDArray[np.floating]:
        return self.topology.coordinate_of(label)

    @abstractmethod
    def smoothed_point(
        self, guessed_point: Vec3d, ref: Label, debug: bool = False
    ) -> NDArray[np.floating]: ...

    def resolve(
        self, guessed_point: Vec3d, ref: Label, debug: bool = False
    ) -> NDArray[np.floating]:
        """Bring a guessed point back onto the boundary around ``ref``."""
        return self.smoothed_point(guessed_point, ref, debug=debug)

    # Feature edge extension points. A feature edge algorithm has to mirror the
    # facet search and re-homing of BoundaryPoint along the 1D edge polyline.

    def _feature_edge_missing(self, capability: str) -> UnimplementedCapability:
        if self.kind is PointKind.feature_edge:
            message = f"feature edge handling missing for point {self.label}"
        else:
            message = f"invoked on a non feature edge point {self.label}"
        return UnimplementedCapability(capability, message)

    def map_neighbor_feature_points(
        self, guessed_point: Vec3d, ref: Label
    ) -> dict[float, NDArray[np.floating]]:
        raise self._feature_edge_missing("map_neighbor_feature_points")

    def get_feature_edge_point(
        self, guessed_point: Vec3d, ref: Label
    ) -> NDArray[np.floating]:
        raise self._feature_edge_missing("get_feature_edge_point")

    def change_feature_edge_linked_point(
        self, new_ref: Label, guessed_point: Vec3d
    ) -> NDArray[np.floating]:
        raise self._feature_edge_missing("change_feature_edge_linked_point")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label={self.label}, facets={sorted_facets(self._facets)})"


class BoundaryPoint(PointTopology):
    """
    Vertex on a smooth part of the boundary, resolved against a fan of facets.

    The fan being searched starts as the vertex's own facets. When a guess
    lands past a concave region the fan is re-homed onto the facets of the
    nearest neighbor; ``anchored_at`` records whose fan is active.
    """

    kind = PointKind.boundary

    def __init__(
        self,
        label: Label,
        facets,
        initial_point: Vec3d,
        topology: "BoundaryTopology",
        config: ResolverConfig | None = None,
    ) -> None:
        super().__init__(label, facets, initial_point, topology, config)
        self.anchored_at: Label = self.label

    @property
    def active_facets(self) -> FacetSet:
        if self.anchored_at == self.label:
            return self._facets
        return self.topology.facet_set_owned_by(self.anchored_at)

    def reset_active_facets(self) -> None:
        if self.anchored_at != self.label:
            logger.debug(
                f"Point {self.label} anchored_at: {self.anchored_at} -> {self.label} (reset)"
            )
        self.anchored_at = self.label

    def is_on_triangle(
        self, ref_p2: Label, ref_p3: Label, p: Vec3d, ref: Label
    ) -> NDArray[np.floating] | None:
        """Projection of ``p`` onto triangle (ref, ref_p2, ref_p3), or None if it misses."""
        p1 = self.topology.coordinate_of(ref)
        p2 = self.topology.coordinate_of(ref_p2)
        p3 = self.topology.coordinate_of(ref_p3)
        return project_onto_triangle(
            p1, p2, p3, p, mode=self.config.projection, eps=self.config.eps
        )

    def search_active_facets(
        self, guessed_point: Vec3d, ref: Label
    ) -> NDArray[np.floating] | None:
        """
        Project the guess on every active facet and keep the closest projection.

        Facets are visited in ascending order of their sorted labels and only a
        strictly closer hit replaces the current one, so ties go to the
        lexicographically smallest facet.
        """
        guess = np.asarray(guessed_point, dtype=float)
        best = None
        best_dist = np.inf
        for tri in sorted_facets(self.active_facets):
            if ref not in tri:
                raise ValueError(f"Facet {tri} does not contain anchor {ref}")
            ref_p2, ref_p3 = (v for v in tri if v != ref)

            projected = self.is_on_triangle(ref_p2, ref_p3, guess, ref)
            if projected is None:
                logger.trace(f"Guess {guess} misses facet {tri}")
                continue

            dist = float(np.linalg.norm(guess - projected))
            logger.trace(f"Guess {guess} projects on facet {tri} at distance {dist}")
            if dist < best_dist:
                best, best_dist = projected, dist
        return best

    def smoothed_point(
        self, guessed_point: Vec3d, ref: Label, debug: bool = False
    ) -> NDArray[np.floating]:
        if self.config.reset_active_facets:
            self.reset_active_facets()
        ref = int(ref)
        # A fan re-homed by a previous call is searched from its own anchor
        if ref == self.label:
            ref = self.anchored_at

        anchored_at = self.anchored_at
        try:
            return self._boundary_point(
                np.asarray(guessed_point, dtype=float), ref, hops=0, debug=debug
            )
        except Exception:
            # A failed resolution leaves the fan where it started
            if self.anchored_at != anchored_at:
                logger.debug(
                    f"Point {self.label} anchored_at: {self.anchored_at} -> {anchored_at} (rollback)"
                )
            self.anchored_at = anchored_at
            raise

    def _boundary_point(
        self,
        guess: NDArray[np.floating],
        ref: Label,
        hops: int,
        debug: bool,
        visited: tuple[Label, ...] = (),
    ) -> NDArray[np.floating]:
        visited = (*visited, ref)
        projected = self.search_active_facets(guess, ref)
        if projected is not None:
            logger.debug(f"Point {self.label}: guess projected on the fan of {ref}")
            return projected

        center = self.topology.coordinate_of(ref)
        dist_center = float(np.linalg.norm(guess - center))

        extreme_points = sorted(
            {label for facet in self.active_facets for label in facet} - {ref}
        )
        if not extreme_points:
            raise ValueError(f"Point {self.label} has no facets around anchor {ref}")

        # min keeps the first of equal distances, i.e. the smallest label
        nearest, min_dist = min(
            (
                (label, float(np.linalg.norm(guess - self.topology.coordinate_of(label))))
                for label in extreme_points
            ),
            key=lambda item: item[1],
        )

        if dist_center < min_dist:
            logger.debug(
                f"Point {self.label}: convex around {ref}, keeping its coordinate"
            )
            return center.copy()

        if hops >= self.config.max_rehomes:
            message = (
                f"Point {self.label}: re-homing from {ref} to {nearest} exceeds "
                f"the limit of {self.config.max_rehomes} hops"
            )
            if nearest in visited:
                chain = " -> ".join(str(v) for v in (*visited, nearest))
                message += f"; re-homing cycles through {chain}"
            raise RehomingLimitError(message)
        return self.change_boundary_point_linked_faces(
            nearest, guess, hops=hops, debug=debug, visited=visited
        )

    def change_boundary_point_linked_faces(
        self,
        new_ref: Label,
        guessed_point: Vec3d,
        hops: int = 0,
        debug: bool = False,
        visited: tuple[Label, ...] = (),
    ) -> NDArray[np.floating]:
        """Concave case: continue the search on the facets owned by ``new_ref``."""
        if self.topology.point_topology(new_ref).kind is PointKind.feature_edge:
            return self.change_feature_edge_linked_point(new_ref, guessed_point)

        logger.debug(f"Point {self.label} anchored_at: {self.anchored_at} -> {new_ref}")
        self.anchored_at = new_ref
        if debug:
            plot_facet_fan(self.topology, self.label, guess=guessed_point, show=True)

        return self._boundary_point(
            np.asarray(guessed_point, dtype=float),
            new_ref,
            hops=hops + 1,
            debug=debug,
            visited=visited,
        )


class FeatureEdgePoint(PointTopology):
    """Vertex on a crease of the boundary. No feature edge algorithm exists yet."""

    kind = PointKind.feature_edge

    def smoothed_point(
        self, guessed_point: Vec3d, ref: Label, debug: bool = False
    ) -> NDArray[np.floating]:
        return self.get_feature_edge_point(guessed_point, ref)

    def projected_boundary_point(
        self, guessed_point: Vec3d, ref: Label
    ) -> NDArray[np.floating]:
        hits = self.map_neighbor_feature_points(guessed_point, ref)
        return hits[min(hits)]
