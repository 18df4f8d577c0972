from typing import TypeAlias
from numpy.typing import NDArray
import numpy as np

EPS = 1e-12
EPS_AREA = 1e-12  # relative to the squared longest edge
Vec3d: TypeAlias = tuple[float, float, float] | NDArray[np.floating]
Label: TypeAlias = int
Facet: TypeAlias = frozenset[int]
FacetSet: TypeAlias = frozenset[Facet]


def make_facet(labels) -> Facet:
    """Build a facet from three distinct vertex labels."""
    facet = frozenset(int(label) for label in labels)
    if len(facet) != 3:
        raise ValueError(f"A facet needs exactly 3 distinct labels, got {list(labels)}")
    return facet


def sorted_facets(facets: FacetSet) -> list[tuple[int, int, int]]:
    """Facets as sorted label tuples, in ascending lexicographic order."""
    return sorted(tuple(sorted(facet)) for facet in facets)  # type: ignore[misc]
