"""Configuration of the boundary point resolver."""

from dataclasses import dataclass

from pybms.geometry import ProjectionMode
from pybms.utils import EPS


@dataclass(frozen=True)
class ResolverConfig:
    """
    Attributes
    ----------
    projection : ProjectionMode
        Inclusion test used against each facet.
    eps : float
        Tolerance widening the [0, 1] barycentric range.
    max_rehomes : int
        Maximum number of concave re-homing hops within one resolution.
    reset_active_facets : bool
        If True, every resolution starts from the point's own facets instead of
        the fan it was re-homed to by a previous call.
    """

    projection: ProjectionMode = ProjectionMode.loose
    eps: float = EPS
    max_rehomes: int = 32
    reset_active_facets: bool = False

    def __post_init__(self) -> None:
        if self.eps < 0:
            raise ValueError(f"eps must be non-negative, got {self.eps}")
        if self.max_rehomes < 0:
            raise ValueError(f"max_rehomes must be non-negative, got {self.max_rehomes}")
