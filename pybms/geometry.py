from enum import Enum, auto

import numpy as np
from numpy.typing import NDArray

from pybms.utils import EPS, EPS_AREA, Vec3d


class ProjectionMode(Enum):
    loose = auto()
    strict = auto()


class DegenerateGeometry(ValueError): ...


def triangle_normal(p1: Vec3d, p2: Vec3d, p3: Vec3d) -> NDArray[np.floating]:
    """Unnormalized normal (p2 - p1) x (p3 - p1); its norm is twice the area."""
    p1 = np.asarray(p1, dtype=float)
    return np.cross(np.asarray(p2, dtype=float) - p1, np.asarray(p3, dtype=float) - p1)


def triangle_area(p1: Vec3d, p2: Vec3d, p3: Vec3d) -> float:
    return 0.5 * float(np.linalg.norm(triangle_normal(p1, p2, p3)))


def is_degenerate_triangle(
    p1: Vec3d, p2: Vec3d, p3: Vec3d, eps: float = EPS_AREA
) -> bool:
    """Area at most ``eps`` times the squared longest edge."""
    p1, p2, p3 = (np.asarray(p, dtype=float) for p in (p1, p2, p3))
    longest = max(
        float(np.dot(a - b, a - b)) for a, b in ((p1, p2), (p2, p3), (p3, p1))
    )
    return triangle_area(p1, p2, p3) <= eps * longest


def project_onto_triangle(
    p1: Vec3d,
    p2: Vec3d,
    p3: Vec3d,
    p: Vec3d,
    mode: ProjectionMode = ProjectionMode.loose,
    eps: float = EPS,
) -> NDArray[np.floating] | None:
    """
    Project a point onto the plane of a triangle and test whether it lands inside.

    See https://math.stackexchange.com/questions/544946/ for the derivation.

    Parameters
    ----------
    p1, p2, p3 : Vec3d
        Triangle vertices. p1 is the anchor the edge vectors start from.
    p : Vec3d
        Query point.
    mode : ProjectionMode
        ``loose`` takes the absolute value of both barycentric ratios, so some
        projections falling outside the triangle alias back into [0, 1].
        ``strict`` keeps the signs and is a true inclusion test.
    eps : float
        Tolerance widening the accepted [0, 1] range.

    Returns
    -------
    NDArray[np.floating] | None
        ``alpha*p1 + beta*p2 + lambda*p3`` when accepted, None otherwise.

    Raises
    ------
    DegenerateGeometry
        If the triangle has (numerically) zero area.
    """
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    p3 = np.asarray(p3, dtype=float)

    u = p2 - p1
    v = p3 - p1
    n = np.cross(u, v)
    w = np.asarray(p, dtype=float) - p1

    if is_degenerate_triangle(p1, p2, p3):
        raise DegenerateGeometry(f"Degenerate triangle {p1}, {p2}, {p3}")

    nn = float(np.dot(n, n))

    lam = float(np.dot(np.cross(u, w), n)) / nn
    beta = float(np.dot(np.cross(w, v), n)) / nn
    if mode is ProjectionMode.loose:
        lam = abs(lam)
        beta = abs(beta)
    alpha = 1.0 - lam - beta

    if all(-eps <= c <= 1.0 + eps for c in (alpha, beta, lam)):
        return alpha * p1 + beta * p2 + lam * p3
    return None


def dihedral_angle(n1: Vec3d, n2: Vec3d) -> float:
    """
    Angle in degrees between the planes of two facets, ignoring orientation.

    Returns a value in [0, 90].
    """
    n1 = np.asarray(n1, dtype=float)
    n2 = np.asarray(n2, dtype=float)
    cos = abs(float(np.dot(n1, n2))) / (np.linalg.norm(n1) * np.linalg.norm(n2))
    return float(np.degrees(np.arccos(np.clip(cos, 0.0, 1.0))))
