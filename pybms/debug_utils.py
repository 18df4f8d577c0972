import typing

import numpy as np
from numpy.typing import NDArray

from pybms.utils import Label, Vec3d, sorted_facets

if typing.TYPE_CHECKING:
    from pybms.topology import BoundaryTopology


def plot_facet_fan(
    topology: "BoundaryTopology",
    label: Label,
    guess: Vec3d | None = None,
    resolved: Vec3d | None = None,
    show: bool = False,
    title: str = "",
    fontsize: int = 7,
) -> NDArray[np.uint8]:
    """
    Plot the facet fan currently searched for a boundary point.

    Parameters
    ----------
    topology : BoundaryTopology
        Topology owning the point
    label : int
        Label of the point whose fan is drawn
    guess : Vec3d, optional
        Guessed point, drawn in red
    resolved : Vec3d, optional
        Resolved point, drawn in green
    show : bool
        Whether to call plt.show() after plotting
    title : str
        Title of the plot, defaults to the point and its anchor
    fontsize : int
        Font size for vertex labels

    Returns
    -------
    NDArray[np.uint8]
        The rendered figure as an RGB image
    """
    import matplotlib.pyplot as plt
    from mpl_toolkits.mplot3d.art3d import Poly3DCollection

    point = topology.point_topology(label)
    anchor = getattr(point, "anchored_at", point.label)
    facets = getattr(point, "active_facets", point.incident_facets())

    fig = plt.figure()
    ax = fig.add_subplot(projection="3d")

    polys = [np.array([topology.coordinate_of(v) for v in tri]) for tri in sorted_facets(facets)]
    ax.add_collection3d(
        Poly3DCollection(polys, facecolor="lightblue", edgecolor="k", alpha=0.4)
    )

    fan_labels = sorted({v for facet in facets for v in facet})
    for v in fan_labels:
        x, y, z = topology.coordinate_of(v)
        color = "blue" if v == anchor else "k"
        ax.scatter(x, y, z, c=color, s=8)
        ax.text(x, y, z, str(v), fontsize=fontsize, color=color)

    if guess is not None:
        ax.scatter(*np.asarray(guess, dtype=float), c="red", s=12, label="Guess")
    if resolved is not None:
        ax.scatter(*np.asarray(resolved, dtype=float), c="green", s=12, label="Resolved")
    if guess is not None or resolved is not None:
        ax.legend()

    coords = np.array([topology.coordinate_of(v) for v in fan_labels])
    if guess is not None:
        coords = np.vstack([coords, guess])
    ax.set_xlim(coords[:, 0].min() - 0.1, coords[:, 0].max() + 0.1)
    ax.set_ylim(coords[:, 1].min() - 0.1, coords[:, 1].max() + 0.1)
    ax.set_zlim(coords[:, 2].min() - 0.1, coords[:, 2].max() + 0.1)
    ax.set_title(title or f"Point {point.label} anchored at {anchor}")

    if show:
        plt.show()

    fig.canvas.draw()
    buf = fig.canvas.buffer_rgba()  # type: ignore[reportAttributeAccessIssue]
    img = np.asarray(buf)[:, :, :3].copy()
    plt.close(fig)
    return img
