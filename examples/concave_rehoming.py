"""Example script showing a boundary point re-homed onto the fan of a neighbor.

The guess for point 0 lands inside facet (3, 4, 5), outside the facets of 0.
Point 3 is the closest vertex of the fan, so the search continues on the
facets of 3. The fan is plotted before and after resolution.
"""

import numpy as np

from pybms.debug_utils import plot_facet_fan
from pybms.topology import BoundaryTopology


def main():
    points = np.array(
        [
            [0.0, 0.0, 0.0],  # 0
            [0.0, 1.0, 0.0],  # 1
            [1.0, 1.0, 0.0],  # 2
            [1.0, 0.0, 0.0],  # 3
            [2.0, 0.0, 0.0],  # 4
            [2.0, 1.0, 0.0],  # 5
        ]
    )
    triangles = [[0, 3, 2], [0, 2, 1], [3, 4, 5], [3, 5, 2]]
    topo = BoundaryTopology.from_surface(points, triangles)

    guess = np.array([1.6, 0.2, 0.1])
    point = topo.point_topology(0)
    plot_facet_fan(topo, 0, guess=guess, show=True, title="Before")

    resolved = point.resolve(guess, 0)

    print(f"Guess {guess} -> {resolved}")
    print(f"Point 0 is now anchored at {point.anchored_at}")
    plot_facet_fan(topo, 0, guess=guess, resolved=resolved, show=True, title="After")


if __name__ == "__main__":
    main()
