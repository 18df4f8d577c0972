import numpy as np

from pybms.topology import BoundaryTopology


if __name__ == "__main__":
    points = np.array(
        [
            (0, 0, 1),
            (1, 0, 0),
            (0, 1, 0),
            (-1, 0, 0),
            (0, -1, 0),
        ],
        dtype=float,
    )
    triangles = [(0, 1, 2), (0, 2, 3), (0, 3, 4), (0, 4, 1)]

    topo = BoundaryTopology.from_surface(points, triangles)
    guess = np.array([0.0, 0.0, 3.0])
    resolved = topo.point_topology(0).resolve(guess, 0)
    print(f"Guess {guess} -> {resolved}")
