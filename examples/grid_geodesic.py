"""Geodesic distance on a flat square from its corner, compared with Euclidean distance."""
import numpy as np

from heat_geodesic import compute_geodesic_distance, shapes

from example_parameters import Parameters


def main(n: int = 40) -> None:
    mesh = shapes.grid(n, n)
    u0 = np.zeros(mesh.n_verts)
    u0[0] = 1.0

    params = Parameters()
    d = compute_geodesic_distance(mesh, u0, params=params)
    exact = np.linalg.norm(mesh.verts - mesh.verts[0], axis=1)

    far = mesh.n_verts - 1
    print(f"corner to corner: heat={d[far]:.4f}  exact={exact[far]:.4f}")
    print(f"max abs error: {np.max(np.abs(d - exact)):.4f}")


if __name__ == "__main__":
    main()
