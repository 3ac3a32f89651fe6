"""Geodesic distance from the north pole of an icosphere.

Prints the heat-method estimate next to the exact great-circle distance for a
few latitudes and the mean relative error over the whole sphere.
"""
import logging

import numpy as np

import heat_geodesic as hg
from heat_geodesic import shapes


def main(subdivisions: int = 4, m: float = 1.0) -> None:
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    hg.set_log_level("INFO")

    mesh = shapes.icosphere(subdivisions)
    source = int(np.argmax(mesh.verts[:, 2]))

    params = hg.Parameters()
    params.m = m

    with hg.HeatMethod(mesh, params, observers=[hg.LoggingObserver()]) as solver:
        d = solver.distance_from_sources(source)

    exact = np.arccos(np.clip(mesh.verts @ mesh.verts[source], -1.0, 1.0))
    for target in np.linspace(0.0, np.pi, 7)[1:]:
        v = int(np.argmin(np.abs(exact - target)))
        print(f"vertex {v:5d}  exact={exact[v]:.4f}  heat={d[v]:.4f}")

    mask = exact > 0
    err = np.abs(d[mask] - exact[mask]) / exact[mask]
    print(f"mean relative error: {err.mean():.3%}")


if __name__ == "__main__":
    main()
