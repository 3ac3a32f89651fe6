from heat_geodesic.parameters import Parameters as BaseParameters


class Parameters(BaseParameters):
    """Settings used by the examples.

    Attributes:
        m (float): Smoother distances than the default, for coarse meshes.
        boundary (str): Planar patches in the examples have open boundaries.
        baseline (str): Report distances relative to the closest vertex.
        degenerate_gradient (str): Faces with no heat variation get no direction.
    """

    def __init__(self):
        super().__init__()

        self.m = 2.0
        self.boundary = "neumann"
        self.baseline = "min"
        self.degenerate_gradient = "zero"
