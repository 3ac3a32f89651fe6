"""Unit tests for row-wise vector helpers."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from heat_geodesic.errors import DegenerateGeometryError
from heat_geodesic.vector import cotan, cross, dot, norm, normalize


def test_dot_cross_norm_on_stacks():
    a = np.array([[1.0, 0.0, 0.0], [1.0, 2.0, 3.0]])
    b = np.array([[0.0, 1.0, 0.0], [4.0, 5.0, 6.0]])

    assert_allclose(dot(a, b), [0.0, 32.0])
    assert_allclose(cross(a, b), [[0.0, 0.0, 1.0], [-3.0, 6.0, -3.0]])
    assert_allclose(norm(a), [1.0, np.sqrt(14.0)])


def test_single_vectors_return_scalars():
    assert float(dot([3.0, 4.0, 0.0], [3.0, 4.0, 0.0])) == 25.0
    assert float(norm([3.0, 4.0, 0.0])) == 5.0


def test_normalize_unit_length():
    v = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, -2.0]])
    n = normalize(v)
    assert_allclose(norm(n), [1.0, 1.0])
    assert_allclose(n[1], [0.0, 0.0, -1.0])
    assert_allclose(normalize([0.0, 5.0, 0.0]), [0.0, 1.0, 0.0])


def test_normalize_zero_vector_raises():
    with pytest.raises(DegenerateGeometryError):
        normalize([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]])


def test_cotan_known_angles():
    x = [1.0, 0.0, 0.0]
    assert_allclose(cotan(x, [0.0, 1.0, 0.0]), 0.0, atol=1e-15)
    assert_allclose(cotan(x, [1.0, 1.0, 0.0]), 1.0)
    assert_allclose(cotan(x, [0.5, np.sqrt(3.0) / 2.0, 0.0]), 1.0 / np.sqrt(3.0))
    # obtuse angle has a negative cotangent
    assert cotan(x, [-1.0, 1.0, 0.0]) < 0.0


def test_cotan_parallel_is_not_finite():
    val = cotan([1.0, 0.0, 0.0], [2.0, 0.0, 0.0])
    assert not np.isfinite(val)
