from __future__ import annotations

import jax
import jax.numpy as jnp
import pytest

from segvec_jit.geometry.point2 import Point2


def test_dimension_is_two():
    assert Point2.dimension == 2
    assert Point2.dim() == 2
    assert Point2(1.0, 2.0).dim() == 2


def test_group_identity_and_inverse():
    p = Point2(1.5, -2.0)
    assert p.compose(p.inverse()).equals(Point2.identity())
    assert p.inverse().equals(-p)
    assert Point2.identity() == Point2(0.0, 0.0)


def test_compose_and_between():
    p = Point2(1.0, 2.0)
    q = Point2(4.0, -1.0)

    assert p.compose(q).equals(Point2(5.0, 1.0))
    assert p.between(q).equals(Point2(3.0, -3.0))
    assert p.between(q).equals(q - p)
    assert p.compose(p.between(q)).equals(q)


def test_optional_jacobians():
    p = Point2(1.0, 2.0)
    q = Point2(4.0, -1.0)

    result, H1, H2 = p.compose(q, jacobians=True)
    assert result.equals(p.compose(q))
    assert jnp.allclose(H1, jnp.eye(2))
    assert jnp.allclose(H2, jnp.eye(2))

    result, H1, H2 = p.between(q, jacobians=True)
    assert result.equals(p.between(q))
    assert jnp.allclose(H1, -jnp.eye(2))
    assert jnp.allclose(H2, jnp.eye(2))


def test_retract_local_coordinates_round_trip():
    p = Point2(0.3, -1.2)
    q = Point2(-2.5, 4.0)

    d = p.local_coordinates(q)
    assert d.shape == (2,)
    assert jnp.allclose(d, jnp.array([-2.8, 5.2]), atol=1e-6)
    assert p.retract(d).equals(q, tol=1e-5)


def test_retract_is_coordinate_wise_addition():
    p = Point2(1.0, 1.0)
    assert p.retract(jnp.array([0.5, -2.0])).equals(Point2(1.5, -1.0))
    assert p.retract([0.0, 0.0]).equals(p)


def test_expmap_logmap():
    v = jnp.array([3.0, -4.0])
    p = Point2.expmap(v)
    assert p.equals(Point2(3.0, -4.0))
    assert jnp.allclose(Point2.logmap(p), v)


def test_from_vector_requires_two_entries():
    with pytest.raises(AssertionError):
        Point2.from_vector(jnp.array([1.0, 2.0, 3.0]))


def test_vector_space_helpers():
    p = Point2(3.0, 4.0)
    assert float(p.norm()) == pytest.approx(5.0)
    assert p.unit().equals(Point2(0.6, 0.8), tol=1e-6)
    assert float(p.dist(Point2(0.0, 0.0))) == pytest.approx(5.0)

    assert (p * 2.0).equals(Point2(6.0, 8.0))
    assert (2.0 * p).equals(Point2(6.0, 8.0))
    assert (p / 2.0).equals(Point2(1.5, 2.0))


def test_unit_of_zero_point_fails():
    with pytest.raises(AssertionError):
        Point2().unit()


def test_compound_assignment_rebinds():
    original = Point2(1.0, 1.0)
    p = original
    p += Point2(1.0, 2.0)
    p *= 2.0

    assert p.equals(Point2(4.0, 6.0))
    assert original == Point2(1.0, 1.0)


def test_equals_with_tolerance():
    p = Point2(1.0, 2.0)
    assert p.equals(p, tol=0.0)
    assert not p.equals(Point2(1.0, 2.001), tol=1e-4)
    assert p.equals(Point2(1.0, 2.001), tol=1e-2)


def test_point_is_a_pytree():
    p = Point2(1.0, 2.0)
    assert len(jax.tree_util.tree_leaves(p)) == 2

    q = jax.jit(lambda a, v: a.retract(v))(p, jnp.array([1.0, -1.0]))
    assert isinstance(q, Point2)
    assert q.equals(Point2(2.0, 1.0))
