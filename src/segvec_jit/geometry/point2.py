# Copyright (c) 2025.
# This file is part of SegVec-JIT, released under the MIT License.
"""
2D point as a Lie group and manifold value.

Point2 is the simplest manifold variable an optimizer can hold: the group
operation is coordinate-wise addition, so the exponential map is the identity
embedding of R^2 and ``retract`` is plain addition of a tangent 2-vector.
It is the reference implementation of the contract that ``slam.manifold``
expects from any variable stored as a slice of a SegmentedVector:

    dim()                   -> 2
    retract(v)              -> Point2      (apply a delta)
    local_coordinates(q)    -> (2,) array  (delta from self to q)

Group
-----
identity, inverse, compose, between. ``compose`` and ``between`` return
``(result, H1, H2)`` when called with ``jacobians=True``; otherwise no
derivative is built.

Notes
-----
Points are frozen dataclasses: every operation returns a new value. ``p += q``
and ``p *= s`` therefore rebind ``p`` instead of mutating it. Coordinates are
kept as given (Python floats or JAX scalars), and the class is registered as a
pytree so it can flow through ``jax.jit``.
"""

from __future__ import annotations
from dataclasses import dataclass

import jax
import jax.numpy as jnp

from segvec_jit.core.types import DEFAULT_TOL


@jax.tree_util.register_dataclass
@dataclass(frozen=True)
class Point2:
    x: float = 0.0
    y: float = 0.0

    # Dimension of the variable, used to size SegmentedVector slots.
    dimension = 2

    @classmethod
    def from_vector(cls, v) -> "Point2":
        v = jnp.asarray(v)
        assert v.shape == (2,), f"Point2 needs a 2-vector, got shape {v.shape}"
        return cls(v[0], v[1])

    def vector(self) -> jnp.ndarray:
        return jnp.array([self.x, self.y])

    # --- Group ---

    @staticmethod
    def identity() -> "Point2":
        return Point2()

    def inverse(self) -> "Point2":
        """Negated coordinates, so that ``p.compose(p.inverse()) == identity()``."""
        return Point2(-self.x, -self.y)

    def compose(self, p2: "Point2", jacobians: bool = False):
        result = self + p2
        if jacobians:
            return result, jnp.eye(2), jnp.eye(2)
        return result

    def between(self, p2: "Point2", jacobians: bool = False):
        """``p2 - self``, the point that composes with ``self`` to give ``p2``."""
        result = p2 - self
        if jacobians:
            return result, -jnp.eye(2), jnp.eye(2)
        return result

    def __neg__(self) -> "Point2":
        return Point2(-self.x, -self.y)

    def __add__(self, q: "Point2") -> "Point2":
        return Point2(self.x + q.x, self.y + q.y)

    def __sub__(self, q: "Point2") -> "Point2":
        return Point2(self.x - q.x, self.y - q.y)

    def __mul__(self, s) -> "Point2":
        return Point2(self.x * s, self.y * s)

    def __rmul__(self, s) -> "Point2":
        return self * s

    def __truediv__(self, s) -> "Point2":
        return Point2(self.x / s, self.y / s)

    # --- Manifold ---

    @classmethod
    def dim(cls) -> int:
        return cls.dimension

    def retract(self, v) -> "Point2":
        return self + Point2.from_vector(v)

    def local_coordinates(self, p2: "Point2") -> jnp.ndarray:
        return Point2.logmap(self.between(p2))

    # --- Lie group ---

    @staticmethod
    def expmap(v) -> "Point2":
        return Point2.from_vector(v)

    @staticmethod
    def logmap(p: "Point2") -> jnp.ndarray:
        return p.vector()

    # --- Vector space ---

    def norm(self):
        return jnp.hypot(self.x, self.y)

    def unit(self) -> "Point2":
        n = self.norm()
        assert n > 0, "unit() of a zero-length Point2"
        return self / n

    def dist(self, p2: "Point2"):
        return (p2 - self).norm()

    # --- Testable ---

    def equals(self, q: "Point2", tol: float = DEFAULT_TOL) -> bool:
        return bool(abs(self.x - q.x) <= tol and abs(self.y - q.y) <= tol)
