# Copyright (c) 2025.
# This file is part of SegVec-JIT, released under the MIT License.
"""
Bridges between manifold-valued variables and SegmentedVector deltas.

An optimizer keeps its current estimate as a list of variables (points,
poses, calibration vectors, ...) and solves linear systems for a tangent
delta stored in a single SegmentedVector, one slice per variable. This
module moves data across that boundary:

    • ``local_coordinates_all(values, others)``
        values, others  ->  SegmentedVector of per-variable deltas
    • ``retract_all(values, delta)``
        values, delta   ->  updated values

Supported variables
-------------------
• Manifold values: anything satisfying the ``ManifoldValue`` protocol
  (``dim``, ``retract``, ``local_coordinates``), e.g. ``Point2``.
• Euclidean values: plain 1-D arrays. Their dimension is their length,
  retraction is addition and local coordinates are a difference.

``get_manifold_for_value`` decides which rule applies, so new variable types
only need to implement the protocol.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence, runtime_checkable

import jax.numpy as jnp

from segvec_jit.core.segmented_vector import SegmentedVector


@runtime_checkable
class ManifoldValue(Protocol):
    def dim(self) -> int: ...

    def retract(self, v) -> "ManifoldValue": ...

    def local_coordinates(self, other) -> jnp.ndarray: ...


def get_manifold_for_value(value) -> str:
    if isinstance(value, ManifoldValue):
        return "manifold"
    return "euclidean"


def value_dim(value) -> int:
    """Tangent-space dimension of a single variable."""
    if get_manifold_for_value(value) == "manifold":
        return int(value.dim())
    v = jnp.asarray(value)
    if v.ndim != 1:
        raise ValueError(f"Euclidean values must be 1-D arrays, got shape {v.shape}")
    return int(v.shape[0])


def build_dims(values: Sequence) -> List[int]:
    return [value_dim(value) for value in values]


def local_coordinates_all(values: Sequence, others: Sequence) -> SegmentedVector:
    """
    Pack the delta from each ``values[i]`` to ``others[i]`` into a new
    SegmentedVector, variable ``i`` holding the i-th delta.

    Capacity for every delta is reserved up front; each delta is then added
    with ``append_preallocated``.
    """
    if len(values) != len(others):
        raise ValueError(
            f"Got {len(values)} values but {len(others)} targets for local coordinates"
        )
    dims = build_dims(values)

    delta = SegmentedVector()
    delta.reserve(len(values), sum(dims))
    for value, other in zip(values, others):
        if get_manifold_for_value(value) == "manifold":
            d = value.local_coordinates(other)
        else:
            d = jnp.asarray(other) - jnp.asarray(value)
        delta.append_preallocated(d)
    return delta


def retract_all(values: Sequence, delta: SegmentedVector) -> list:
    """
    Apply ``delta[i]`` to ``values[i]`` for every variable and return the
    updated values in the same order.
    """
    if len(values) != delta.size():
        raise ValueError(
            f"Got {len(values)} values but the delta holds {delta.size()} variables"
        )

    updated = []
    for var, (value, d) in enumerate(zip(values, delta)):
        expected = value_dim(value)
        if len(d) != expected:
            raise ValueError(
                f"Delta for variable {var} has dim {len(d)}, expected {expected}"
            )
        if get_manifold_for_value(value) == "manifold":
            updated.append(value.retract(d.vector()))
        else:
            updated.append(jnp.asarray(value) + d.vector())
    return updated
