# Copyright (c) 2025.
# This file is part of SegVec-JIT, released under the MIT License.
"""
Segmented vector storage for SegVec-JIT.

This module implements the flat, variable-indexed vector that linear solvers
read and write on every iteration. A single contiguous JAX buffer is
partitioned into per-variable sub-ranges, and a compact list of start offsets
maps each variable index to its range:

    buffer  = [ a0 a1 | b0 b1 b2 | c0 c1 | (unused capacity) ]
    offsets = [ 0,      2,         5,      7 ]

Classes
-------
SegmentedVector
    The container. Owns the buffer (whose length is the *capacity*) and the
    offsets list (whose last entry is the logical dimension ``dim()``).
    Supports:
        - construction from per-variable dimensions, optionally with a
          pre-built flat buffer
        - ``same_structure`` scratch vectors for iterative algorithms
        - a two-phase ``reserve`` / ``append_preallocated`` protocol
        - BLAS-style ``dot``, ``scal``, ``axpy`` and structural ``+``
        - tolerance-based ``equals`` for tests

SegmentView
    Non-owning window ``[offsets[i], offsets[i+1])`` of a parent vector.
    Reads and writes always go through the parent's current buffer.

SegmentCursor
    Lightweight (container, position) cursor used for ordered traversal.

Notes
-----
JAX arrays are immutable, so every write rebinds the parent's buffer to the
result of a functional ``.at[...]`` update. Views never hold the buffer
themselves, which is what makes a write through one view visible through
the parent and through every other view of it.

Preconditions (structural equality for ``+``, matching dimension for ``dot``
and ``axpy``, capacity for ``append_preallocated``) are ``assert`` checks:
they are active in normal runs and compiled away under ``python -O``.

``SegmentedVector`` is a JAX pytree whose only leaf is the buffer and whose
static structure is the offsets tuple, so whole-vector arithmetic can be
wrapped in ``jax.jit``.
"""

from __future__ import annotations

import logging
import operator
from typing import Iterator, List, Optional

import jax
import jax.numpy as jnp
import numpy as np

from .types import DEFAULT_TOL, Dims, Index

logger = logging.getLogger(__name__)


def _prefix_offsets(dims: Dims) -> List[int]:
    offsets = [0]
    for d in dims:
        d = int(d)
        assert d >= 0, f"Variable dimension must be non-negative, got {d}"
        offsets.append(offsets[-1] + d)
    return offsets


def _unwrap(vector):
    if isinstance(vector, SegmentView):
        return vector.vector()
    return vector


def _as_flat(vector, dtype) -> jnp.ndarray:
    v = jnp.asarray(_unwrap(vector), dtype=dtype)
    assert v.ndim == 1, f"Expected a 1-D vector, got shape {v.shape}"
    return v


@jax.tree_util.register_pytree_node_class
class SegmentedVector:
    """
    Contiguous buffer partitioned into per-variable sub-vectors.

    Args:
        dims: per-variable dimensions in variable order. Omitted or empty
            gives a vector with zero variables; use ``reserve`` and
            ``append_preallocated`` to fill it.
        values: optional flat buffer holding all variables back to back.
            Its length must equal ``sum(dims)``. When omitted the buffer is
            zero-filled.
    """

    def __init__(self, dims: Optional[Dims] = None, values=None):
        self._offsets: List[int] = _prefix_offsets(() if dims is None else dims)
        if values is None:
            self._values = jnp.zeros((self._offsets[-1],))
        else:
            flat = jnp.asarray(_unwrap(values), dtype=float)
            assert flat.ndim == 1 and flat.shape[0] == self._offsets[-1], (
                f"Flat values have shape {flat.shape} but dims sum to {self._offsets[-1]}"
            )
            self._values = flat

    @classmethod
    def _from_parts(cls, offsets: List[int], values: jnp.ndarray) -> "SegmentedVector":
        obj = cls.__new__(cls)
        obj._offsets = offsets
        obj._values = values
        return obj

    @classmethod
    def uniform(cls, n_vars: int, var_dim: int) -> "SegmentedVector":
        """Vector of ``n_vars`` variables that all have dimension ``var_dim``."""
        return cls([var_dim] * n_vars)

    @classmethod
    def same_structure(cls, other: "SegmentedVector") -> "SegmentedVector":
        """
        New vector with the offsets of ``other`` and a fresh buffer of size
        ``other.dim()``. Values are not copied.
        """
        values = jnp.zeros((other.dim(),), dtype=other._values.dtype)
        return cls._from_parts(list(other._offsets), values)

    def copy(self) -> "SegmentedVector":
        # Buffers are immutable, so sharing one is a deep copy in effect.
        return self._from_parts(list(self._offsets), self._values)

    def __copy__(self) -> "SegmentedVector":
        return self.copy()

    def __deepcopy__(self, memo) -> "SegmentedVector":
        return self.copy()

    # --- Pytree protocol ---

    def tree_flatten(self):
        return (self._values,), tuple(self._offsets)

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        (values,) = children
        return cls._from_parts(list(aux_data), values)

    # --- Structure ---

    def size(self) -> int:
        """Number of variables."""
        return len(self._offsets) - 1

    def __len__(self) -> int:
        return self.size()

    def dim(self) -> int:
        """Total dimension in use (may be smaller than ``capacity()``)."""
        return self._offsets[-1]

    def capacity(self) -> int:
        """Total dimension allocated in the buffer."""
        return int(self._values.shape[0])

    def dims(self) -> List[int]:
        return [b - a for a, b in zip(self._offsets[:-1], self._offsets[1:])]

    def vector(self) -> jnp.ndarray:
        """The logical range ``[0, dim())`` as one flat array."""
        return self._values[: self.dim()]

    def reserve(self, n_vars: int, total_dims: int) -> None:
        """
        Grow the buffer to hold at least ``total_dims`` scalars.

        Never shrinks and never changes ``size()``, ``dim()`` or stored
        values. ``n_vars`` is the expected final variable count; the offsets
        list grows on demand, so it is only reported.
        """
        capacity = self.capacity()
        if total_dims <= capacity:
            return
        tail = jnp.zeros((total_dims - capacity,), dtype=self._values.dtype)
        self._values = jnp.concatenate([self._values, tail])
        logger.debug(
            "Reserved capacity %d -> %d for %d variables", capacity, total_dims, n_vars
        )

    def append_preallocated(self, vector) -> Index:
        """
        Append a new variable holding ``vector`` and return its index.

        The new slice must fit in capacity already obtained with ``reserve``;
        the buffer is never reallocated here.
        """
        v = _as_flat(vector, self._values.dtype)
        var = self.size()
        start = self._offsets[-1]
        stop = start + int(v.shape[0])
        assert stop <= self.capacity(), (
            f"append_preallocated needs {stop} dims but capacity is "
            f"{self.capacity()}; call reserve() first"
        )
        self._offsets.append(stop)
        self._values = self._values.at[start:stop].set(v)
        logger.debug("Appended variable %d with dim %d", var, stop - start)
        return Index(var)

    # --- Element access ---

    def _check_variable(self, index) -> int:
        index = operator.index(index)
        if not 0 <= index < self.size():
            raise IndexError(
                f"Variable index {index} out of range for {self.size()} variables"
            )
        return index

    def _write(self, start: int, stop: int, vector) -> None:
        v = _as_flat(vector, self._values.dtype)
        assert v.shape[0] == stop - start, (
            f"Cannot write a vector of length {v.shape[0]} into a slot of dim {stop - start}"
        )
        self._values = self._values.at[start:stop].set(v)

    def __getitem__(self, index) -> "SegmentView":
        return SegmentView(self, self._check_variable(index))

    def __setitem__(self, index, vector) -> None:
        self[index].assign(vector)

    def __iter__(self) -> "SegmentCursor":
        return SegmentCursor(self, 0)

    def __reversed__(self) -> Iterator["SegmentView"]:
        for var in range(self.size() - 1, -1, -1):
            yield self[var]

    def begin(self) -> "SegmentCursor":
        return SegmentCursor(self, 0)

    def end(self) -> "SegmentCursor":
        return SegmentCursor(self, self.size())

    # --- Arithmetic ---

    def make_zero(self) -> None:
        """Zero the logical range; capacity past ``dim()`` is left alone."""
        self._values = self._values.at[: self.dim()].set(0.0)

    def __add__(self, other: "SegmentedVector") -> "SegmentedVector":
        if not isinstance(other, SegmentedVector):
            return NotImplemented
        assert self._offsets == other._offsets, (
            "SegmentedVector addition requires identical structure"
        )
        return self._from_parts(list(self._offsets), self.vector() + other.vector())

    def dot(self, other: "SegmentedVector") -> jnp.ndarray:
        assert self.dim() == other.dim(), (
            f"dot: dimension mismatch {self.dim()} vs {other.dim()}"
        )
        return jnp.dot(self.vector(), other.vector())

    def scal(self, alpha) -> None:
        """In place: ``self *= alpha``."""
        self._values = self._values.at[: self.dim()].multiply(alpha)

    def axpy(self, alpha, x: "SegmentedVector") -> None:
        """In place: ``self += alpha * x``."""
        assert self.dim() == x.dim(), (
            f"axpy: dimension mismatch {x.dim()} vs {self.dim()}"
        )
        self._values = self._values.at[: self.dim()].add(alpha * x.vector())

    # --- Testable ---

    def equals(self, expected: "SegmentedVector", tol: float = DEFAULT_TOL) -> bool:
        if self.size() != expected.size():
            return False
        for var in range(self.size()):
            if not self[var].equals(expected[var], tol):
                return False
        return True

    def __str__(self) -> str:
        lines = [f"{self.size()} elements"]
        for var, view in enumerate(self):
            lines.append(f"  {var} {view.vector()}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"SegmentedVector(dims={self.dims()}, capacity={self.capacity()})"


class SegmentView:
    """
    Window onto variable ``index`` of a parent SegmentedVector.

    The view stores only the parent and the index, so it stays valid for as
    long as the parent exists. Writes (``assign``, item assignment, ``+=``,
    ``*=``) update the parent buffer.
    """

    __slots__ = ("_parent", "_index")

    def __init__(self, parent: SegmentedVector, index: int):
        self._parent = parent
        self._index = index

    @property
    def index(self) -> int:
        return self._index

    @property
    def start(self) -> int:
        return self._parent._offsets[self._index]

    @property
    def stop(self) -> int:
        return self._parent._offsets[self._index + 1]

    def __len__(self) -> int:
        return self.stop - self.start

    def vector(self) -> jnp.ndarray:
        return self._parent._values[self.start : self.stop]

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.vector(), dtype=dtype)

    def _check_element(self, k):
        if isinstance(k, slice):
            return k
        k = operator.index(k)
        n = len(self)
        if not -n <= k < n:
            raise IndexError(f"Element {k} out of range for a segment of dim {n}")
        return k

    def __getitem__(self, k):
        return self.vector()[self._check_element(k)]

    def __setitem__(self, k, value) -> None:
        self.assign(self.vector().at[self._check_element(k)].set(value))

    def assign(self, vector) -> None:
        """Overwrite the whole segment; ``vector`` must have the same length."""
        self._parent._write(self.start, self.stop, vector)

    def __iadd__(self, other) -> "SegmentView":
        self.assign(self.vector() + jnp.asarray(_unwrap(other)))
        return self

    def __imul__(self, alpha) -> "SegmentView":
        self.assign(self.vector() * alpha)
        return self

    def equals(self, expected, tol: float = DEFAULT_TOL) -> bool:
        a = np.asarray(self.vector(), np.float64)
        b = np.asarray(_unwrap(expected), np.float64)
        if a.shape != b.shape:
            return False
        return bool(np.all(np.abs(a - b) <= tol))

    def __repr__(self) -> str:
        return f"SegmentView(index={self._index}, {self.vector()})"


class SegmentCursor:
    """
    Position inside a SegmentedVector, usable as a Python iterator.

    Cursors support ``+``/``-`` by an integer step, in-place ``+=``/``-=``,
    distance (``a - b``) and equality. Distance and equality are only
    defined between cursors of the same container.
    """

    __slots__ = ("_container", "_position")

    def __init__(self, container: SegmentedVector, position: int = 0):
        self._container = container
        self._position = position

    @property
    def position(self) -> int:
        return self._position

    def _check_compat(self, other: "SegmentCursor") -> None:
        assert self._container is other._container, (
            "Cursors from different SegmentedVectors cannot be compared"
        )

    def value(self) -> SegmentView:
        return self._container[self._position]

    def __iter__(self) -> "SegmentCursor":
        return self

    def __next__(self) -> SegmentView:
        if not 0 <= self._position < self._container.size():
            raise StopIteration
        view = self._container[self._position]
        self._position += 1
        return view

    def __iadd__(self, step: int) -> "SegmentCursor":
        self._position += step
        return self

    def __isub__(self, step: int) -> "SegmentCursor":
        self._position -= step
        return self

    def __add__(self, step: int) -> "SegmentCursor":
        return SegmentCursor(self._container, self._position + step)

    def __sub__(self, other):
        if isinstance(other, SegmentCursor):
            self._check_compat(other)
            return self._position - other._position
        return SegmentCursor(self._container, self._position - other)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SegmentCursor):
            return NotImplemented
        self._check_compat(other)
        return self._position == other._position

    __hash__ = None

    def __repr__(self) -> str:
        return f"SegmentCursor(position={self._position})"


def dot(a: SegmentedVector, b: SegmentedVector) -> jnp.ndarray:
    return a.dot(b)


def scal(alpha, x: SegmentedVector) -> None:
    x.scal(alpha)


def axpy(alpha, x: SegmentedVector, y: SegmentedVector) -> None:
    """``y += alpha * x``"""
    y.axpy(alpha, x)
