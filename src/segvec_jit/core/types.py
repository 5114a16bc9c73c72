# Copyright (c) 2025.
# This file is part of SegVec-JIT, released under the MIT License.
"""
Shared type aliases and constants for SegVec-JIT.

Index
    Dense integer identifying a variable inside a SegmentedVector.
    Variables are numbered ``0..size()-1`` in insertion order.

Dims
    Ordered sequence of per-variable dimensions, in variable order.

DEFAULT_TOL
    Absolute tolerance used by every ``equals`` method when the caller
    does not pass one.
"""

from __future__ import annotations
from typing import NewType, Sequence

Index = NewType("Index", int)
Dims = Sequence[int]

DEFAULT_TOL: float = 1e-9
