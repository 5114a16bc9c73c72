# Copyright (c) 2025.
# This file is part of SegVec-JIT, released under the MIT License.

import time
import jax
import jax.numpy as jnp

from segvec_jit.core.segmented_vector import SegmentedVector
from segvec_jit.geometry.point2 import Point2
from segvec_jit.optimization.solvers import CGConfig, conjugate_gradient
from segvec_jit.slam.manifold import local_coordinates_all, retract_all


def build_point_problem(num_points: int = 1000):
    """
    Points on a noisy circle and their targets on the unit circle.
    Returns (values, targets).
    """
    values = []
    targets = []
    for i in range(num_points):
        theta = 2.0 * jnp.pi * i / num_points
        targets.append(Point2(float(jnp.cos(theta)), float(jnp.sin(theta))))
        values.append(
            Point2(
                float(1.1 * jnp.cos(theta) + 0.05 * jnp.sin(3.0 * theta)),
                float(0.9 * jnp.sin(theta)),
            )
        )
    return values, targets


def run_benchmark(num_points: int = 1000, max_iters: int = 20, use_jit: bool = True):
    print("=== SegmentedVector benchmark ===")
    print(f"num_points = {num_points}, max_iters = {max_iters}, use_jit = {use_jit}")

    values, targets = build_point_problem(num_points)

    t0 = time.time()
    rhs = local_coordinates_all(values, targets)
    t1 = time.time()
    print(f"reserve + append_preallocated ({rhs.size()} vars): {(t1 - t0) * 1000.0:.3f} ms")

    # Diagonal SPD weights, one per scalar
    weights = 1.0 + 0.5 * jnp.cos(jnp.arange(rhs.dim()))

    def apply_A(v: SegmentedVector) -> SegmentedVector:
        return SegmentedVector(v.dims(), weights * v.vector())

    if use_jit:
        apply_A = jax.jit(apply_A)

    cfg = CGConfig(max_iters=max_iters)

    # Warmup (forces compilation when use_jit=True)
    conjugate_gradient(apply_A, rhs, cfg=CGConfig(max_iters=1))

    t0 = time.time()
    dx = conjugate_gradient(apply_A, rhs, cfg=cfg)
    dx.vector().block_until_ready()
    t1 = time.time()
    print(f"conjugate_gradient: {(t1 - t0) * 1000.0:.3f} ms")

    t0 = time.time()
    updated = retract_all(values, dx)
    t1 = time.time()
    print(f"retract_all: {(t1 - t0) * 1000.0:.3f} ms")

    print(f"point0 (updated): {updated[0]}")


if __name__ == "__main__":
    # Example:
    #   PYTHONPATH=src python3 benchmarks/bench_segmented_vector.py
    run_benchmark(num_points=1000, max_iters=20, use_jit=True)
    run_benchmark(num_points=1000, max_iters=20, use_jit=False)
