# Copyright (c) 2025.
# This file is part of SegVec-JIT, released under the MIT License.
"""
Iterative linear solvers over SegmentedVector.

The solvers here never look inside a SegmentedVector: they only use the
container's whole-vector primitives (``copy``, ``same_structure``,
``make_zero``, ``dot``, ``scal``, ``axpy``). The linear operator is any
callable mapping a SegmentedVector to a SegmentedVector of the same
structure, so block-diagonal, Jacobian-product or matrix-free operators all
plug in the same way.

Key Concepts
------------
CGConfig
    Dataclass holding configuration for conjugate gradient:
    - max_iters: hard limit on iterations
    - epsilon_rel: stop when ||r|| <= epsilon_rel * ||b||
    - epsilon_abs: stop when ||r|| <= epsilon_abs

conjugate_gradient(apply_A, b, x0, cfg)
    Solves A x = b for symmetric positive-definite A, starting from x0
    (zero when omitted).

Notes
-----
Scratch vectors (residual, search direction) are created once with
``same_structure``/``copy`` before the loop; each iteration then only
calls ``dot``/``scal``/``axpy``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import jax.numpy as jnp

from segvec_jit.core.segmented_vector import SegmentedVector

logger = logging.getLogger(__name__)

LinearOperator = Callable[[SegmentedVector], SegmentedVector]


@dataclass
class CGConfig:
    max_iters: int = 100
    epsilon_rel: float = 1e-6
    epsilon_abs: float = 1e-6


def conjugate_gradient(
    apply_A: LinearOperator,
    b: SegmentedVector,
    x0: Optional[SegmentedVector] = None,
    cfg: Optional[CGConfig] = None,
) -> SegmentedVector:
    """
    Conjugate gradient on ``apply_A(x) = b``.

    Args:
        apply_A: SPD linear operator, SegmentedVector -> SegmentedVector.
        b: right-hand side.
        x0: initial guess with the structure of ``b``; zero if omitted.
        cfg: iteration limits and tolerances; defaults when omitted.

    Returns:
        x: approximate solution, same structure as ``b``.
    """
    if cfg is None:
        cfg = CGConfig()

    if x0 is None:
        x = SegmentedVector.same_structure(b)
        x.make_zero()
    else:
        x = x0.copy()

    # r = b - A x
    r = b.copy()
    r.axpy(-1.0, apply_A(x))
    p = r.copy()

    rr = float(r.dot(r))
    threshold = max(cfg.epsilon_rel * float(jnp.sqrt(b.dot(b))), cfg.epsilon_abs)

    k = 0
    while k < cfg.max_iters and rr ** 0.5 > threshold:
        Ap = apply_A(p)
        pAp = float(p.dot(Ap))
        if pAp <= 0.0:
            logger.warning("conjugate_gradient: operator not positive definite (p.Ap = %g)", pAp)
            break
        alpha = rr / pAp

        x.axpy(alpha, p)
        r.axpy(-alpha, Ap)

        rr_new = float(r.dot(r))
        beta = rr_new / rr

        # p = r + beta * p
        p.scal(beta)
        p.axpy(1.0, r)

        rr = rr_new
        k += 1

    logger.info("conjugate_gradient finished after %d iterations, |r| = %.3e", k, rr ** 0.5)
    return x
