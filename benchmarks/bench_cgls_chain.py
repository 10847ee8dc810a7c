# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.

import time

import jax.numpy as jnp
import numpy as np

from lsq_jit.core.types import VariableAssignments
from lsq_jit.core.vectors import Vector3
from lsq_jit.optimization.cgls import CGLS, CGLSConfig
from lsq_jit.optimization.linearization import LinearizedFactor, linearize_all
from lsq_jit.slam.factors import BetweenFactor, PriorFactor


def build_chain(num_points: int = 10):
    """
    Simple 3D point chain:
        p0 --between--> p1 --between--> ... --between--> p_{N-1}
    Prior on p0, between edges of +1m in x.
    """
    values = VariableAssignments()
    ids = []

    # Initial guesses: slightly perturbed around ground truth [i, 0, 0]
    for i in range(num_points):
        init_val = Vector3(
            i + 0.1 * float(np.sin(0.3 * i)),
            0.05 * float(np.cos(0.2 * i)),
            0.0,
        )
        ids.append(values.store(init_val))

    factors = [PriorFactor(edges=(ids[0],), target=Vector3.zero())]
    meas = Vector3(1.0, 0.0, 0.0)
    for i in range(num_points - 1):
        factors.append(BetweenFactor(edges=(ids[i], ids[i + 1]), measurement=meas))

    return values, factors


def run_benchmark(num_points: int = 200, dense_rows: int = 600, dense_cols: int = 300):
    print("=== CGLS Benchmark ===")

    # Batch linearization of a point chain
    values, factors = build_chain(num_points)
    t0 = time.time()
    linearized = linearize_all(factors, values)
    t1 = time.time()
    print(f"linearize_all: {len(linearized)} factors in {(t1 - t0) * 1000:.3f} ms")

    # Dense least squares through the operator interface only
    rng = np.random.default_rng(0)
    A = rng.normal(size=(dense_rows, dense_cols))
    b = A @ rng.normal(size=dense_cols) + 0.01 * rng.normal(size=dense_rows)
    f = LinearizedFactor.from_dense(jnp.asarray(A), jnp.asarray(b))

    solver = CGLS(CGLSConfig(precision=1e-10, max_iteration=400))
    t0 = time.time()
    x = solver.optimize(f, f.zero_input)
    t1 = time.time()

    x_star = np.linalg.lstsq(A, b, rcond=None)[0]
    err = np.max(np.abs(np.asarray(x.flat_array()) - x_star))
    print(f"dense {dense_rows}x{dense_cols}: {solver.step} steps, {solver.status.value}")
    print(f"Elapsed time: {(t1 - t0) * 1000:.3f} ms, max |x - x*| = {err:.3e}")


if __name__ == "__main__":
    run_benchmark()
