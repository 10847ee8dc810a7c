from __future__ import annotations

import logging

import jax.numpy as jnp
import numpy as np
import pytest

from lsq_jit.core.types import VariableAssignments
from lsq_jit.core.vectors import Vector3
from lsq_jit.optimization.cgls import CGLS, CGLSConfig, CGLSStatus, cgls
from lsq_jit.optimization.linearization import LinearizedFactor, linearize
from lsq_jit.slam.factors import BetweenFactor


def _overdetermined_system(seed: int = 0):
    """Random full-rank 6x3 A and a consistent-plus-noise b."""
    rng = np.random.default_rng(seed)
    A = rng.normal(size=(6, 3))
    x_true = np.array([1.0, -2.0, 0.5])
    b = A @ x_true + 0.01 * rng.normal(size=6)
    return A, b


def test_cgls_matches_normal_equations():
    """
    min ||A x - b||² from x = 0 converges to (AᵀA)⁻¹ Aᵀ b.
    """
    A, b = _overdetermined_system()
    f = LinearizedFactor.from_dense(jnp.asarray(A), jnp.asarray(b))

    solver = CGLS(CGLSConfig(precision=1e-10, max_iteration=400))
    x = solver.optimize(f, f.zero_input)

    x_star = np.linalg.solve(A.T @ A, A.T @ b)
    assert np.allclose(np.asarray(x.flat_array()), x_star, atol=1e-6)
    assert solver.status == CGLSStatus.CONVERGED
    assert solver.step < 400


def test_functional_wrapper():
    A, b = _overdetermined_system(seed=1)
    f = LinearizedFactor.from_dense(jnp.asarray(A), jnp.asarray(b))

    x = cgls(f, f.zero_input)

    x_star = np.linalg.solve(A.T @ A, A.T @ b)
    assert np.allclose(np.asarray(x.flat_array()), x_star, atol=1e-6)


def test_zero_error_converges_trivially():
    """
    If the residual at the initial point is zero, gamma is zero and the
    initial estimate comes back untouched (no NaN from 0/0).
    """
    A, _ = _overdetermined_system()
    f = LinearizedFactor.from_dense(jnp.asarray(A), jnp.zeros(6))

    solver = CGLS()
    x0 = f.zero_input
    x = solver.optimize(f, x0)

    assert x is x0
    assert solver.status == CGLSStatus.CONVERGED
    assert solver.step == 1


def test_zero_operator_does_not_produce_nan():
    f = LinearizedFactor.from_dense(jnp.zeros((4, 2)), jnp.ones(4))

    solver = CGLS()
    x = solver.optimize(f, f.zero_input)

    assert solver.status == CGLSStatus.CONVERGED
    assert bool(jnp.all(jnp.isfinite(x.flat_array())))


def test_early_exit_after_exactly_one_step(caplog):
    """
    For A = [2], b = [4] the first step lands on x = 2 exactly, the next
    direction is zero, so alpha²·||p||² < precision right away.
    """
    f = LinearizedFactor.from_dense(jnp.array([[2.0]]), jnp.array([4.0]))

    solver = CGLS(CGLSConfig(precision=1e-10, max_iteration=400))
    with caplog.at_level(logging.INFO, logger="lsq_jit.optimization.cgls"):
        x = solver.optimize(f, f.zero_input)

    assert solver.step == 1
    assert solver.status == CGLSStatus.CONVERGED
    assert float(x[0].tensor[0]) == pytest.approx(2.0)
    assert any("early exit" in r.getMessage() for r in caplog.records)


def test_max_iteration_returns_best_effort_and_warns(caplog):
    A, b = _overdetermined_system()
    f = LinearizedFactor.from_dense(jnp.asarray(A), jnp.asarray(b))

    solver = CGLS(CGLSConfig(precision=1e-10, max_iteration=2))
    with caplog.at_level(logging.WARNING, logger="lsq_jit.optimization.cgls"):
        x = solver.optimize(f, f.zero_input)

    assert solver.status == CGLSStatus.MAX_ITERATIONS_REACHED
    assert solver.step == 2
    # one CG step was taken, so the objective went down
    assert f.error_at(x) < f.error_at(f.zero_input)
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_step_counter_persists_across_calls():
    f = LinearizedFactor.from_dense(jnp.array([[2.0]]), jnp.array([4.0]))
    solver = CGLS(CGLSConfig(max_iteration=3))

    solver.optimize(f, f.zero_input)
    assert solver.step == 1
    solver.optimize(f, f.zero_input)
    assert solver.step == 2

    # the third call uses up the shared budget before iterating
    x0 = f.zero_input
    x = solver.optimize(f, x0)
    assert solver.step == 3
    assert x is x0
    assert solver.status == CGLSStatus.MAX_ITERATIONS_REACHED

    solver.reset()
    assert solver.step == 0
    assert solver.status == CGLSStatus.INITIALIZING
    x = solver.optimize(f, f.zero_input)
    assert float(x[0].tensor[0]) == pytest.approx(2.0)


def test_solve_linearized_between_factor():
    """
    Linearize an odometry-style factor, solve for the increment with CGLS
    and write it back: the factor is then satisfied.
    """
    values = VariableAssignments()
    a = values.store(Vector3(0.0, 0.0, 0.0))
    b = values.store(Vector3(0.5, 0.2, 0.0))
    f = BetweenFactor(edges=(a, b), measurement=Vector3(1.0, 0.0, 0.0))

    lin = linearize(f, values)
    delta = CGLS().optimize(lin, lin.zero_input)
    values.move(lin.edges, delta)

    diff = values[b] - values[a]
    assert float(diff.x) == pytest.approx(1.0, abs=1e-9)
    assert float(diff.y) == pytest.approx(0.0, abs=1e-9)
    assert float(diff.z) == pytest.approx(0.0, abs=1e-9)
    # minimum-norm increment splits the correction evenly
    assert float(values[a].x) == pytest.approx(-0.25, abs=1e-9)
    assert f.error_at(*values.values_at(f.edges)) == pytest.approx(0.0, abs=1e-12)
