# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
LSQ-JIT: a JAX least-squares core for factor-graph estimation.

Layers, leaves first:

    core.vectors / core.matrix3        fixed-size kernels, tensor vectors
    optimization.gaussian_factor       linear-operator contract
    optimization.linearization         nonlinear factor -> linear operator
    optimization.cgls                  CGLS solver

All kernels are specified over doubles, so 64-bit mode is switched on for
JAX when the package is imported.
"""

import jax

jax.config.update("jax_enable_x64", True)

__version__ = "0.1.0"
