# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
Exception types for LSQ-JIT.

Only precondition violations are exceptions. Numerical degeneracy inside the
CGLS loop and running out of iterations are reported through
`optimization.cgls.CGLSStatus` instead.
"""

from __future__ import annotations


class LsqJitError(Exception):
    """Base class for all LSQ-JIT errors."""


class ShapeMismatch(LsqJitError, ValueError):
    """Raised when a vector, matrix or Jacobian is built with the wrong shape."""
