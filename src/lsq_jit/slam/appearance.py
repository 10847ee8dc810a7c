# Copyright (c) 2025.
# This file is part of LSQ-JIT, released under the MIT License.
"""
PPCA appearance tracking factor.

`PPCATrackingFactor` ties a target's pose in an image to a latent code of a
probabilistic-PCA appearance model. Its error is the difference between the
appearance the model generates and the patch cropped from the image:

    error_vector(pose, latent) = (mu + W·latent) - patch(image, pose)

with ``W.shape == mu.shape + (5,)``.

Cropping is not done here. The factor talks to a `PatchCropper`, which
returns a patch centred on a pose and, on request, the Jacobian of that
patch with respect to the pose.

Custom linearization
--------------------
Differentiating through an image crop is expensive and noisy, and the
cropper can usually give its Jacobian directly. `PPCALinearizer` therefore
builds the linearization by hand,

    error = patch(pose) - (mu + W·latent)
    H     = [ -∂patch/∂pose | W ]

and `PPCATrackingFactor` installs it as its ``linearizer``. The generic
autodiff path still works for croppers written in JAX, and gives the same
result.

Poses are `Vector3` ``(x, y, theta)`` and are updated additively.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, Tuple

import jax.numpy as jnp

from ..core.errors import ShapeMismatch
from ..core.vectors import TangentTuple, TensorVector, Vector3, Vector5
from ..optimization.linearization import LinearizedFactor, NonlinearFactor, hstack_jacobians


class PatchCropper(Protocol):
    """Boundary to the image patch service."""

    def patch(self, image: jnp.ndarray, center: Vector3, rows: int, cols: int) -> jnp.ndarray: ...

    def patch_with_jacobian(
        self, image: jnp.ndarray, center: Vector3, rows: int, cols: int
    ) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """Returns ``(patch, d patch / d center)``, the latter of shape ``patch.shape + (3,)``."""
        ...


class PPCALinearizer:
    """Linearizes a `PPCATrackingFactor` from the cropper's own Jacobian."""

    def linearize(self, factor: "PPCATrackingFactor", values: Sequence[Any]) -> LinearizedFactor:
        pose, latent = values
        patch, patch_H_pose = factor.cropper.patch_with_jacobian(
            factor.measurement, pose, factor.rows, factor.cols
        )
        error = TensorVector(patch) - factor.generated_appearance(latent)
        return LinearizedFactor(
            error=error,
            jacobian=hstack_jacobians([-jnp.asarray(patch_H_pose), factor.W]),
            edges=tuple(factor.edges),
            zero_input=TangentTuple((pose.zero_tangent(), latent.zero_tangent())),
        )


@dataclass
class PPCATrackingFactor(NonlinearFactor):
    """
    A factor over a target's pose (`Vector3`) and PPCA latent code (`Vector5`).

    - measurement: the image containing the target
    - W: PPCA weight matrix, shape ``mu.shape + (5,)``
    - mu: PPCA mean patch
    - cropper: patch service used to read the image at a pose
    """
    measurement: jnp.ndarray
    W: jnp.ndarray
    mu: TensorVector
    cropper: PatchCropper

    linearizer = PPCALinearizer()

    def __post_init__(self) -> None:
        self.edges = tuple(self.edges)
        if len(self.edges) != 2:
            raise ShapeMismatch(f"PPCATrackingFactor needs 2 edges, got {len(self.edges)}")
        self.W = jnp.asarray(self.W)
        expected = self.mu.shape + (Vector5.dimension,)
        if tuple(self.W.shape) != expected:
            raise ShapeMismatch(f"W has shape {tuple(self.W.shape)}, expected {expected}")

    @property
    def rows(self) -> int:
        return self.mu.shape[0]

    @property
    def cols(self) -> int:
        return self.mu.shape[1]

    def generated_appearance(self, latent: Vector5) -> TensorVector:
        """The patch the PPCA model generates for ``latent``."""
        return self.mu + TensorVector(self.W @ latent.flat_array())

    def error_vector(self, pose: Vector3, latent: Vector5) -> TensorVector:
        patch = self.cropper.patch(self.measurement, pose, self.rows, self.cols)
        return self.generated_appearance(latent) - TensorVector(patch)
