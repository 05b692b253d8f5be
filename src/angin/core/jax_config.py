"""JAX configuration for the solver kernels: 64-bit precision and GPU check."""

import jax
import jax.numpy as jnp

jax.config.update("jax_enable_x64", True)


def is_gpu_available() -> bool:
    """Check if a GPU device is visible to JAX."""
    try:
        return len(jax.devices('gpu')) > 0
    except RuntimeError:
        return False


__all__ = ['jax', 'jnp', 'is_gpu_available']
