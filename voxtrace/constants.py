"""Global constants and configuration for the voxtrace package.

This module defines core constants used throughout voxtrace, including the
working data type, the numerical tolerances of the voxel traversal, CUDA
thread block sizes and the Numba JIT decorators shared by all kernels.
"""

import numpy as np
from numba import cuda, njit

# ---------------------------------------------------------------------------
# Data Types and Numerical Constants
# ---------------------------------------------------------------------------

_DTYPE = np.float64
"""Default data type for ray geometry and projection output (numpy.float64)."""

_ALIGN_TOLERANCE = 1e-4
"""Absolute tolerance, in voxel units, for grid-line alignment tests.

An entry coordinate closer than this to an integer is treated as lying on
that grid line, and a direction component smaller than this in magnitude is
treated as zero (the ray never crosses grid lines on that axis).
"""

_STEP_SENTINEL = 1e6
"""Stand-in for an infinite crossing distance on axes the ray does not move along."""

_TIE_TOLERANCE = 1e-9
"""Two crossing counters closer than this are crossed in the same step."""

# ---------------------------------------------------------------------------
# CUDA Thread Block Configuration
# ---------------------------------------------------------------------------

# One thread per ray; rays are flattened so a 1D launch covers any batch shape
_TPB_1D = 256
"""CUDA threads-per-block for the batched ray kernel."""

# ---------------------------------------------------------------------------
# Numba JIT Decorators
# ---------------------------------------------------------------------------

# No fastmath here: the traversal relies on exact comparisons against the
# alignment tolerance, which fastmath reassociation would perturb
_CPU_DECORATOR = njit(cache=True)
"""Numba CPU JIT decorator for scalar traversal routines."""

_CPU_PARALLEL_DECORATOR = njit(cache=True, parallel=True)
"""Numba CPU JIT decorator for multi-threaded batched ray kernels."""

_DEVICE_DECORATOR = cuda.jit(device=True)
"""Numba CUDA decorator for device functions shared with the CPU kernels."""

_KERNEL_DECORATOR = cuda.jit(cache=True)
"""Numba CUDA JIT decorator for batched ray kernels."""
