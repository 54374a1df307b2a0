"""Numba kernels for voxel ray traversal.

This subpackage contains the single-ray traversal, compiled for the CPU and
as a CUDA device function, and the batched ray kernels built on top of it.
"""

from .traversal import (
    _march_ray_cpu,
    _march_ray_device,
)

from .rays import (
    _trace_rays_cpu_kernel,
    _trace_rays_cuda_kernel,
)

__all__ = [
    '_march_ray_cpu',
    '_march_ray_device',
    '_trace_rays_cpu_kernel',
    '_trace_rays_cuda_kernel',
]
