"""Batched ray kernels for the CPU and CUDA back ends.

Both kernels map the single-ray traversal over a flat list of
source-detector pairs. Rays are independent, so each ray writes exactly one
output element and no synchronisation is needed.
"""

from numba import cuda, prange

from ..constants import _CPU_PARALLEL_DECORATOR, _KERNEL_DECORATOR
from .traversal import _march_ray_cpu, _march_ray_device


# ============================================================================
# CPU Kernel
# ============================================================================

@_CPU_PARALLEL_DECORATOR
def _trace_rays_cpu_kernel(vol, src, det, out, path_idx, path_len):
    """Trace a batch of rays on the CPU with one ray per loop iteration.

    Parameters
    ----------
    vol : numpy.ndarray
        3D volume indexed ``vol[x, y, z]``.
    src : numpy.ndarray
        Source points, shape (n_rays, 3).
    det : numpy.ndarray
        Detector points, shape (n_rays, 3).
    out : numpy.ndarray
        Output line integrals, shape (n_rays,).
    path_idx : numpy.ndarray
        Unused segment buffer, shape (0, 3); recording is disabled for batches.
    path_len : numpy.ndarray
        Unused segment buffer, shape (0,).
    """
    for r in prange(src.shape[0]):
        out[r] = _march_ray_cpu(
            src[r, 0], src[r, 1], src[r, 2],
            det[r, 0], det[r, 1], det[r, 2],
            vol, path_idx, path_len, 0
        )


# ============================================================================
# CUDA Kernel
# ============================================================================

@_KERNEL_DECORATOR
def _trace_rays_cuda_kernel(d_vol, d_src, d_det, d_out, d_path_idx, d_path_len):
    """Trace a batch of rays on the GPU with one thread per ray.

    Parameters
    ----------
    d_vol : numba.cuda.cudadrv.devicearray.DeviceNDArray
        3D volume indexed ``vol[x, y, z]``.
    d_src : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Source points, shape (n_rays, 3).
    d_det : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Detector points, shape (n_rays, 3).
    d_out : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Output line integrals, shape (n_rays,).
    d_path_idx : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Placeholder segment buffer, never written.
    d_path_len : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Placeholder segment buffer, never written.
    """
    r = cuda.grid(1)
    if r >= d_src.shape[0]:
        return
    d_out[r] = _march_ray_device(
        d_src[r, 0], d_src[r, 1], d_src[r, 2],
        d_det[r, 0], d_det[r, 1], d_det[r, 2],
        d_vol, d_path_idx, d_path_len, 0
    )
