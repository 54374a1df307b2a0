"""Forward projection entry points.

This module contains the host-side functions that validate inputs, move data
between PyTorch, NumPy and Numba, and launch the ray traversal kernels:
single-ray tracing, batched tracing, voxel path inspection and the circular
scan projection producing a full sinogram.
"""

import warnings

import numpy as np
import torch

from .constants import _DTYPE
from .geometry import VoxelIndex3D, circular_scan_geometry, source_inside_volume
from .kernels import (
    _march_ray_cpu,
    _trace_rays_cpu_kernel,
    _trace_rays_cuda_kernel,
)
from .utils import (
    DeviceManager,
    TorchCUDABridge,
    _as_points,
    _get_numba_external_stream_for,
    _grid_1d,
    _to_numpy,
    _validate_extents,
    _validate_rays,
    _validate_volume,
)


def _empty_path_buffers():
    return np.empty((0, 3), dtype=np.int64), np.empty(0, dtype=_DTYPE)


# ============================================================================
# Single Ray
# ============================================================================

def trace(source, detector, volume):
    """Line integral of a volume along one source-detector segment.

    Parameters
    ----------
    source : Point3D or array-like of 3 floats
        Ray start, in voxel-grid coordinates.
    detector : Point3D or array-like of 3 floats
        Ray end, in voxel-grid coordinates.
    volume : numpy.ndarray or torch.Tensor
        3D volume indexed ``[x, y, z]``. Voxel ``(i, j, k)`` covers the unit
        cube with lower corner ``(i, j, k)``.

    Returns
    -------
    float
        Sum over visited voxels of voxel value times the length of the segment
        inside that voxel. 0 when the segment misses the volume box.

    Raises
    ------
    ValueError
        If the volume is not a non-empty 3D grid, or source and detector coincide.

    Examples
    --------
    >>> vol = np.zeros((3, 3, 3))
    >>> vol[1, 1, 1] = 5.0
    >>> trace((-10.0, 1.5, 1.5), (10.0, 1.5, 1.5), vol)
    5.0
    """
    _validate_volume(volume)
    src = _as_points(source, "source").reshape(-1)
    det = _as_points(detector, "detector").reshape(-1)
    if src.shape != (3,) or det.shape != (3,):
        raise ValueError("trace expects a single source and a single detector point")
    _validate_rays(src[None, :], det[None, :])

    vol = _to_numpy(volume)
    path_idx, path_len = _empty_path_buffers()
    return float(_march_ray_cpu(
        src[0], src[1], src[2], det[0], det[1], det[2],
        vol, path_idx, path_len, 0
    ))


def voxel_path(source, detector, extents):
    """List the voxels a ray visits and the length traversed inside each.

    Parameters
    ----------
    source : Point3D or array-like of 3 floats
        Ray start.
    detector : Point3D or array-like of 3 floats
        Ray end.
    extents : sequence of int
        Voxel counts along x, y and z.

    Returns
    -------
    list of tuple(VoxelIndex3D, float)
        Visited voxels in traversal order with their segment lengths. Empty
        when the ray misses the grid.

    Examples
    --------
    >>> voxel_path((0.0, 0.5, 0.5), (2.0, 0.5, 0.5), (2, 1, 1))
    [(VoxelIndex3D(i=0, j=0, k=0), 1.0), (VoxelIndex3D(i=1, j=0, k=0), 1.0)]
    """
    extents = _validate_extents(extents)
    src = _as_points(source, "source").reshape(-1)
    det = _as_points(detector, "detector").reshape(-1)
    if src.shape != (3,) or det.shape != (3,):
        raise ValueError("voxel_path expects a single source and a single detector point")
    _validate_rays(src[None, :], det[None, :])

    # Each step advances one index, so a ray visits fewer than sum(extents) cells
    capacity = sum(extents) + 3
    path_idx = np.zeros((capacity, 3), dtype=np.int64)
    path_len = np.full(capacity, -1.0, dtype=_DTYPE)
    # Values are irrelevant; only the grid shape drives the traversal
    indicator = np.zeros(extents, dtype=_DTYPE)
    _march_ray_cpu(
        src[0], src[1], src[2], det[0], det[1], det[2],
        indicator, path_idx, path_len, capacity
    )

    visited = path_len >= 0.0
    return [
        (VoxelIndex3D(int(i), int(j), int(k)), float(seg))
        for (i, j, k), seg in zip(path_idx[visited], path_len[visited])
    ]


# ============================================================================
# Ray Batches
# ============================================================================

def trace_rays(volume, sources, detectors):
    """Line integrals for a batch of rays.

    CUDA tensors are traced on the GPU when Numba has a CUDA device; all
    other inputs are traced by the multi-threaded CPU kernel.

    Parameters
    ----------
    volume : numpy.ndarray or torch.Tensor
        3D volume indexed ``[x, y, z]``.
    sources : array-like or torch.Tensor
        Source points, shape (..., 3).
    detectors : array-like or torch.Tensor
        Detector points, same shape as `sources`.

    Returns
    -------
    numpy.ndarray or torch.Tensor
        Line integrals with the leading shape of `sources`. A tensor on the
        volume's device when `volume` is a tensor, otherwise a NumPy array.

    Raises
    ------
    ValueError
        If the volume is invalid, the point arrays disagree in shape, or a ray
        has zero length.

    Examples
    --------
    >>> vol = np.ones((4, 4, 4))
    >>> src = np.array([[-1.0, 2.5, 2.5], [2.5, -1.0, 2.5]])
    >>> det = np.array([[5.0, 2.5, 2.5], [2.5, 5.0, 2.5]])
    >>> trace_rays(vol, src, det)
    array([4., 4.])
    """
    _validate_volume(volume)
    src = _as_points(sources, "sources")
    det = _as_points(detectors, "detectors")
    if src.shape != det.shape:
        raise ValueError(
            f"sources and detectors must have the same shape, got {src.shape} and {det.shape}"
        )
    batch_shape = src.shape[:-1]
    src = src.reshape(-1, 3)
    det = det.reshape(-1, 3)
    _validate_rays(src, det)

    is_tensor = isinstance(volume, torch.Tensor)
    if DeviceManager.use_cuda(volume):
        out = _trace_rays_cuda(volume, src, det)
        return out.reshape(batch_shape)

    vol = _to_numpy(volume)
    out = np.zeros(src.shape[0], dtype=_DTYPE)
    if src.shape[0] > 0:
        path_idx, path_len = _empty_path_buffers()
        _trace_rays_cpu_kernel(vol, src, det, out, path_idx, path_len)
    out = out.reshape(batch_shape)
    if is_tensor:
        return torch.from_numpy(out).to(DeviceManager.get_device(volume))
    return out


def _trace_rays_cuda(volume, src, det):
    """Launch the CUDA ray kernel on a CUDA tensor volume.

    Parameters
    ----------
    volume : torch.Tensor
        3D CUDA tensor indexed ``[x, y, z]``.
    src : numpy.ndarray
        Source points, shape (n_rays, 3).
    det : numpy.ndarray
        Detector points, shape (n_rays, 3).

    Returns
    -------
    torch.Tensor
        Line integrals, shape (n_rays,), on the volume's device.
    """
    device = volume.device
    vol = volume.detach().contiguous()
    src_t = torch.from_numpy(src).to(device)
    det_t = torch.from_numpy(det).to(device)
    n_rays = src_t.shape[0]
    out = torch.zeros(n_rays, dtype=torch.float64, device=device)
    if n_rays == 0:
        return out

    # Placeholder buffers; batched tracing never records paths
    path_idx = torch.zeros((1, 3), dtype=torch.int64, device=device)
    path_len = torch.zeros(1, dtype=torch.float64, device=device)

    grid, tpb = _grid_1d(n_rays)
    numba_stream = _get_numba_external_stream_for(torch.cuda.current_stream(device))
    _trace_rays_cuda_kernel[grid, tpb, numba_stream](
        TorchCUDABridge.tensor_to_cuda_array(vol),
        TorchCUDABridge.tensor_to_cuda_array(src_t),
        TorchCUDABridge.tensor_to_cuda_array(det_t),
        TorchCUDABridge.tensor_to_cuda_array(out),
        TorchCUDABridge.tensor_to_cuda_array(path_idx),
        TorchCUDABridge.tensor_to_cuda_array(path_len),
    )
    return out


# ============================================================================
# Circular Scan
# ============================================================================

def project(volume, params):
    """Forward-project a volume over a circular scan.

    For view i, detector column j in ``-q..q`` and row k in ``-qz..qz`` the
    line integral from the source to the detector element is stored at
    ``sinogram[j + q, k + qz, i]``.

    Parameters
    ----------
    volume : numpy.ndarray or torch.Tensor
        3D volume indexed ``[x, y, z]``.
    params : ScanParameters
        Scan configuration.

    Returns
    -------
    numpy.ndarray or torch.Tensor
        Sinogram of shape ``params.sinogram_shape``; a tensor on the volume's
        device when `volume` is a tensor.

    Raises
    ------
    ValueError
        If the volume is invalid or the geometry yields a zero-length ray.

    Warns
    -----
    RuntimeWarning
        If the source orbit passes inside the volume box, in which case rays
        start at the source rather than at the box face.

    Examples
    --------
    >>> params = ScanParameters(source_distance=20.0, n_columns=0, column_spacing_deg=1.0,
    ...                         isocenter_offset=2.0, angular_step_deg=90.0,
    ...                         row_spacing=1.0, n_rows=0)
    >>> project(np.ones((4, 4, 4)), params).shape
    (1, 1, 4)
    """
    _validate_volume(volume)
    if source_inside_volume(params, tuple(volume.shape)):
        warnings.warn(
            f"Source orbit of radius {params.source_distance} passes inside the volume "
            f"of shape {tuple(volume.shape)}; rays are clipped at the source.",
            RuntimeWarning,
            stacklevel=2,
        )

    sources, detectors = circular_scan_geometry(params, device='cpu', dtype=torch.float64)
    return trace_rays(volume, sources, detectors)
