"""Utility classes and helper functions for the voxtrace package.

This module provides device management, PyTorch/NumPy and PyTorch/Numba-CUDA
bridging, stream caching, CUDA grid computation and the host-side input
validation that guards every kernel launch.
"""

import math
import warnings

import numpy as np
import torch
from numba import cuda

from .constants import _DTYPE, _TPB_1D


# ============================================================================
# Device Management Utilities
# ============================================================================

class DeviceManager:
    """Utilities for choosing where a projection runs."""

    @staticmethod
    def get_device(data):
        """Get the device of an array or tensor.

        Parameters
        ----------
        data : numpy.ndarray or torch.Tensor
            Array whose device to determine.

        Returns
        -------
        torch.device
            Device of the tensor, or CPU for anything that is not a tensor.

        Examples
        --------
        >>> DeviceManager.get_device(np.zeros(3))
        device(type='cpu')
        """
        return data.device if isinstance(data, torch.Tensor) else torch.device("cpu")

    @staticmethod
    def use_cuda(data):
        """Decide whether `data` should be processed by the CUDA kernel.

        A CUDA tensor runs on the GPU when Numba can reach a CUDA driver. If it
        cannot, a ``RuntimeWarning`` is issued and the CPU kernel is used.

        Parameters
        ----------
        data : numpy.ndarray or torch.Tensor
            Volume handed to the projector.

        Returns
        -------
        bool
            True when the CUDA kernel should be launched.
        """
        if not (isinstance(data, torch.Tensor) and data.is_cuda):
            return False
        if cuda.is_available():
            return True
        warnings.warn(
            "Volume is a CUDA tensor but Numba cannot access a CUDA device; "
            "falling back to the CPU kernel.",
            RuntimeWarning,
            stacklevel=3,
        )
        return False


# ============================================================================
# PyTorch-NumPy and PyTorch-CUDA Bridges
# ============================================================================

class TorchCUDABridge:
    """Bridge between PyTorch tensors and Numba CUDA arrays."""

    @staticmethod
    def tensor_to_cuda_array(tensor):
        """Convert a PyTorch CUDA tensor to a Numba CUDA DeviceNDArray.

        Provides a zero-copy view of a detached PyTorch tensor as a Numba CUDA
        array. The returned array shares memory with the original tensor.

        Parameters
        ----------
        tensor : torch.Tensor
            PyTorch tensor on a CUDA device.

        Returns
        -------
        numba.cuda.cudadrv.devicearray.DeviceNDArray
            Numba CUDA array view sharing memory with `tensor`.

        Raises
        ------
        ValueError
            If `tensor` is not on a CUDA device.
        """
        if not tensor.is_cuda:
            raise ValueError("Tensor must be on CUDA device")
        return cuda.as_cuda_array(tensor.detach())


def _to_numpy(data, dtype=None):
    """Return a C-contiguous NumPy view or copy of an array-like or tensor.

    Parameters
    ----------
    data : array-like or torch.Tensor
        Input data. Tensors are detached and moved to the CPU.
    dtype : numpy.dtype, optional
        Target dtype. Keeps the input dtype when None.

    Returns
    -------
    numpy.ndarray
        C-contiguous array.
    """
    if isinstance(data, torch.Tensor):
        data = data.detach().cpu().numpy()
    return np.ascontiguousarray(data, dtype=dtype)


# ============================================================================
# Stream Management (cached external Numba stream)
# ============================================================================

_cached_stream_ptr = None
_cached_numba_stream = None


def _get_numba_external_stream_for(pt_stream=None):
    """Return a cached numba.cuda.external_stream for the current PyTorch CUDA stream.

    Caches by the underlying CUDA stream pointer to avoid repeated construction.

    Parameters
    ----------
    pt_stream : torch.cuda.Stream, optional
        PyTorch CUDA stream. If None, uses current stream.

    Returns
    -------
    numba.cuda.cudadrv.driver.Stream
        Numba external stream wrapper around PyTorch CUDA stream.
    """
    global _cached_stream_ptr, _cached_numba_stream
    if pt_stream is None:
        pt_stream = torch.cuda.current_stream()
    ptr = int(pt_stream.cuda_stream)
    if _cached_stream_ptr == ptr and _cached_numba_stream is not None:
        return _cached_numba_stream
    numba_stream = cuda.external_stream(pt_stream.cuda_stream)
    _cached_stream_ptr = ptr
    _cached_numba_stream = numba_stream
    return numba_stream


# ============================================================================
# Input Validation
# ============================================================================

def _validate_volume(volume):
    """Check that `volume` is a non-empty 3D grid.

    Parameters
    ----------
    volume : numpy.ndarray or torch.Tensor
        Volume indexed ``[x, y, z]``.

    Raises
    ------
    ValueError
        If the volume is not 3D or has an empty axis.
    """
    shape = tuple(volume.shape)
    if len(shape) != 3:
        raise ValueError(
            f"Expected a 3D volume indexed [x, y, z], got {len(shape)}D with shape {shape}"
        )
    if min(shape) <= 0:
        raise ValueError(f"Volume extents must be positive, got {shape}")


def _validate_extents(extents):
    """Normalise and check a grid extent triple.

    Parameters
    ----------
    extents : sequence of int
        Voxel counts along x, y and z.

    Returns
    -------
    tuple of int
        The extents as plain integers.

    Raises
    ------
    ValueError
        If there are not exactly three positive extents.
    """
    extents = tuple(int(n) for n in extents)
    if len(extents) != 3 or min(extents) <= 0:
        raise ValueError(f"Grid extents must be three positive integers, got {extents}")
    return extents


def _validate_rays(src, det):
    """Check flattened ray endpoints before they reach a kernel.

    Parameters
    ----------
    src : numpy.ndarray
        Source points, shape (n_rays, 3).
    det : numpy.ndarray
        Detector points, shape (n_rays, 3).

    Raises
    ------
    ValueError
        If a coordinate is not finite or a ray has zero length.
    """
    if not (np.all(np.isfinite(src)) and np.all(np.isfinite(det))):
        raise ValueError("Source and detector coordinates must be finite")
    zero_length = np.all(src == det, axis=-1)
    if np.any(zero_length):
        first = int(np.argmax(zero_length))
        raise ValueError(
            f"Source and detector coincide for ray {first} at {tuple(src[first])}; "
            f"a ray needs a non-zero direction"
        )


def _as_points(points, name):
    """Convert point data of shape (..., 3) to float64 NumPy.

    Parameters
    ----------
    points : array-like or torch.Tensor
        Points with a trailing axis of size 3.
    name : str
        Argument name used in error messages.

    Returns
    -------
    numpy.ndarray
        Array of shape (..., 3) and dtype `_DTYPE`.

    Raises
    ------
    ValueError
        If the trailing axis does not have size 3.
    """
    arr = _to_numpy(points, dtype=_DTYPE)
    if arr.ndim == 0 or arr.shape[-1] != 3:
        raise ValueError(f"{name} must have a trailing axis of size 3, got shape {arr.shape}")
    return arr


# ============================================================================
# CUDA Grid Computation
# ============================================================================

def _grid_1d(n, tpb=_TPB_1D):
    """Compute 1D CUDA grid and block dimensions.

    Parameters
    ----------
    n : int
        Number of rays.
    tpb : int, optional
        Threads per block (default is `_TPB_1D`).

    Returns
    -------
    grid : int
        Number of blocks.
    tpb : int
        Threads per block.

    Examples
    --------
    >>> _grid_1d(1000)
    (4, 256)
    """
    return max(1, math.ceil(n / tpb)), tpb
