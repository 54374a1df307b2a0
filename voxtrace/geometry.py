"""Scan geometry for circular forward projection.

This module provides the point and voxel-index value types, the scan
parameter set and the generation of source/detector positions for a circular
orbit around the z-axis with a curved (equiangular) detector.
"""

import math
import numbers
from dataclasses import dataclass
from typing import NamedTuple, Tuple

import torch


# ============================================================================
# Value Types
# ============================================================================

class Point3D(NamedTuple):
    """Continuous position in voxel-grid world coordinates."""

    x: float
    y: float
    z: float


class VoxelIndex3D(NamedTuple):
    """Zero-based index of a grid cell."""

    i: int
    j: int
    k: int


@dataclass(frozen=True)
class ScanParameters:
    """Scalar configuration of a circular scan.

    Attributes
    ----------
    source_distance : float
        Distance D from the rotation axis to both the source and the detector arc.
    n_columns : int
        Half-count q of detector columns; columns run over ``-q..q``.
    column_spacing_deg : float
        Angular pitch between neighbouring detector columns, in degrees. A
        negative pitch reverses the column order.
    isocenter_offset : float
        Offset d added to every coordinate; places the rotation axis at
        ``(d, d)`` and the central detector row at ``z = d``.
    angular_step_deg : float
        Rotation step between views, in degrees.
    row_spacing : float
        Distance between neighbouring detector rows along z.
    n_rows : int
        Half-count qz of detector rows; rows run over ``-qz..qz``.
    """

    source_distance: float
    n_columns: int
    column_spacing_deg: float
    isocenter_offset: float
    angular_step_deg: float
    row_spacing: float
    n_rows: int

    def __post_init__(self):
        if not self.source_distance > 0.0:
            raise ValueError(f"source_distance must be positive, got {self.source_distance}")
        if not self.angular_step_deg > 0.0:
            raise ValueError(f"angular_step_deg must be positive, got {self.angular_step_deg}")
        for name in ("n_columns", "n_rows"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.n_columns < 0 or self.n_rows < 0:
            raise ValueError(
                f"Detector half-counts must be non-negative, got n_columns={self.n_columns}, "
                f"n_rows={self.n_rows}"
            )
        for name in ("source_distance", "column_spacing_deg", "isocenter_offset",
                     "angular_step_deg", "row_spacing"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")

    @property
    def n_angles(self) -> int:
        """Number of views: every multiple of the step up to 359 degrees."""
        return int(math.floor(359.0 / self.angular_step_deg)) + 1

    @property
    def sinogram_shape(self) -> Tuple[int, int, int]:
        """Output grid shape ``(2q+1, 2qz+1, n_angles)``."""
        return (2 * self.n_columns + 1, 2 * self.n_rows + 1, self.n_angles)


# ============================================================================
# Geometry Generation
# ============================================================================

def scan_angles(params, device='cpu', dtype=torch.float64):
    """Rotation angles of the views in radians.

    Parameters
    ----------
    params : ScanParameters
        Scan configuration.
    device : str or torch.device, optional
        Device for the tensor (default: 'cpu').
    dtype : torch.dtype, optional
        Data type for the tensor (default: torch.float64).

    Returns
    -------
    torch.Tensor
        Angles ``i * angular_step_deg`` converted to radians, shape (n_angles,).

    Examples
    --------
    >>> params = ScanParameters(10.0, 0, 1.0, 0.0, 90.0, 1.0, 0)
    >>> scan_angles(params).shape
    torch.Size([4])
    """
    step = math.radians(params.angular_step_deg)
    return torch.arange(params.n_angles, device=device, dtype=dtype) * step


def circular_scan_geometry(params, device='cpu', dtype=torch.float64):
    """Generate source and detector positions for every ray of a circular scan.

    The source orbits the rotation axis at radius D. Detector column j of view
    i sits on the same circle, opposite the source and rotated by
    ``j * column_spacing_deg``; detector row k sits at height
    ``k * row_spacing``. All coordinates are shifted by the isocenter offset.

    Parameters
    ----------
    params : ScanParameters
        Scan configuration.
    device : str or torch.device, optional
        Device for tensors (default: 'cpu').
    dtype : torch.dtype, optional
        Data type for tensors (default: torch.float64).

    Returns
    -------
    sources : torch.Tensor
        Source positions, shape (2q+1, 2qz+1, n_angles, 3).
    detectors : torch.Tensor
        Detector element positions, shape (2q+1, 2qz+1, n_angles, 3).

    Examples
    --------
    >>> params = ScanParameters(100.0, 2, 0.5, 32.0, 1.0, 1.0, 1)
    >>> sources, detectors = circular_scan_geometry(params)
    >>> sources.shape
    torch.Size([5, 3, 360, 3])
    """
    D = params.source_distance
    d = params.isocenter_offset
    q = params.n_columns
    qz = params.n_rows
    n_cols, n_rows, n_angles = params.sinogram_shape

    theta = scan_angles(params, device=device, dtype=dtype)
    cols = torch.arange(-q, q + 1, device=device, dtype=dtype)
    rows = torch.arange(-qz, qz + 1, device=device, dtype=dtype)

    # Source depends on the view only
    src = torch.empty((n_angles, 3), device=device, dtype=dtype)
    src[:, 0] = D * torch.cos(theta) + d
    src[:, 1] = D * torch.sin(theta) + d
    src[:, 2] = d

    # Detector column angle, shape (n_cols, n_angles)
    phi = theta[None, :] + math.pi + cols[:, None] * math.radians(params.column_spacing_deg)

    sources = src[None, None, :, :].expand(n_cols, n_rows, n_angles, 3).contiguous()
    detectors = torch.empty((n_cols, n_rows, n_angles, 3), device=device, dtype=dtype)
    detectors[..., 0] = (D * torch.cos(phi) + d)[:, None, :]
    detectors[..., 1] = (D * torch.sin(phi) + d)[:, None, :]
    detectors[..., 2] = (rows * params.row_spacing + d)[None, :, None]

    return sources, detectors


def source_inside_volume(params, extents):
    """Whether the source orbit passes through the volume box.

    Parameters
    ----------
    params : ScanParameters
        Scan configuration.
    extents : tuple of int
        Voxel counts along x, y and z.

    Returns
    -------
    bool
        True if any source position of the scan lies inside ``[0, N)`` on all axes.
    """
    nx, ny, nz = extents
    d = params.isocenter_offset
    if not 0.0 <= d < nz:
        return False
    theta = scan_angles(params)
    sx = params.source_distance * torch.cos(theta) + d
    sy = params.source_distance * torch.sin(theta) + d
    inside = (sx >= 0) & (sx < nx) & (sy >= 0) & (sy < ny)
    return bool(inside.any())
