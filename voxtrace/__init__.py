# voxtrace/__init__.py
"""voxtrace - Voxel Ray Traversal Forward Projection Package.

A Numba-accelerated forward projector for 3D voxel volumes: exact
length-weighted line integrals along source-detector rays, swept over a
circular scan to produce a sinogram. Runs on the CPU or, for PyTorch CUDA
tensors, on the GPU.
"""

from .projectors import (
    trace,
    trace_rays,
    voxel_path,
    project,
)

from .geometry import (
    Point3D,
    VoxelIndex3D,
    ScanParameters,
    scan_angles,
    circular_scan_geometry,
)

__version__ = '1.0.0'

__all__ = [
    'trace',
    'trace_rays',
    'voxel_path',
    'project',
    'Point3D',
    'VoxelIndex3D',
    'ScanParameters',
    'scan_angles',
    'circular_scan_geometry',
]
