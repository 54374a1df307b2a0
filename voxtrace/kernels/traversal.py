"""Single-ray voxel traversal shared by the CPU and CUDA kernels.

This module contains the incremental grid-crossing (Siddon-type) ray marcher
that computes the length-weighted sum of voxel values along a source-detector
segment clipped to the volume box. The same Python function is compiled once
for the CPU and once as a CUDA device function, so both back ends produce
identical line integrals.
"""

import math

from ..constants import (
    _ALIGN_TOLERANCE,
    _CPU_DECORATOR,
    _DEVICE_DECORATOR,
    _STEP_SENTINEL,
    _TIE_TOLERANCE,
)

_AXIS_NONE = -1
_AXIS_X = 0
_AXIS_Y = 1
_AXIS_Z = 2


def _march_ray(sx, sy, sz, ex, ey, ez, vol, path_idx, path_len, max_segments):
    """Integrate a volume along the segment from a source to a detector point.

    Voxel ``(i, j, k)`` of `vol` covers ``[i, i+1) x [j, j+1) x [k, k+1)`` in
    world coordinates. The ray is parametrised by its distance ``lam`` from the
    source; per axis a counter holds the distance left until the next grid-line
    crossing, and each step consumes the smallest counter.

    Parameters
    ----------
    sx, sy, sz : float
        Source point.
    ex, ey, ez : float
        Detector point.
    vol : array
        3D volume indexed ``vol[x, y, z]``; its shape is the grid extent.
    path_idx : array of int, shape (M, 3)
        Receives the visited voxel indices when `max_segments` > 0.
    path_len : array of float, shape (M,)
        Receives the traversed length inside each visited voxel.
    max_segments : int
        Number of segments to record, 0 to disable recording.

    Returns
    -------
    float
        Length-weighted sum of voxel values along the clipped segment, 0 when
        the ray misses the grid.

    Notes
    -----
    The outer stepping axis is chosen between x and y only, by comparing the
    magnitude of the direction components. When the entry point sits on a grid
    line of that axis and neither other axis is crossed before the exit, the
    ray is a straight row of voxels and is summed without weights.
    """
    nx = vol.shape[0]
    ny = vol.shape[1]
    nz = vol.shape[2]

    # === RAY DIRECTION AND PER-AXIS STEP LENGTHS ===
    rx = ex - sx
    ry = ey - sy
    rz = ez - sz
    length = math.sqrt(rx * rx + ry * ry + rz * rz)
    if length == 0.0:
        return 0.0

    ax = abs(rx)
    ay = abs(ry)
    az = abs(rz)
    step_x = 1 if rx > 0.0 else -1
    step_y = 1 if ry > 0.0 else -1
    step_z = 1 if rz > 0.0 else -1
    moves_x = ax > _ALIGN_TOLERANCE
    moves_y = ay > _ALIGN_TOLERANCE
    moves_z = az > _ALIGN_TOLERANCE

    # Distance along the ray that spans one voxel on each axis
    len_x = length / ax if moves_x else _STEP_SENTINEL
    len_y = length / ay if moves_y else _STEP_SENTINEL
    len_z = length / az if moves_z else _STEP_SENTINEL

    # === SLAB TEST AGAINST THE GRID BOX ===
    lam_min = 0.0
    lam_max = length
    if moves_x:
        lam_a = (0.0 - sx) * length / rx
        lam_b = (nx - sx) * length / rx
        lam_min = max(lam_min, min(lam_a, lam_b))
        lam_max = min(lam_max, max(lam_a, lam_b))
    elif sx < 0.0 or sx > nx:
        return 0.0
    if moves_y:
        lam_a = (0.0 - sy) * length / ry
        lam_b = (ny - sy) * length / ry
        lam_min = max(lam_min, min(lam_a, lam_b))
        lam_max = min(lam_max, max(lam_a, lam_b))
    elif sy < 0.0 or sy > ny:
        return 0.0
    if moves_z:
        lam_a = (0.0 - sz) * length / rz
        lam_b = (nz - sz) * length / rz
        lam_min = max(lam_min, min(lam_a, lam_b))
        lam_max = min(lam_max, max(lam_a, lam_b))
    elif sz < 0.0 or sz > nz:
        return 0.0

    if lam_min >= lam_max:
        return 0.0

    # === ENTRY VOXEL ===
    px = max(sx + lam_min * rx / length, 0.0)
    py = max(sy + lam_min * ry / length, 0.0)
    pz = max(sz + lam_min * rz / length, 0.0)

    # Checked z, y, x: when several axes are aligned, x takes precedence
    entry_axis = _AXIS_NONE

    grid_z = math.floor(pz + 0.5)
    if abs(pz - grid_z) < _ALIGN_TOLERANCE:
        iz = int(grid_z)
        next_iz = iz + step_z
        if rz < 0.0:
            iz -= 1
        entry_axis = _AXIS_Z
    else:
        iz = int(math.floor(pz))
        next_iz = iz if rz < 0.0 else iz + 1

    grid_y = math.floor(py + 0.5)
    if abs(py - grid_y) < _ALIGN_TOLERANCE:
        iy = int(grid_y)
        next_iy = iy + step_y
        if ry < 0.0:
            iy -= 1
        entry_axis = _AXIS_Y
    else:
        iy = int(math.floor(py))
        next_iy = iy if ry < 0.0 else iy + 1

    grid_x = math.floor(px + 0.5)
    if abs(px - grid_x) < _ALIGN_TOLERANCE:
        ix = int(grid_x)
        next_ix = ix + step_x
        if rx < 0.0:
            ix -= 1
        entry_axis = _AXIS_X
    else:
        ix = int(math.floor(px))
        next_ix = ix if rx < 0.0 else ix + 1

    # Grazing rays can round onto the far face of the box
    if ix < 0 or ix >= nx or iy < 0 or iy >= ny or iz < 0 or iz >= nz:
        return 0.0

    # Parameter of the next grid-line crossing on each axis
    next_lam_x = (next_ix - sx) * length / rx if moves_x else _STEP_SENTINEL
    next_lam_y = (next_iy - sy) * length / ry if moves_y else _STEP_SENTINEL
    next_lam_z = (next_iz - sz) * length / rz if moves_z else _STEP_SENTINEL

    n_seg = 0

    # === STRAIGHT ROW ALONG THE DOMINANT AXIS ===
    dominant = _AXIS_X if ax > ay else _AXIS_Y
    if entry_axis == dominant:
        if dominant == _AXIS_X:
            other_next = min(next_lam_y, next_lam_z)
            di = step_x
            dj = 0
            unit = len_x
        else:
            other_next = min(next_lam_x, next_lam_z)
            di = 0
            dj = step_y
            unit = len_y

        if other_next > lam_max:
            total = 0.0
            lam = lam_min
            while True:
                value = vol[ix, iy, iz]
                last = lam + unit >= lam_max - _TIE_TOLERANCE
                seg = lam_max - lam if last else unit
                if n_seg < max_segments:
                    path_idx[n_seg, 0] = ix
                    path_idx[n_seg, 1] = iy
                    path_idx[n_seg, 2] = iz
                    path_len[n_seg] = seg
                n_seg += 1
                if last:
                    return total * unit + seg * value
                total += value
                lam += unit
                ix += di
                iy += dj
                if ix < 0 or ix >= nx or iy < 0 or iy >= ny:
                    return total * unit

    # === GENERAL MARCH ===
    # Each counter is the distance left to the next crossing on its axis;
    # the axis just entered through a grid line is a full voxel away.
    if not moves_x:
        tx = _STEP_SENTINEL
    elif entry_axis == _AXIS_X:
        tx = len_x
    else:
        tx = next_lam_x - lam_min
    if not moves_y:
        ty = _STEP_SENTINEL
    elif entry_axis == _AXIS_Y:
        ty = len_y
    else:
        ty = next_lam_y - lam_min
    if not moves_z:
        tz = _STEP_SENTINEL
    elif entry_axis == _AXIS_Z:
        tz = len_z
    else:
        tz = next_lam_z - lam_min

    accum = 0.0
    lam = lam_min
    while True:
        seg = min(tx, ty, tz)
        remaining = lam_max - lam
        last = seg >= remaining - _TIE_TOLERANCE
        if last:
            seg = remaining
        if n_seg < max_segments:
            path_idx[n_seg, 0] = ix
            path_idx[n_seg, 1] = iy
            path_idx[n_seg, 2] = iz
            path_len[n_seg] = seg
        n_seg += 1
        accum += seg * vol[ix, iy, iz]
        if last:
            return accum

        lam += seg
        tx -= seg
        ty -= seg
        tz -= seg

        # Advance every axis whose crossing was reached in this step
        if tx <= _TIE_TOLERANCE:
            ix += step_x
            if ix < 0 or ix >= nx:
                return accum
            tx = len_x
        if ty <= _TIE_TOLERANCE:
            iy += step_y
            if iy < 0 or iy >= ny:
                return accum
            ty = len_y
        if tz <= _TIE_TOLERANCE:
            iz += step_z
            if iz < 0 or iz >= nz:
                return accum
            tz = len_z


_march_ray_cpu = _CPU_DECORATOR(_march_ray)
_march_ray_device = _DEVICE_DECORATOR(_march_ray)
