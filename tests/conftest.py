import numpy as np
import pytest


def _clip_to_box(source, detector, extents):
    """Return (lam_min, lam_max, length) of the segment inside [0, N] on every axis."""
    s = np.asarray(source, dtype=np.float64)
    e = np.asarray(detector, dtype=np.float64)
    r = e - s
    length = float(np.linalg.norm(r))
    lo, hi = 0.0, length
    for a in range(3):
        if r[a] == 0.0:
            if not 0.0 <= s[a] <= extents[a]:
                return 0.0, 0.0, length
            continue
        t0 = (0.0 - s[a]) * length / r[a]
        t1 = (extents[a] - s[a]) * length / r[a]
        lo = max(lo, min(t0, t1))
        hi = min(hi, max(t0, t1))
    if lo >= hi:
        return 0.0, 0.0, length
    return lo, hi, length


@pytest.fixture
def clipped_length():
    """Length of a source-detector segment inside a grid box."""

    def _clipped_length(source, detector, extents):
        lo, hi, _ = _clip_to_box(source, detector, extents)
        return hi - lo

    return _clipped_length


@pytest.fixture
def reference_integral():
    """Brute-force midpoint-rule line integral of a piecewise-constant volume."""

    def _reference_integral(source, detector, volume, n_samples=200_000):
        lo, hi, length = _clip_to_box(source, detector, volume.shape)
        if hi <= lo:
            return 0.0
        s = np.asarray(source, dtype=np.float64)
        r = (np.asarray(detector, dtype=np.float64) - s) / length
        step = (hi - lo) / n_samples
        lam = lo + (np.arange(n_samples) + 0.5) * step
        pts = s[None, :] + lam[:, None] * r[None, :]
        idx = np.floor(pts).astype(np.int64)
        for a in range(3):
            idx[:, a] = np.clip(idx[:, a], 0, volume.shape[a] - 1)
        return float(volume[idx[:, 0], idx[:, 1], idx[:, 2]].sum() * step)

    return _reference_integral
