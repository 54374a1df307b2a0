import math

import numpy as np
import pytest
import torch

from voxtrace import ScanParameters, project, trace


def _params(**overrides):
    values = dict(
        source_distance=15.0,
        n_columns=2,
        column_spacing_deg=3.0,
        isocenter_offset=2.5,
        angular_step_deg=45.0,
        row_spacing=0.7,
        n_rows=1,
    )
    values.update(overrides)
    return ScanParameters(**values)


def test_uniform_volume_single_detector_four_angles(clipped_length):
    params = _params(
        source_distance=10.0, n_columns=0, n_rows=0,
        isocenter_offset=2.0, angular_step_deg=90.0,
    )
    extents = (4, 4, 4)
    sino = project(np.ones(extents), params)
    assert sino.shape == (1, 1, 4)

    D, d = params.source_distance, params.isocenter_offset
    for i in range(4):
        theta = math.radians(90.0 * i)
        source = (D * math.cos(theta) + d, D * math.sin(theta) + d, d)
        detector = (D * math.cos(theta + math.pi) + d, D * math.sin(theta + math.pi) + d, d)
        assert sino[0, 0, i] == pytest.approx(clipped_length(source, detector, extents), rel=1e-9)
        assert sino[0, 0, i] == pytest.approx(4.0, rel=1e-9)


def test_sinogram_cells_match_individual_rays():
    rng = np.random.default_rng(21)
    vol = rng.uniform(size=(6, 5, 4))
    params = _params()
    q, qz = params.n_columns, params.n_rows
    D, d = params.source_distance, params.isocenter_offset

    sino = project(vol, params)
    assert sino.shape == (2 * q + 1, 2 * qz + 1, params.n_angles)

    for i in range(params.n_angles):
        theta = math.radians(i * params.angular_step_deg)
        source = (D * math.cos(theta) + d, D * math.sin(theta) + d, d)
        for j in range(-q, q + 1):
            phi = theta + math.pi + j * math.radians(params.column_spacing_deg)
            for k in range(-qz, qz + 1):
                detector = (D * math.cos(phi) + d, D * math.sin(phi) + d, k * params.row_spacing + d)
                expected = trace(source, detector, vol)
                assert sino[j + q, k + qz, i] == pytest.approx(expected, rel=1e-9, abs=1e-9)


def test_project_zero_volume_gives_zero_sinogram():
    sino = project(np.zeros((3, 3, 3)), _params(isocenter_offset=1.5))
    assert np.all(sino == 0.0)


def test_project_tensor_in_tensor_out():
    rng = np.random.default_rng(2)
    vol = rng.uniform(size=(5, 5, 3)).astype(np.float32)
    params = _params(angular_step_deg=60.0)
    expected = project(vol, params)
    sino = project(torch.from_numpy(vol), params)
    assert isinstance(sino, torch.Tensor)
    assert tuple(sino.shape) == params.sinogram_shape
    np.testing.assert_allclose(sino.numpy(), expected, rtol=1e-12, atol=1e-12)


def test_project_warns_when_source_orbit_enters_volume():
    params = _params(source_distance=1.0, isocenter_offset=2.0, n_columns=0, n_rows=0)
    with pytest.warns(RuntimeWarning, match="inside the volume"):
        project(np.ones((4, 4, 4)), params)


def test_project_rejects_flat_volume():
    with pytest.raises(ValueError):
        project(np.ones((4, 4)), _params())


def test_negative_column_spacing_reverses_columns():
    rng = np.random.default_rng(8)
    vol = rng.uniform(size=(5, 5, 3))
    sino_pos = project(vol, _params(row_spacing=0.0))
    sino_neg = project(vol, _params(column_spacing_deg=-3.0, row_spacing=0.0))
    np.testing.assert_allclose(sino_neg[::-1], sino_pos, rtol=1e-12, atol=1e-12)
