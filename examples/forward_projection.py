import numpy as np
import torch
import matplotlib.pyplot as plt
from voxtrace import ScanParameters, project

def shepp_logan_3d(shape):
    xx, yy, zz = np.meshgrid(
        np.arange(shape[0]), np.arange(shape[1]), np.arange(shape[2]), indexing="ij"
    )
    xx = (xx + 0.5 - shape[0] / 2) / (shape[0] / 2)
    yy = (yy + 0.5 - shape[1] / 2) / (shape[1] / 2)
    zz = (zz + 0.5 - shape[2] / 2) / (shape[2] / 2)
    el_params = np.array([
        [0, 0, 0, 0.69, 0.92, 0.81, 0, 1],
        [0, -0.0184, 0, 0.6624, 0.874, 0.78, 0, -0.8],
        [0.22, 0, 0, 0.11, 0.31, 0.22, -np.pi/10.0, -0.2],
        [-0.22, 0, 0, 0.16, 0.41, 0.28, np.pi/10.0, -0.2],
        [0, 0.35, -0.15, 0.21, 0.25, 0.41, 0, 0.1],
        [0, 0.1, 0.25, 0.046, 0.046, 0.05, 0, 0.1],
        [0, -0.1, 0.25, 0.046, 0.046, 0.05, 0, 0.1],
    ], dtype=np.float64)

    x_pos = el_params[:, 0][:, None, None, None]
    y_pos = el_params[:, 1][:, None, None, None]
    z_pos = el_params[:, 2][:, None, None, None]
    a_axis = el_params[:, 3][:, None, None, None]
    b_axis = el_params[:, 4][:, None, None, None]
    c_axis = el_params[:, 5][:, None, None, None]
    phi = el_params[:, 6][:, None, None, None]
    val = el_params[:, 7][:, None, None, None]

    xc = xx[None, ...] - x_pos
    yc = yy[None, ...] - y_pos
    zc = zz[None, ...] - z_pos

    c = np.cos(phi)
    s = np.sin(phi)
    xp = c * xc - s * yc
    yp = s * xc + c * yc

    mask = (
        (xp ** 2) / (a_axis ** 2)
        + (yp ** 2) / (b_axis ** 2)
        + (zc ** 2) / (c_axis ** 2)
        <= 1.0
    )
    phantom = np.sum(mask * val, axis=0)
    return np.clip(phantom, 0, 1)

def main():
    N = 64
    phantom = shepp_logan_3d((N, N, N))

    # Rotation axis through the volume centre, detector arc covering the volume
    params = ScanParameters(
        source_distance=2.0 * N,
        n_columns=48,
        column_spacing_deg=0.25,
        isocenter_offset=N / 2,
        angular_step_deg=2.0,
        row_spacing=1.0,
        n_rows=16,
    )

    volume = torch.from_numpy(phantom)
    if torch.cuda.is_available():
        volume = volume.to("cuda")

    sinogram = project(volume, params).cpu().numpy()
    print("Sinogram shape (columns, rows, angles):", sinogram.shape)

    plt.figure(figsize=(12, 4))
    plt.subplot(1, 3, 1)
    plt.imshow(phantom[:, :, N // 2].T, cmap='gray', origin='lower')
    plt.axis('off')
    plt.title("Phantom (Mid-Z)")

    plt.subplot(1, 3, 2)
    plt.imshow(sinogram[:, params.n_rows, :], aspect='auto', cmap='gray')
    plt.axis('off')
    plt.title("Sinogram (Central Row)")

    plt.subplot(1, 3, 3)
    plt.imshow(sinogram[:, :, 0].T, cmap='gray', origin='lower')
    plt.axis('off')
    plt.title("Projection (View 0)")
    plt.tight_layout()
    plt.show()

    print("Phantom range:", phantom.min(), phantom.max())
    print("Sinogram range:", sinogram.min(), sinogram.max())

if __name__ == "__main__":
    main()
