import numpy as np

# -------------------------------
# FFT helpers (centered versions)
# -------------------------------

def fft2c(x):
    return np.fft.fftshift(np.fft.fft2(x))

def ifft2c(X):
    # zero frequency moved to the centre before and after the transform
    return np.fft.ifftshift(np.fft.ifft2(np.fft.fftshift(X)))

def pixel_axes_mm(shape, dx, dy):
    """Physical x (columns) and y (rows) coordinates in millimetres."""
    ny, nx = shape
    x = np.arange(nx) * dx * 1e3
    y = np.arange(ny) * dy * 1e3
    return x, y

# -------------------------------
# Hologram preprocessing
# -------------------------------

def remove_dc_term(hologram, reference=None, obj=None):
    """
    Subtract the mean intensities of the recorded images so that the
    zero-order term does not dominate the reconstruction.
    """
    I_dc = hologram - np.mean(hologram)
    if reference is not None:
        I_dc = I_dc - np.mean(reference)
    if obj is not None:
        I_dc = I_dc - np.mean(obj)
    return I_dc

def reference_wave(reference, shape, wavelength, dx, theta=None):
    """
    Complex reference field sqrt(R) * exp(i 2π dx x sin(θ) / λ).
    With no reference image the amplitude is 1; with no angle the phase is flat.
    """
    if reference is None:
        Er_amp = np.ones(shape)
    else:
        Er_amp = np.sqrt(reference)

    if theta is None:
        return Er_amp.astype(np.complex128)

    ny, nx = shape
    xg = np.arange(nx)[None, :]
    return Er_amp * np.exp(1j * 2 * np.pi * dx * xg * np.sin(theta) / wavelength)

def hann_window_2d(shape):
    ny, nx = shape
    return np.outer(np.hanning(ny), np.hanning(nx))

# -------------------------------
# Fresnel back-propagation
# -------------------------------

def fresnel_kernels(shape, wavelength, d, dx, dy):
    """
    Quadratic-phase carrier and propagation constant on the index grid.
    Returns (carrier, const).
    """
    if wavelength * d == 0:
        raise ValueError("wavelength * distance must be non-zero")
    ny, nx = shape
    ky, kx = np.meshgrid(np.arange(ny), np.arange(nx), indexing="ij")
    carrier = np.exp((-1j * np.pi) / (wavelength * d) * (kx**2 * dx**2 + ky**2 * dy**2))
    k1 = kx**2 / nx**2 * dx**2
    k2 = ky**2 / ny**2 * dy**2
    const = (1j / (wavelength * d)) * np.exp(-1j * np.pi * wavelength * d * (k1 + k2))
    return carrier, const

def fresnel_reconstruct(I_dc, Er, wavelength, d, dx, dy):
    """
    Back-propagate the DC-free hologram illuminated by the reference wave.

    I_dc: real 2D hologram with the DC term removed
    Er:   complex reference field, same shape
    d:    signed propagation distance [m]; the sign picks the propagation side
    Returns the complex reconstructed field, same shape as the input.
    """
    I_dc = np.asarray(I_dc, dtype=np.float64)
    if I_dc.shape != np.shape(Er):
        raise ValueError(f"Hologram {I_dc.shape} and reference {np.shape(Er)} differ in shape")

    carrier, const = fresnel_kernels(I_dc.shape, wavelength, d, dx, dy)
    modulated = Er * I_dc * hann_window_2d(I_dc.shape)
    recon_fn = modulated * carrier
    return const * ifft2c(recon_fn)

def fourier_lowpass(field, radius_frac):
    """
    Keep the spectrum inside a centred disk of radius radius_frac * min(ny, nx).
    The inverse transform is applied to the un-centred spectrum without a final shift.
    """
    F = fft2c(field)
    m, n = F.shape
    # 1-based pixel grid, centre at (n/2, m/2)
    yy, xx = np.ogrid[1:m + 1, 1:n + 1]
    radius = np.sqrt((xx - n / 2) ** 2 + (yy - m / 2) ** 2)
    mask = radius < radius_frac * min(m, n)
    return np.fft.ifft2(np.fft.ifftshift(F * mask))
