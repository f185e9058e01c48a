"""Smoothing and gamma mapping of the reconstructed amplitude."""

import math

import numpy as np
from scipy.ndimage import median_filter
from skimage.filters import gaussian

DISPLAY_PERCENTILE = 99.5


def gaussian_smooth(amp, sigma):
    # kernel side 2*ceil(2*sigma)+1, edges replicated
    truncate = math.ceil(2 * sigma) / sigma
    return gaussian(amp, sigma=sigma, mode="nearest", truncate=truncate, preserve_range=True)


def median_smooth(amp, window):
    # zero padding at the borders
    return median_filter(amp, size=int(window), mode="constant", cval=0.0)


def smooth_amplitude(amp, settings):
    """Apply the enabled smoothing filters, Gaussian first, then median."""
    amp = np.asarray(amp, dtype=np.float64)
    if settings.use_gaussian:
        amp = gaussian_smooth(amp, settings.gaussian_sigma)
    if settings.use_median:
        amp = median_smooth(amp, settings.median_window)
    return amp


def gamma_correct(amp, gamma):
    return np.power(amp, gamma)


def display_limits(amp, gamma, percentile=DISPLAY_PERCENTILE):
    """Colour range for the gamma-mapped amplitude, clipped at a high percentile of amp."""
    vmax = float(np.percentile(amp, percentile)) ** gamma
    return 0.0, vmax
