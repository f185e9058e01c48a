import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from holo_settings import ReconSettings


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def reference_image():
    # smooth Gaussian beam profile, 48 x 64
    yy, xx = np.mgrid[0:48, 0:64]
    return 0.2 + 0.6 * np.exp(-((xx - 32) ** 2 + (yy - 24) ** 2) / (2 * 18.0 ** 2))


@pytest.fixture
def object_image(reference_image):
    yy, xx = np.mgrid[0:48, 0:64]
    obj = np.zeros_like(reference_image)
    obj[(xx - 30) ** 2 + (yy - 22) ** 2 < 100] = 0.3
    return obj


@pytest.fixture
def hologram_image(reference_image, object_image):
    # |O + R|^2 with a tilted reference
    xx = np.arange(reference_image.shape[1])[None, :]
    R = np.sqrt(reference_image) * np.exp(1j * 1.2 * xx)
    O = np.sqrt(object_image)
    return np.abs(O + R) ** 2


@pytest.fixture
def settings():
    return ReconSettings.from_user_units(distance_cm=-14.0, wavelength_nm=632.8)
