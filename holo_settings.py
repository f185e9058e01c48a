# -*- coding: utf-8 -*-
"""
Reconstruction settings
=======================
- ReconSettings: immutable snapshot handed to every reconstruction call (SI units)
- ControlPanelState: the mutable copy owned by an interactive session
- wavelength_to_rgb: colour swatch for the wavelength control

Units at the user boundary: distance [cm], wavelength [nm], angle [deg].
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

log = logging.getLogger("holo.settings")

PIXEL_PITCH = 1.85e-6  # m, square camera pixels
VISIBLE_RANGE_NM = (380.0, 750.0)

UNWRAP_METHODS = {
    "X": "X only",
    "Y": "Y only",
    "2D": "2D (basic)",
    "LSQ": "2D LSQ",
}


class ParameterError(ValueError):
    """Raised when a settings snapshot cannot be used for a reconstruction."""


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


# -------------------------------
# Immutable snapshot
# -------------------------------

@dataclass(frozen=True)
class ReconSettings:
    distance_m: float = -0.14
    wavelength_m: float = 632.8e-9
    theta_rad: Optional[float] = None   # None -> flat reference wave
    gamma: float = 0.35
    unwrap_method: str = "2D"           # "X" | "Y" | "2D" | "LSQ"
    use_gaussian: bool = False
    gaussian_sigma: float = 1.5
    use_median: bool = False
    median_window: int = 3
    use_fourier: bool = False
    fourier_radius: float = 0.2
    averaging_radius: int = 3           # px, neighbourhood for point picks
    pixel_pitch_x: float = PIXEL_PITCH
    pixel_pitch_y: float = PIXEL_PITCH

    @classmethod
    def from_user_units(cls, distance_cm=-14.0, wavelength_nm=632.8, theta_deg=None, **kwargs):
        theta = None if theta_deg is None else math.radians(theta_deg)
        return cls(
            distance_m=distance_cm * 1e-2,
            wavelength_m=wavelength_nm * 1e-9,
            theta_rad=theta,
            **kwargs,
        )

    @property
    def distance_cm(self):
        return self.distance_m * 1e2

    @property
    def wavelength_nm(self):
        return self.wavelength_m * 1e9

    @property
    def theta_deg(self):
        return None if self.theta_rad is None else math.degrees(self.theta_rad)

    def validate(self):
        """
        Check the numeric preconditions of the reconstruction and return self.
        The unwrap method is not checked here: unknown tags fall back at unwrap time.
        """
        d, lam = self.distance_m, self.wavelength_m
        if not (math.isfinite(d) and math.isfinite(lam)):
            raise ParameterError("Distance and wavelength must be finite numbers.")
        if lam <= 0:
            raise ParameterError(f"Wavelength must be positive, got {lam!r} m.")
        if d == 0:
            raise ParameterError("Propagation distance must be non-zero.")
        if self.theta_rad is not None and not math.isfinite(self.theta_rad):
            raise ParameterError("Reference angle must be finite or unset.")
        if not (0 < self.gamma <= 1):
            raise ParameterError(f"Gamma must lie in (0, 1], got {self.gamma!r}.")
        if not self.gaussian_sigma > 0:
            raise ParameterError("Gaussian sigma must be positive.")
        if int(self.median_window) < 1:
            raise ParameterError("Median window must be at least 1 pixel.")
        if not (0 < self.fourier_radius <= 1):
            raise ParameterError("Fourier radius must lie in (0, 1].")
        if int(self.averaging_radius) < 1:
            raise ParameterError("Averaging radius must be at least 1 pixel.")
        if not (self.pixel_pitch_x > 0 and self.pixel_pitch_y > 0):
            raise ParameterError("Pixel pitch must be positive.")
        return self

    def describe_reference(self):
        if self.theta_rad is None:
            return "Flat phase (θ = 0)"
        return f"θ = {self.theta_deg:.2f}°"


# -------------------------------
# Mutable session state
# -------------------------------

class ControlPanelState:
    """
    Parameters edited by the control panel. Every setter takes the raw value
    typed by the user; invalid edits are dropped and the previous value kept.
    Setters return True when the value was applied.
    """

    def __init__(self, settings=None):
        self._settings = settings if settings is not None else ReconSettings()

    @property
    def settings(self):
        return self._settings

    def snapshot(self):
        return self._settings.validate()

    def _apply(self, **changes):
        self._settings = replace(self._settings, **changes)
        return True

    def _reject(self, name, raw):
        log.warning("Ignoring invalid %s value %r (keeping %r)", name, raw, getattr(self._settings, name))
        return False

    def set_distance(self, value_cm):
        val = _as_float(value_cm)
        if not math.isfinite(val) or val == 0:
            return self._reject("distance_m", value_cm)
        return self._apply(distance_m=val * 1e-2)

    def set_theta(self, value_deg):
        # an empty or non-numeric angle means "no tilt"
        val = _as_float(value_deg)
        if not math.isfinite(val):
            return self._apply(theta_rad=None)
        return self._apply(theta_rad=math.radians(val))

    def set_wavelength(self, value_nm):
        val = _as_float(value_nm)
        if not math.isfinite(val):
            return self._reject("wavelength_m", value_nm)
        lo, hi = VISIBLE_RANGE_NM
        val = max(lo, min(hi, val))
        return self._apply(wavelength_m=val * 1e-9)

    def set_gamma(self, value):
        val = _as_float(value)
        if not (0 < val <= 1):
            return self._reject("gamma", value)
        return self._apply(gamma=val)

    def set_gaussian(self, enabled):
        return self._apply(use_gaussian=bool(enabled))

    def set_sigma(self, value):
        val = _as_float(value)
        if not val > 0 or not math.isfinite(val):
            return self._reject("gaussian_sigma", value)
        return self._apply(gaussian_sigma=val)

    def set_median(self, enabled):
        return self._apply(use_median=bool(enabled))

    def set_median_window(self, value):
        val = _as_float(value)
        if not math.isfinite(val) or val < 1:
            return self._reject("median_window", value)
        return self._apply(median_window=int(round(val)))

    def set_fourier(self, enabled):
        return self._apply(use_fourier=bool(enabled))

    def set_fourier_radius(self, value):
        val = _as_float(value)
        if not (0 < val <= 1):
            return self._reject("fourier_radius", value)
        return self._apply(fourier_radius=val)

    def set_unwrap_method(self, tag):
        key = str(tag).strip().upper()
        if key not in UNWRAP_METHODS:
            return self._reject("unwrap_method", tag)
        return self._apply(unwrap_method=key)

    def set_averaging_radius(self, value):
        val = _as_float(value)
        if not math.isfinite(val) or val < 1:
            return self._reject("averaging_radius", value)
        return self._apply(averaging_radius=int(round(val)))


# -------------------------------
# Wavelength swatch
# -------------------------------

def wavelength_to_rgb(lam_nm):
    """
    Rough visible-spectrum colour for a wavelength in nm, channels in [0, 1].
    Outside 380-750 nm a neutral grey is returned.
    """
    lam = float(lam_nm)
    if lam < 380 or lam > 750:
        return (0.3, 0.3, 0.3)
    if lam < 440:
        t = (lam - 380) / (440 - 380)
        rgb = (1 - t, 0.0, 1.0)
    elif lam < 490:
        t = (lam - 440) / (490 - 440)
        rgb = (0.0, t, 1.0)
    elif lam < 510:
        t = (lam - 490) / (510 - 490)
        rgb = (0.0, 1.0, 1 - t)
    elif lam < 580:
        t = (lam - 510) / (580 - 510)
        rgb = (t, 1.0, 0.0)
    elif lam < 645:
        t = (lam - 580) / (645 - 580)
        rgb = (1.0, 1 - t, 0.0)
    else:
        rgb = (1.0, 0.0, 0.0)
    # slight brightness correction
    return tuple(c ** 0.8 for c in rgb)
