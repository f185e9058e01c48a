"""
Off-axis hologram reconstruction
================================
DC removal -> reference wave -> Fresnel back-propagation -> optional Fourier
low-pass -> amplitude smoothing + gamma (display) and phase unwrapping ->
ROI crop for the quantitative measurements in phase_analysis.

Every call recomputes everything from the images and a ReconSettings snapshot.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from amplitude_filters import display_limits, gamma_correct, smooth_amplitude
from holo_io import describe_inputs
from holo_settings import ReconSettings
from holography_functions import (
    fourier_lowpass,
    fresnel_reconstruct,
    pixel_axes_mm,
    reference_wave,
    remove_dc_term,
)
from phase_analysis import DegenerateRoiError, PhaseMap, Roi, roi_slices
from phase_unwrapping import UnwrapResult, unwrap_phase_map

log = logging.getLogger("holo.pipeline")


class MissingInputError(RuntimeError):
    """Reference or hologram intensity not loaded."""


class ShapeMismatchError(ValueError):
    pass


def check_inputs(obj, reference, hologram):
    if reference is None or hologram is None:
        raise MissingInputError("Need |R|² and |O+R|² to reconstruct.")
    shape = np.shape(hologram)
    if len(shape) != 2:
        raise ShapeMismatchError(f"Hologram must be a 2D image, got shape {shape}")
    for name, img in (("|R|²", reference), ("|O|²", obj)):
        if img is not None and np.shape(img) != shape:
            raise ShapeMismatchError(f"{name} shape {np.shape(img)} differs from hologram shape {shape}")
    for img in (obj, reference, hologram):
        if img is not None and not np.all(np.isfinite(img)):
            raise ValueError("Input images must contain finite values only.")


def reconstruct_field(obj, reference, hologram, settings: ReconSettings):
    """Complex object field Γ, including the Fourier low-pass when enabled."""
    s = settings
    I = np.asarray(hologram, dtype=np.float64)
    I_dc = remove_dc_term(I, reference, obj)
    Er = reference_wave(reference, I.shape, s.wavelength_m, s.pixel_pitch_x, s.theta_rad)
    Gamma = fresnel_reconstruct(I_dc, Er, s.wavelength_m, s.distance_m, s.pixel_pitch_x, s.pixel_pitch_y)
    if s.use_fourier:
        Gamma = fourier_lowpass(Gamma, s.fourier_radius)
    return Gamma


@dataclass
class Reconstruction:
    complex_field: np.ndarray
    amplitude: np.ndarray            # |Γ| after the optional smoothing
    amplitude_display: np.ndarray    # amplitude ** gamma
    display_range: tuple
    phase_wrapped: np.ndarray
    unwrap: UnwrapResult
    x_mm: np.ndarray
    y_mm: np.ndarray
    settings: ReconSettings
    used_inputs: str
    roi: Optional[Roi] = None
    roi_phase: Optional[PhaseMap] = None
    notices: list = field(default_factory=list)
    _roi_slices: Optional[tuple] = field(default=None, repr=False)

    @property
    def phase_unwrapped(self):
        return self.unwrap.phase

    @property
    def phase_unwrapped_roi(self):
        return None if self.roi_phase is None else self.roi_phase.phase

    def title(self):
        s = self.settings
        return (f"λ = {s.wavelength_nm:.1f} nm | Distance = {s.distance_cm:.2f} cm\n"
                f"Gamma = {s.gamma:.2f}   |   {s.describe_reference()}\n"
                f"Used: {self.used_inputs}")

    def select_roi(self, roi):
        """Crop the unwrapped phase to roi (mm). Raises DegenerateRoiError."""
        rows, cols = roi_slices(self.x_mm, self.y_mm, roi)
        self.roi = roi
        self._roi_slices = (rows, cols)
        self.roi_phase = PhaseMap(self.phase_unwrapped[rows, cols], self.x_mm[cols], self.y_mm[rows])
        return self.roi_phase

    def middle_row_profile(self):
        """(x_mm, wrapped, unwrapped) along the middle row of the selected ROI."""
        if self.roi_phase is None:
            raise DegenerateRoiError("No ROI selected.")
        rows, cols = self._roi_slices
        h = self.roi_phase.phase.shape[0]
        mid = max(0, int(math.floor(h / 2 + 0.5)) - 1)
        wrapped = self.phase_wrapped[rows.start + mid, cols]
        return self.roi_phase.x_mm, wrapped, self.roi_phase.phase[mid, :]


def reconstruct(obj, reference, hologram, settings: ReconSettings, roi=None):
    """
    Reconstruct amplitude and phase from |O|² (optional), |R|² and |O+R|².

    Raises MissingInputError / ShapeMismatchError for bad inputs and
    ParameterError for an unusable settings snapshot, before any numerics run.
    A degenerate roi only skips the phase-analysis stage: the amplitude result
    is returned with a notice.
    """
    check_inputs(obj, reference, hologram)
    settings.validate()

    Gamma = reconstruct_field(obj, reference, hologram, settings)

    amp = smooth_amplitude(np.abs(Gamma), settings)
    amp_gamma = gamma_correct(amp, settings.gamma)
    vrange = display_limits(amp, settings.gamma)

    phase_wrapped = np.angle(Gamma)
    unwrap = unwrap_phase_map(phase_wrapped, settings.unwrap_method)

    x_mm, y_mm = pixel_axes_mm(Gamma.shape, settings.pixel_pitch_x, settings.pixel_pitch_y)
    used = describe_inputs(obj is not None)
    result = Reconstruction(
        complex_field=Gamma,
        amplitude=amp,
        amplitude_display=amp_gamma,
        display_range=vrange,
        phase_wrapped=phase_wrapped,
        unwrap=unwrap,
        x_mm=x_mm,
        y_mm=y_mm,
        settings=settings,
        used_inputs=used,
        notices=list(unwrap.warnings),
    )
    log.info("Reconstructed %s field at d = %.2f cm, λ = %.1f nm (%s, unwrap %s)",
             Gamma.shape, settings.distance_cm, settings.wavelength_nm,
             settings.describe_reference(), unwrap.method)

    if roi is not None:
        try:
            result.select_roi(roi)
        except DegenerateRoiError as exc:
            msg = f"ROI selection was cancelled or invalid ({exc}); phase analysis skipped."
            log.warning(msg)
            result.notices.append(msg)
    return result


def reconstruct_images(images, settings, roi=None):
    """reconstruct() for a holo_io.HologramImages container."""
    return reconstruct(images.object, images.reference, images.hologram, settings, roi)
