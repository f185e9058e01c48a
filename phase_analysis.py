"""
Quantitative measurements on the unwrapped phase inside a region of interest.

Points and rectangles are given in millimetres on the displayed axes and are
snapped to the nearest pixel. Depth and roughness come back in metres.
"""

import enum
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.integrate import trapezoid

log = logging.getLogger("holo.analysis")

THETA_Y = math.radians(3.0)     # assumed vertical tilt between object and reference beams
PATH_SAMPLES = 200
DEFAULT_RADIUS = 3


class DegenerateRoiError(ValueError):
    """Rectangle with no area, or a selection that contains no samples."""


@dataclass(frozen=True)
class Roi:
    """Axis-aligned rectangle in mm: lower corner (x, y) plus width and height."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_extents(cls, xmin, xmax, ymin, ymax):
        return cls(xmin, ymin, xmax - xmin, ymax - ymin)

    @property
    def is_degenerate(self):
        return not (self.width > 0 and self.height > 0)


def _nearest(axis, value):
    return int(np.argmin(np.abs(axis - value)))


def roi_slices(x_mm, y_mm, roi):
    """Row and column slices (inclusive of both snapped edges) covered by roi."""
    if roi is None or roi.is_degenerate:
        raise DegenerateRoiError(f"ROI must have positive width and height, got {roi}")
    xi = _nearest(x_mm, roi.x)
    xf = _nearest(x_mm, roi.x + roi.width)
    yi = _nearest(y_mm, roi.y)
    yf = _nearest(y_mm, roi.y + roi.height)
    return slice(yi, yf + 1), slice(xi, xf + 1)


def neighborhood_values(phase, yc, xc, r):
    h, w = phase.shape
    yi, yf = max(0, yc - r), min(h - 1, yc + r)
    xi, xf = max(0, xc - r), min(w - 1, xc + r)
    return phase[yi:yf + 1, xi:xf + 1]


def neighborhood_phase(phase, yc, xc, r=DEFAULT_RADIUS):
    """Mean phase in the (2r+1)^2 window around (yc, xc), clipped to the array."""
    return float(np.mean(neighborhood_values(phase, yc, xc, int(r))))


@dataclass
class PhaseMap:
    """Unwrapped phase of an ROI together with its physical axes [mm]."""
    phase: np.ndarray
    x_mm: np.ndarray
    y_mm: np.ndarray

    @classmethod
    def crop(cls, phase, x_mm, y_mm, roi):
        rows, cols = roi_slices(x_mm, y_mm, roi)
        return cls(phase[rows, cols], x_mm[cols], y_mm[rows])

    def contains(self, x, y):
        return (self.x_mm.min() <= x <= self.x_mm.max()
                and self.y_mm.min() <= y <= self.y_mm.max())

    def index_of(self, x, y):
        return _nearest(self.y_mm, y), _nearest(self.x_mm, x)

    def sample(self, x, y, radius=DEFAULT_RADIUS):
        row, col = self.index_of(x, y)
        return neighborhood_phase(self.phase, row, col, radius)

    def sub_map(self, roi):
        return PhaseMap.crop(self.phase, self.x_mm, self.y_mm, roi)

# -------------------------------
# Measurements
# -------------------------------

@dataclass(frozen=True)
class DepthMeasurement:
    phi1: float
    phi2: float
    delta_phi: float
    delta_z: float       # m
    p1: Tuple[int, int]  # (row, col) in the ROI
    p2: Tuple[int, int]


@dataclass(frozen=True)
class IntegralDepthMeasurement:
    mean_phase: float
    delta_z: float        # m
    path_length_mm: float
    n_samples: int


@dataclass(frozen=True)
class RoughnessMeasurement:
    sigma_phase: float
    rms_roughness: float  # m
    n_samples: int
    theta: float


def depth_from_phase(delta_phi, wavelength, theta, theta_y=THETA_Y):
    """Δz = λ Δφ / (2π sin θ_eff) with θ_eff = sqrt(θ² + θ_y²)."""
    if theta is None:
        raise ValueError("Depth measurement needs the reference angle θ.")
    theta_eff = math.sqrt(theta ** 2 + theta_y ** 2)
    s = math.sin(theta_eff)
    if math.isclose(s, 0.0, abs_tol=1e-15):
        raise ValueError(f"sin(θ_eff) vanishes for θ_eff = {theta_eff!r} rad")
    return wavelength / (2 * math.pi * s) * delta_phi


def measure_depth(phase_map, p1, p2, wavelength, theta, radius=DEFAULT_RADIUS):
    """
    Point-to-point depth between p1 and p2 (each (x_mm, y_mm)), using the
    neighbourhood-averaged phase around each point.
    """
    idx1 = phase_map.index_of(*p1)
    idx2 = phase_map.index_of(*p2)
    phi1 = neighborhood_phase(phase_map.phase, *idx1, radius)
    phi2 = neighborhood_phase(phase_map.phase, *idx2, radius)
    delta_phi = phi2 - phi1
    delta_z = depth_from_phase(delta_phi, wavelength, theta)

    log.info("Depth: φ1 = %.2f rad, φ2 = %.2f rad, Δφ = %.2f rad | Δz = %.3f µm",
             phi1, phi2, delta_phi, delta_z * 1e6)
    return DepthMeasurement(phi1, phi2, delta_phi, delta_z, idx1, idx2)


def measure_depth_integral(phase_map, p1, p2, wavelength, theta,
                           radius=DEFAULT_RADIUS, n_samples=PATH_SAMPLES):
    """
    Mean phase along the segment p1 -> p2, integrated with the trapezoid rule
    over the path and normalised by n_samples * step, converted with
    Δz = λ ⟨φ⟩ / (2π cos θ).
    """
    if theta is None:
        raise ValueError("Integral depth measurement needs the reference angle θ.")
    c = math.cos(theta)
    if math.isclose(c, 0.0, abs_tol=1e-15):
        raise ValueError("cos(θ) vanishes; θ = 90° cannot be used.")

    x_line = np.linspace(p1[0], p2[0], n_samples)
    y_line = np.linspace(p1[1], p2[1], n_samples)
    phase_vals = np.array([phase_map.sample(x, y, radius) for x, y in zip(x_line, y_line)])

    step_mm = math.hypot(x_line[1] - x_line[0], y_line[1] - y_line[0])
    if step_mm == 0:
        raise ValueError("The two points coincide; the integration path is empty.")
    integral_phi = trapezoid(phase_vals, dx=step_mm * 1e-3)   # m·rad
    avg_phi = integral_phi / (n_samples * step_mm * 1e-3)
    delta_z = wavelength / (2 * math.pi * c) * avg_phi

    log.info("Integral depth: ⟨φ⟩ = %.2f rad | Δz = %.3f µm", avg_phi, delta_z * 1e6)
    return IntegralDepthMeasurement(float(avg_phi), float(delta_z),
                                    step_mm * (n_samples - 1), n_samples)


def measure_roughness(phase_map, roi, wavelength, theta=THETA_Y):
    """
    RMS roughness σ_φ λ / (2π sin θ) of the phase inside roi.
    θ defaults to the fixed 3° vertical tilt, independent of the reference angle.
    """
    values = phase_map.sub_map(roi).phase
    if values.size == 0:
        raise DegenerateRoiError("Roughness ROI contains no samples.")
    sigma_phi = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
    rms = sigma_phi * wavelength / (2 * math.pi * math.sin(theta))

    log.info("Roughness: RMS phase %.2f rad | RMS roughness %.3f µm (θ = %.1f°)",
             sigma_phi, rms * 1e6, math.degrees(theta))
    return RoughnessMeasurement(sigma_phi, rms, int(values.size), theta)

# -------------------------------
# Two-click point picking
# -------------------------------

class PickState(enum.Enum):
    IDLE = "idle"
    AWAITING_FIRST = "awaiting_point_1"
    AWAITING_SECOND = "awaiting_point_2"
    COMPUTED = "computed"


class PointPicker:
    """
    State machine behind the two-click measurements.

    begin() arms it, submit(x, y) feeds each picked point in mm. submit returns
    None while a point is still missing and the measurement once both are in.
    Points outside the phase map are ignored. cancel() drops everything.
    """

    def __init__(self, phase_map, measure):
        self.phase_map = phase_map
        self._measure = measure      # callable(p1, p2) -> measurement
        self.state = PickState.IDLE
        self.points = []
        self.result = None

    @property
    def active(self):
        return self.state in (PickState.AWAITING_FIRST, PickState.AWAITING_SECOND)

    def begin(self):
        self.points = []
        self.result = None
        self.state = PickState.AWAITING_FIRST

    def cancel(self):
        self.points = []
        self.state = PickState.IDLE

    def submit(self, x, y) -> Optional[object]:
        if not self.active or not self.phase_map.contains(x, y):
            return None
        self.points.append((float(x), float(y)))
        if len(self.points) == 1:
            self.state = PickState.AWAITING_SECOND
            return None
        try:
            self.result = self._measure(*self.points)
        except Exception:
            self.cancel()
            raise
        self.state = PickState.COMPUTED
        return self.result
