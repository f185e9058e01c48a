"""
Phase unwrapping strategies
===========================
- "X":   1D unwrap along every row
- "Y":   1D unwrap along every column
- "2D":  rows first, then columns of the row-unwrapped result (fast, path dependent)
- "LSQ": weighted least-squares unwrap, DCT Poisson solver + preconditioned CG

unwrap_phase_map() picks the strategy. A failing LSQ solve or an unknown tag
falls back to "2D"; the fallback is reported in the returned UnwrapResult.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.fft import dctn, idctn

log = logging.getLogger("holo.unwrap")

FALLBACK_METHOD = "2D"


class UnwrapError(RuntimeError):
    """The least-squares solver could not produce a finite phase map."""


@dataclass
class UnwrapResult:
    phase: np.ndarray
    method: str                 # strategy that produced `phase`
    requested: str
    warnings: list = field(default_factory=list)

    @property
    def fell_back(self):
        return self.method != self.requested.strip().upper()


def wrap_to_pi(phase):
    return (phase + np.pi) % (2 * np.pi) - np.pi

# -------------------------------
# Path-following strategies
# -------------------------------

def unwrap_rows(phase):
    return np.unwrap(phase, axis=1)

def unwrap_columns(phase):
    return np.unwrap(phase, axis=0)

def unwrap_basic_2d(phase):
    return unwrap_columns(unwrap_rows(phase))

# -------------------------------
# Least squares (Ghiglia & Romero 1994)
# -------------------------------

def _poisson_scaling(shape):
    N, M = shape
    I, J = np.ogrid[0:N, 0:M]
    scale = 2 * (np.cos(np.pi * I / N) + np.cos(np.pi * J / M) - 2)
    scale[0, 0] = 1.0  # avoid divide-by-zero
    return scale

def _solve_poisson_dct(rho, scale):
    phi_dct = dctn(rho, norm="ortho") / scale
    phi_dct[0, 0] = 0  # mean is undetermined, pin it to zero
    return idctn(phi_dct, norm="ortho")

def _apply_Q(p, WWx, WWy):
    Qx = np.diff(WWx * np.diff(p, axis=1), axis=1, prepend=0, append=0)
    Qy = np.diff(WWy * np.diff(p, axis=0), axis=0, prepend=0, append=0)
    return Qx + Qy

def _least_squares(psi, weight, kmax, tol):
    dx = wrap_to_pi(np.diff(psi, axis=1))
    dy = wrap_to_pi(np.diff(psi, axis=0))

    WW = np.ones_like(psi) if weight is None else np.asarray(weight, dtype=np.float64) ** 2
    WWx = np.minimum(WW[:, :-1], WW[:, 1:])
    WWy = np.minimum(WW[:-1, :], WW[1:, :])

    rk = (np.diff(WWx * dx, axis=1, prepend=0, append=0)
          + np.diff(WWy * dy, axis=0, prepend=0, append=0))
    norm_r0 = np.linalg.norm(rk)

    phi = np.zeros_like(psi)
    if norm_r0 == 0:
        return phi

    scale = _poisson_scaling(psi.shape)
    rkzk_prev = None
    pk = None
    for k in range(1, kmax + 1):
        zk = _solve_poisson_dct(rk, scale)
        rkzk = np.tensordot(rk, zk)
        pk = zk if k == 1 else zk + (rkzk / rkzk_prev) * pk

        Qpk = _apply_Q(pk, WWx, WWy)
        alpha = rkzk / np.tensordot(pk, Qpk)
        phi += alpha * pk
        rk -= alpha * Qpk
        rkzk_prev = rkzk

        if np.linalg.norm(rk) < tol * norm_r0:
            break
    return phi

def unwrap_least_squares(psi, weight=None, kmax=100, tol=1e-9):
    """
    Minimise the squared difference between the gradients of the unwrapped
    phase and the wrapped gradients of psi.

    psi:    2D wrapped phase [rad]
    weight: optional confidence map (same shape), e.g. the amplitude
    kmax:   conjugate gradient iterations (one is exact when unweighted)

    The result is shifted by a constant so that re-wrapping it reproduces psi
    wherever the solution is exact. Raises UnwrapError on numerical failure.
    """
    psi = np.asarray(psi, dtype=np.float64)
    if psi.ndim != 2 or psi.size == 0:
        raise UnwrapError(f"expected a non-empty 2D phase map, got shape {psi.shape}")
    if weight is not None and np.shape(weight) != psi.shape:
        raise UnwrapError("weight map does not match the phase shape")
    if not np.all(np.isfinite(psi)):
        raise UnwrapError("wrapped phase contains non-finite values")

    try:
        with np.errstate(divide="raise", invalid="raise"):
            phi = _least_squares(psi, weight, kmax, tol)
    except (FloatingPointError, ValueError, np.linalg.LinAlgError) as exc:
        raise UnwrapError(f"least-squares solve failed: {exc}") from exc

    if not np.all(np.isfinite(phi)):
        raise UnwrapError("least-squares solve produced non-finite values")

    offset = np.angle(np.mean(np.exp(1j * (psi - phi))))
    return phi + offset

# -------------------------------
# Strategy selection
# -------------------------------

_STRATEGIES = {
    "X": unwrap_rows,
    "Y": unwrap_columns,
    "2D": unwrap_basic_2d,
}

def unwrap_phase_map(wrapped, method="2D", weight=None):
    """Unwrap a 2D phase map with the requested strategy, falling back to 2D."""
    wrapped = np.asarray(wrapped, dtype=np.float64)
    requested = str(method)
    key = requested.strip().upper()

    if key in _STRATEGIES:
        return UnwrapResult(_STRATEGIES[key](wrapped), key, requested)

    if key == "LSQ":
        try:
            return UnwrapResult(unwrap_least_squares(wrapped, weight), key, requested)
        except UnwrapError as exc:
            msg = f"LSQ unwrap failed: {exc}. Falling back to basic 2D unwrap."
    else:
        msg = f'Unknown unwrap method "{requested}". Using basic 2D unwrap.'

    log.warning(msg)
    return UnwrapResult(unwrap_basic_2d(wrapped), FALLBACK_METHOD, requested, [msg])
