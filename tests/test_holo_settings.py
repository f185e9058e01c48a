import dataclasses
import logging
import math

import pytest

from holo_settings import (
    PIXEL_PITCH,
    ControlPanelState,
    ParameterError,
    ReconSettings,
    wavelength_to_rgb,
)


def test_defaults():
    s = ReconSettings()
    assert s.distance_cm == pytest.approx(-14.0)
    assert s.wavelength_nm == pytest.approx(632.8)
    assert s.theta_rad is None
    assert s.gamma == 0.35
    assert s.unwrap_method == "2D"
    assert s.pixel_pitch_x == s.pixel_pitch_y == PIXEL_PITCH
    assert s.validate() is s


def test_from_user_units():
    s = ReconSettings.from_user_units(-10.0, 532.0, 5.0, gamma=0.5)
    assert s.distance_m == pytest.approx(-0.10)
    assert s.wavelength_m == pytest.approx(532e-9)
    assert s.theta_rad == pytest.approx(math.radians(5))
    assert s.theta_deg == pytest.approx(5.0)
    assert s.gamma == 0.5


def test_describe_reference():
    assert ReconSettings().describe_reference() == "Flat phase (θ = 0)"
    assert ReconSettings.from_user_units(theta_deg=2.5).describe_reference() == "θ = 2.50°"


@pytest.mark.parametrize("changes", [
    dict(distance_m=0.0),
    dict(distance_m=float("nan")),
    dict(wavelength_m=0.0),
    dict(wavelength_m=-5e-7),
    dict(theta_rad=float("inf")),
    dict(gamma=0.0),
    dict(gamma=1.5),
    dict(gaussian_sigma=0.0),
    dict(median_window=0),
    dict(fourier_radius=0.0),
    dict(fourier_radius=1.2),
    dict(averaging_radius=0),
    dict(pixel_pitch_x=0.0),
])
def test_validate_rejects(changes):
    with pytest.raises(ParameterError):
        ReconSettings(**changes).validate()


def test_validate_leaves_unknown_unwrap_tag_alone():
    assert ReconSettings(unwrap_method="spiral").validate().unwrap_method == "spiral"


def test_distance_setter():
    state = ControlPanelState()
    assert state.set_distance("-20")
    assert state.settings.distance_m == pytest.approx(-0.20)
    assert not state.set_distance("abc")
    assert not state.set_distance(0)
    assert state.settings.distance_m == pytest.approx(-0.20)


def test_rejected_edit_is_logged(caplog):
    state = ControlPanelState()
    with caplog.at_level(logging.WARNING, logger="holo.settings"):
        assert not state.set_gamma(1.2)
    assert state.settings.gamma == 0.35
    assert any("gamma" in r.getMessage() for r in caplog.records)


def test_theta_setter_clears_on_blank():
    state = ControlPanelState()
    assert state.set_theta("3")
    assert state.settings.theta_rad == pytest.approx(math.radians(3))
    assert state.set_theta("")
    assert state.settings.theta_rad is None
    state.set_theta("1")
    state.set_theta("nan")
    assert state.settings.theta_rad is None


def test_wavelength_setter_clamps_to_visible():
    state = ControlPanelState()
    state.set_wavelength(900)
    assert state.settings.wavelength_nm == pytest.approx(750)
    state.set_wavelength("200")
    assert state.settings.wavelength_nm == pytest.approx(380)
    state.set_wavelength(532)
    assert state.settings.wavelength_nm == pytest.approx(532)
    assert not state.set_wavelength("green")
    assert state.settings.wavelength_nm == pytest.approx(532)


def test_filter_setters():
    state = ControlPanelState()
    assert state.set_gaussian(True) and state.settings.use_gaussian
    assert state.set_sigma("2.5") and state.settings.gaussian_sigma == 2.5
    assert not state.set_sigma(-1)
    assert state.set_median(1) and state.settings.use_median is True
    assert state.set_median_window("4.6") and state.settings.median_window == 5
    assert not state.set_median_window("0.2")
    assert state.set_fourier(True) and state.settings.use_fourier
    assert state.set_fourier_radius(1.0) and state.settings.fourier_radius == 1.0
    assert not state.set_fourier_radius(0)
    assert not state.set_fourier_radius("1.01")
    assert state.set_averaging_radius(2.4) and state.settings.averaging_radius == 2
    assert not state.set_averaging_radius(0)


def test_unwrap_setter():
    state = ControlPanelState()
    assert state.set_unwrap_method("lsq")
    assert state.settings.unwrap_method == "LSQ"
    assert state.set_unwrap_method(" y ")
    assert state.settings.unwrap_method == "Y"
    assert not state.set_unwrap_method("foo")
    assert state.settings.unwrap_method == "Y"


def test_snapshot_is_validated_and_immutable():
    state = ControlPanelState()
    snap = state.snapshot()
    state.set_gamma(0.8)
    assert snap.gamma == 0.35
    assert state.snapshot().gamma == 0.8
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap.gamma = 0.5


def test_wavelength_to_rgb():
    assert wavelength_to_rgb(300) == (0.3, 0.3, 0.3)
    assert wavelength_to_rgb(800) == (0.3, 0.3, 0.3)
    assert wavelength_to_rgb(380) == pytest.approx((1.0, 0.0, 1.0))
    assert wavelength_to_rgb(500) == pytest.approx((0.0, 1.0, 0.5 ** 0.8))
    assert wavelength_to_rgb(700) == pytest.approx((1.0, 0.0, 0.0))
    for lam in range(380, 751, 10):
        assert all(0.0 <= c <= 1.0 for c in wavelength_to_rgb(lam))
