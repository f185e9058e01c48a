import dataclasses

import numpy as np
import pytest

import holo_pipeline
from holo_io import HologramImages
from holo_pipeline import (
    MissingInputError,
    ShapeMismatchError,
    check_inputs,
    reconstruct,
    reconstruct_field,
    reconstruct_images,
)
from holo_settings import ParameterError, ReconSettings
from phase_analysis import DegenerateRoiError, Roi, roi_slices
from phase_unwrapping import unwrap_basic_2d, unwrap_rows


def test_missing_reference_is_rejected(hologram_image, settings):
    with pytest.raises(MissingInputError):
        reconstruct(None, None, hologram_image, settings)
    with pytest.raises(MissingInputError):
        reconstruct(None, np.ones((4, 4)), None, settings)


def test_shape_mismatch_is_rejected(reference_image, hologram_image, settings):
    with pytest.raises(ShapeMismatchError):
        reconstruct(None, reference_image[:, :-1], hologram_image, settings)
    with pytest.raises(ShapeMismatchError):
        reconstruct(np.zeros((3, 3)), reference_image, hologram_image, settings)


def test_non_finite_input_is_rejected(reference_image, hologram_image):
    bad = hologram_image.copy()
    bad[0, 0] = np.nan
    with pytest.raises(ValueError):
        check_inputs(None, reference_image, bad)


def test_zero_distance_fails_before_propagation(monkeypatch, reference_image, hologram_image):
    def fail(*args, **kwargs):
        raise AssertionError("propagation must not run")

    monkeypatch.setattr(holo_pipeline, "fresnel_reconstruct", fail)
    with pytest.raises(ParameterError):
        reconstruct(None, reference_image, hologram_image, ReconSettings(distance_m=0.0))


def test_minimal_reconstruction(reference_image, hologram_image, settings):
    recon = reconstruct(None, reference_image, hologram_image, settings)

    shape = hologram_image.shape
    assert recon.complex_field.shape == shape
    assert np.iscomplexobj(recon.complex_field)
    for arr in (recon.amplitude, recon.amplitude_display, recon.phase_wrapped, recon.phase_unwrapped):
        assert arr.shape == shape
        assert np.all(np.isfinite(arr))
    assert np.all(recon.amplitude >= 0)
    assert np.all(np.abs(recon.phase_wrapped) <= np.pi)
    np.testing.assert_allclose(recon.amplitude_display, recon.amplitude ** settings.gamma)
    np.testing.assert_array_equal(recon.phase_unwrapped, unwrap_basic_2d(recon.phase_wrapped))
    assert recon.used_inputs == "|R|² + |O+R|²"
    assert recon.roi_phase is None and recon.notices == []
    assert recon.x_mm.shape == (shape[1],) and recon.y_mm.shape == (shape[0],)
    assert recon.display_range[0] == 0.0 and recon.display_range[1] > 0


def test_reconstruction_is_repeatable(object_image, reference_image, hologram_image):
    s = ReconSettings.from_user_units(-14.0, 632.8, 5.0, unwrap_method="LSQ")
    a = reconstruct(object_image, reference_image, hologram_image, s)
    b = reconstruct(object_image, reference_image, hologram_image, s)
    np.testing.assert_array_equal(a.complex_field, b.complex_field)
    np.testing.assert_array_equal(a.phase_unwrapped, b.phase_unwrapped)
    assert a.used_inputs == "|O|² + |R|² + |O+R|²"


def test_object_image_changes_the_field(object_image, reference_image, hologram_image, settings):
    with_obj = reconstruct_field(object_image, reference_image, hologram_image, settings)
    without = reconstruct_field(None, reference_image, hologram_image, settings)
    assert not np.allclose(with_obj, without)


def test_roi_crops_the_full_frame_unwrap(reference_image, hologram_image, settings):
    roi = Roi(0.02, 0.02, 0.05, 0.05)
    recon = reconstruct(None, reference_image, hologram_image, settings, roi)

    rows, cols = roi_slices(recon.x_mm, recon.y_mm, roi)
    assert recon.roi == roi
    np.testing.assert_array_equal(recon.phase_unwrapped_roi, recon.phase_unwrapped[rows, cols])
    np.testing.assert_array_equal(recon.roi_phase.x_mm, recon.x_mm[cols])
    np.testing.assert_array_equal(recon.roi_phase.y_mm, recon.y_mm[rows])


def test_degenerate_roi_keeps_amplitude(reference_image, hologram_image, settings):
    recon = reconstruct(None, reference_image, hologram_image, settings, Roi(0.02, 0.02, 0.0, 0.05))
    assert recon.roi_phase is None
    assert recon.phase_unwrapped_roi is None
    assert len(recon.notices) == 1
    assert np.all(np.isfinite(recon.amplitude))
    with pytest.raises(DegenerateRoiError):
        recon.middle_row_profile()


def test_unknown_unwrap_method_is_reported(reference_image, hologram_image, settings):
    s = dataclasses.replace(settings, unwrap_method="spiral")
    recon = reconstruct(None, reference_image, hologram_image, s)
    assert recon.unwrap.method == "2D"
    assert recon.unwrap.fell_back
    assert any("spiral" in n for n in recon.notices)


@pytest.mark.parametrize("tag", ["X", "Y", "LSQ"])
def test_each_unwrap_method_runs(reference_image, hologram_image, settings, tag):
    s = dataclasses.replace(settings, unwrap_method=tag)
    recon = reconstruct(None, reference_image, hologram_image, s)
    assert recon.unwrap.method == tag
    assert np.all(np.isfinite(recon.phase_unwrapped))


def test_filters_enabled(reference_image, hologram_image, settings):
    s = dataclasses.replace(settings, theta_rad=0.05, use_gaussian=True, use_median=True,
                            use_fourier=True, fourier_radius=0.3)
    plain = reconstruct(None, reference_image, hologram_image, dataclasses.replace(settings, theta_rad=0.05))
    recon = reconstruct(None, reference_image, hologram_image, s)
    assert recon.amplitude.shape == hologram_image.shape
    assert np.all(np.isfinite(recon.amplitude))
    assert not np.allclose(recon.amplitude, plain.amplitude)


def test_middle_row_profile(reference_image, hologram_image, settings):
    recon = reconstruct(None, reference_image, hologram_image, settings, Roi(0.02, 0.02, 0.05, 0.05))
    rows, cols = roi_slices(recon.x_mm, recon.y_mm, recon.roi)
    h = rows.stop - rows.start
    mid = int(np.floor(h / 2 + 0.5)) - 1

    x, wrapped, unwrapped = recon.middle_row_profile()

    assert len(x) == len(wrapped) == len(unwrapped) == cols.stop - cols.start
    np.testing.assert_array_equal(wrapped, recon.phase_wrapped[rows.start + mid, cols])
    np.testing.assert_array_equal(unwrapped, recon.phase_unwrapped[rows.start + mid, cols])


def test_title_lists_parameters(reference_image, hologram_image):
    s = ReconSettings.from_user_units(-14.0, 632.8, 2.0)
    title = reconstruct(None, reference_image, hologram_image, s).title()
    assert "632.8 nm" in title
    assert "-14.00 cm" in title
    assert "θ = 2.00°" in title
    assert "|R|² + |O+R|²" in title


def test_reconstruct_images(reference_image, hologram_image, settings):
    images = HologramImages(reference=reference_image, hologram=hologram_image)
    recon = reconstruct_images(images, settings)
    direct = reconstruct(None, reference_image, hologram_image, settings)
    np.testing.assert_array_equal(recon.complex_field, direct.complex_field)

    with pytest.raises(MissingInputError):
        reconstruct_images(HologramImages(hologram=hologram_image), settings)


def test_reference_only_hologram_reconstructs_at_centre(reference_image):
    # hologram equal to the reference, no object, no tilt
    s = ReconSettings.from_user_units(-14.0, 632.8)
    recon = reconstruct(None, reference_image, reference_image, s)

    ny, nx = reference_image.shape
    peak = np.unravel_index(np.argmax(recon.amplitude), recon.amplitude.shape)
    assert peak == (ny // 2, nx // 2)

    # no carrier fringe across the main lobe
    row = unwrap_rows(recon.phase_wrapped[peak[0]:peak[0] + 1, nx // 2 - 2:nx // 2 + 3])[0]
    slope = np.polyfit(np.arange(row.size), row, 1)[0]
    assert abs(slope) < 0.2

    tilted = reconstruct(None, reference_image, reference_image, dataclasses.replace(s, theta_rad=np.radians(5)))
    tilted_peak = np.unravel_index(np.argmax(tilted.amplitude), tilted.amplitude.shape)
    assert abs(tilted_peak[1] - nx // 2) > 10


def test_used_inputs_label_matches_loader(object_image, reference_image, hologram_image, settings):
    images = HologramImages(reference=reference_image, hologram=hologram_image)
    assert reconstruct_images(images, settings).used_inputs == images.used_inputs()
    images.object = object_image
    assert reconstruct_images(images, settings).used_inputs == images.used_inputs()
