import logging

import numpy as np
import pytest
from PIL import Image

import main


@pytest.fixture(autouse=True)
def restore_holo_logger():
    logger = logging.getLogger("holo")
    handlers, level = list(logger.handlers), logger.level
    yield
    for h in logger.handlers[:]:
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)


def save_gray(path, image):
    Image.fromarray(np.round(image / image.max() * 255).astype(np.uint8)).save(path)
    return str(path)


def test_parser_defaults():
    args = main.build_parser().parse_args(["--hologram", "h.png", "--reference", "r.png"])
    s = main.settings_from_args(args)
    assert s.distance_cm == pytest.approx(-14.0)
    assert s.wavelength_nm == pytest.approx(632.8)
    assert s.theta_rad is None
    assert not (s.use_gaussian or s.use_median or s.use_fourier)


def test_parser_filters():
    args = main.build_parser().parse_args([
        "--hologram", "h.png", "--reference", "r.png",
        "--angle-deg", "3", "--gaussian", "2", "--median", "5", "--fourier", "0.4", "--unwrap", "LSQ",
    ])
    s = main.settings_from_args(args)
    assert s.theta_deg == pytest.approx(3.0)
    assert s.use_gaussian and s.gaussian_sigma == 2.0
    assert s.use_median and s.median_window == 5
    assert s.use_fourier and s.fourier_radius == 0.4
    assert s.unwrap_method == "LSQ"


def test_main_writes_report(tmp_path, reference_image, hologram_image, object_image):
    ref = save_gray(tmp_path / "ref.png", reference_image)
    holo = save_gray(tmp_path / "holo.png", hologram_image)
    obj = save_gray(tmp_path / "obj.png", object_image)
    out = tmp_path / "out"

    code = main.main([
        "--hologram", holo, "--reference", ref, "--object", obj,
        "--angle-deg", "2", "--roi", "0.02", "0.02", "0.05", "0.05",
        "--out", str(out), "--save-arrays",
    ])

    assert code == 0
    for name in ("amplitude", "phase", "surface", "profile",
                 "amplitude_raw", "phase_wrapped", "phase_unwrapped_roi"):
        assert (out / f"{name}.png").is_file()
    assert (out / "logs" / "app.log").is_file()


def test_main_reports_missing_file(tmp_path):
    code = main.main([
        "--hologram", str(tmp_path / "nope.png"), "--reference", str(tmp_path / "nope.png"),
        "--out", str(tmp_path / "out"),
    ])
    assert code == 2


def test_main_reports_bad_parameters(tmp_path, reference_image, hologram_image):
    ref = save_gray(tmp_path / "ref.png", reference_image)
    holo = save_gray(tmp_path / "holo.png", hologram_image)
    code = main.main(["--hologram", holo, "--reference", ref, "--distance-cm", "0",
                      "--out", str(tmp_path / "out")])
    assert code == 2
