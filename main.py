# -*- coding: utf-8 -*-
"""
Headless off-axis hologram reconstruction.

    holo-reconstruct --reference R.tif --hologram I.tif [--object O.tif]
                     --distance-cm -14 --wavelength-nm 632.8 --angle-deg 5
                     --roi 0.5 0.5 1.0 1.0 --out results/

Writes the amplitude figure and, when an ROI is given, the phase map, the
3D phase surface and the middle-row profile.
"""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

from holo_io import HologramImages, ImageLoadError, save_figure, normalize_and_save_image
from holo_logging import setup_logging
from holo_pipeline import MissingInputError, ShapeMismatchError, reconstruct_images
from holo_plots import build_report_figures
from holo_settings import UNWRAP_METHODS, ParameterError, ReconSettings
from phase_analysis import Roi

log = logging.getLogger("holo.cli")


def build_parser():
    p = argparse.ArgumentParser(prog="holo-reconstruct",
                                description="Fresnel reconstruction of off-axis digital holograms.")
    p.add_argument("--hologram", required=True, help="|O+R|² image")
    p.add_argument("--reference", required=True, help="|R|² image")
    p.add_argument("--object", default=None, help="|O|² image (optional)")
    p.add_argument("--distance-cm", type=float, default=-14.0)
    p.add_argument("--wavelength-nm", type=float, default=632.8)
    p.add_argument("--angle-deg", type=float, default=None, help="reference tilt; omit for a flat reference")
    p.add_argument("--gamma", type=float, default=0.35)
    p.add_argument("--unwrap", default="2D", help="one of " + ", ".join(UNWRAP_METHODS))
    p.add_argument("--gaussian", type=float, default=None, metavar="SIGMA")
    p.add_argument("--median", type=int, default=None, metavar="N")
    p.add_argument("--fourier", type=float, default=None, metavar="RADIUS")
    p.add_argument("--roi", type=float, nargs=4, default=None, metavar=("X", "Y", "W", "H"),
                   help="region of interest in mm")
    p.add_argument("--out", default="recon_out")
    p.add_argument("--format", choices=("png", "tif"), default="png")
    p.add_argument("--save-arrays", action="store_true", help="also write 8-bit amplitude/phase images")
    return p


def settings_from_args(args):
    kwargs = dict(gamma=args.gamma, unwrap_method=args.unwrap)
    if args.gaussian is not None:
        kwargs.update(use_gaussian=True, gaussian_sigma=args.gaussian)
    if args.median is not None:
        kwargs.update(use_median=True, median_window=args.median)
    if args.fourier is not None:
        kwargs.update(use_fourier=True, fourier_radius=args.fourier)
    return ReconSettings.from_user_units(args.distance_cm, args.wavelength_nm, args.angle_deg, **kwargs)


def run(args):
    images = HologramImages()
    images.load("hologram", args.hologram)
    images.load("reference", args.reference)
    if args.object:
        images.load("object", args.object)

    settings = settings_from_args(args)
    roi = Roi(*args.roi) if args.roi else None
    recon = reconstruct_images(images, settings, roi)
    for notice in recon.notices:
        print(notice)

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for name, fig in build_report_figures(recon).items():
        written.append(save_figure(fig, out / f"{name}.{args.format}"))
    if args.save_arrays:
        written.append(normalize_and_save_image(recon.amplitude_display, out / "amplitude_raw.png"))
        written.append(normalize_and_save_image(recon.phase_wrapped, out / "phase_wrapped.png"))
        if recon.phase_unwrapped_roi is not None:
            written.append(normalize_and_save_image(recon.phase_unwrapped_roi, out / "phase_unwrapped_roi.png"))
    return written


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(log_dir=str(Path(args.out) / "logs"))
    try:
        written = run(args)
    except (ImageLoadError, MissingInputError, ShapeMismatchError, ParameterError) as exc:
        log.error("%s", exc)
        return 2
    print(f"Wrote {len(written)} files to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
