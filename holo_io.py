"""
Image input and figure export.

Images are decoded with Pillow and scaled to [0, 1] by their dtype range
(8-bit / 16-bit / float), colour images are reduced to luminance.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError
from skimage.color import rgb2gray, rgba2rgb
from skimage.util import img_as_float

log = logging.getLogger("holo.io")

IMAGE_FILTER = "Images (*.tif *.tiff *.png *.jpg *.jpeg *.bmp)"
EXPORT_FILTER = "TIFF (*.tif *.tiff);;PNG (*.png)"
EXPORT_DPI = 300

ROLES = ("object", "reference", "hologram")
ROLE_LABELS = {"object": "|O|²", "reference": "|R|²", "hologram": "|O+R|²"}


class ImageLoadError(OSError):
    pass


def describe_inputs(has_object):
    if has_object:
        return "|O|² + |R|² + |O+R|²"
    return "|R|² + |O+R|²"


def load_image(path):
    """Read a raster file as a float64 2D array in [0, 1]."""
    try:
        with Image.open(path) as im:
            img = np.array(im)
    except (OSError, UnidentifiedImageError) as exc:
        raise ImageLoadError(f"Cannot read image {path}: {exc}") from exc

    if img.dtype == bool:
        img = img.astype(np.uint8) * 255
    elif img.dtype == np.int32:
        # 32-bit integer mode ("I"), typically 16-bit data widened by Pillow
        img = np.clip(img, 0, 65535).astype(np.uint16)
    img = img_as_float(img).astype(np.float64)

    if img.ndim == 3:
        if img.shape[-1] == 4:
            img = rgba2rgb(img)
        img = rgb2gray(img[..., :3])
    return img


@dataclass
class HologramImages:
    """The three recorded intensities, identified by role."""
    object: Optional[np.ndarray] = None
    reference: Optional[np.ndarray] = None
    hologram: Optional[np.ndarray] = None

    def load(self, role, path):
        if role not in ROLES:
            raise ValueError(f"Unknown image role {role!r}")
        img = load_image(path)
        setattr(self, role, img)
        log.info("Loaded %s from %s, shape %s", ROLE_LABELS[role], path, img.shape)
        return img

    def reset(self):
        self.object = self.reference = self.hologram = None
        log.info("[RESET] Images cleared.")

    @property
    def ready(self):
        return self.reference is not None and self.hologram is not None

    def used_inputs(self):
        return describe_inputs(self.object is not None)

    def status(self):
        if not self.ready:
            return "Need at least: |R|² and |O+R|²"
        if self.object is not None:
            return "All images loaded: " + self.used_inputs()
        return "Minimal input loaded: " + self.used_inputs()

# -------------------------------
# Export
# -------------------------------

def save_figure(fig, path, dpi=EXPORT_DPI):
    fig.savefig(path, dpi=dpi, facecolor="white")
    log.info("Saved figure to %s", path)
    return path

def normalize_and_save_image(image, filename):
    image = np.nan_to_num(np.asarray(image, dtype=np.float64))
    span = np.max(image) - np.min(image)
    if span <= 1e-12:
        normalized = np.zeros_like(image)
    else:
        normalized = 255 * (image - np.min(image)) / span
    Image.fromarray(np.clip(normalized, 0, 255).astype(np.uint8), "L").save(filename)
    log.info("Saved image to %s", filename)
    return filename

def fpath_with_new_ext(path, new_ext):
    root, _ = os.path.splitext(path)
    return root + new_ext
