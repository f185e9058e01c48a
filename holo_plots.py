"""Matplotlib drawing shared by the command line tool and the GUI."""

import numpy as np
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle

from holo_settings import PIXEL_PITCH


def _half_step(axis):
    step = axis[1] - axis[0] if len(axis) > 1 else PIXEL_PITCH * 1e3
    return step / 2


def _extent(x_mm, y_mm):
    # imshow extent so that pixel centres sit on the mm axes, y growing downward
    hx, hy = _half_step(x_mm), _half_step(y_mm)
    return (x_mm[0] - hx, x_mm[-1] + hx, y_mm[-1] + hy, y_mm[0] - hy)


def plot_amplitude(ax, recon, add_cb=True):
    vmin, vmax = recon.display_range
    im = ax.imshow(recon.amplitude_display, cmap="gray", vmin=vmin, vmax=vmax,
                   extent=_extent(recon.x_mm, recon.y_mm))
    ax.set_xlabel("x [mm]", fontsize=12)
    ax.set_ylabel("y [mm]", fontsize=12)
    ax.set_title(recon.title(), fontweight="bold", fontsize=11)
    if add_cb:
        ax.figure.colorbar(im, ax=ax, fraction=0.045, pad=0.03)
    return im


def plot_phase_map(ax, phase_map, title="Unwrapped Phase Map (ROI)", add_cb=True):
    im = ax.imshow(phase_map.phase, cmap="viridis",
                   extent=_extent(phase_map.x_mm, phase_map.y_mm))
    ax.set_xlabel("x [mm]", fontsize=12)
    ax.set_ylabel("y [mm]", fontsize=12)
    ax.set_title(title, fontweight="bold", fontsize=11)
    if add_cb:
        cb = ax.figure.colorbar(im, ax=ax, fraction=0.045, pad=0.03)
        cb.set_label("Phase [rad]", fontsize=12)
    return im


def plot_phase_surface(ax3d, phase_map):
    Xm, Ym = np.meshgrid(phase_map.x_mm, phase_map.y_mm)
    surf = ax3d.plot_surface(Xm, Ym, phase_map.phase, cmap="viridis", linewidth=0, antialiased=False)
    ax3d.set_xlabel("x [mm]", fontsize=12)
    ax3d.set_ylabel("y [mm]", fontsize=12)
    ax3d.set_zlabel("Phase [rad]", fontsize=12)
    ax3d.set_title("3D Surface Plot – Unwrapped Phase (ROI)", fontsize=13, fontweight="bold")
    ax3d.view_init(elev=30, azim=45)
    ax3d.figure.colorbar(surf, ax=ax3d, fraction=0.045, pad=0.08)
    return surf


def plot_middle_row(ax, recon):
    x, wrapped, unwrapped = recon.middle_row_profile()
    ax.scatter(x, wrapped, s=25, c="r", label="Wrapped Phase")
    ax.scatter(x, unwrapped, s=25, c="b", label="Unwrapped Phase")
    ax.set_xlabel("x [mm]", fontsize=12)
    ax.set_ylabel("Phase [rad]", fontsize=12)
    ax.set_title("Wrapped vs Unwrapped Phase – Middle Row", fontsize=12, fontweight="bold")
    ax.legend(loc="best")
    ax.grid(True)


def draw_roi(ax, roi, color="r", linestyle="-"):
    patch = Rectangle((roi.x, roi.y), roi.width, roi.height,
                      fill=False, edgecolor=color, linewidth=2, linestyle=linestyle)
    ax.add_patch(patch)
    return patch


def draw_crosshair(axes, x, y, color="g"):
    """Dashed vertical and horizontal lines through (x, y) on every axes; returns the lines."""
    lines = []
    for ax in axes:
        lines.append(ax.axvline(x, color=color, linestyle="--"))
        lines.append(ax.axhline(y, color=color, linestyle="--"))
    return lines


def mark_points(ax, points, color="r", marker="x"):
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    ax.plot(xs, ys, linestyle="none", marker=marker, color=color, markersize=10, markeredgewidth=2)
    ax.plot(xs, ys, color=color, linestyle="--", linewidth=1.5)
    for i, (x, y) in enumerate(points, start=1):
        ax.text(x, y, f"P{i}", color="w")


def build_report_figures(recon):
    """Amplitude, phase map, 3D surface and middle-row figures for a reconstruction."""
    figs = {}
    fig = Figure(figsize=(8, 7), constrained_layout=True)
    plot_amplitude(fig.add_subplot(111), recon)
    if recon.roi is not None and recon.roi_phase is not None:
        draw_roi(fig.axes[0], recon.roi)
    figs["amplitude"] = fig

    if recon.roi_phase is not None:
        fig = Figure(figsize=(8, 7), constrained_layout=True)
        plot_phase_map(fig.add_subplot(111), recon.roi_phase,
                       f"Unwrapped Phase Map (ROI) | {recon.settings.describe_reference()}")
        figs["phase"] = fig

        fig = Figure(figsize=(9, 7))
        plot_phase_surface(fig.add_subplot(111, projection="3d"), recon.roi_phase)
        figs["surface"] = fig

        fig = Figure(figsize=(8, 5), constrained_layout=True)
        plot_middle_row(fig.add_subplot(111), recon)
        figs["profile"] = fig
    return figs
