#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Off-Axis Holography Reconstruction GUI
======================================
- PyQt5 + Matplotlib, single window
- Load |O|² (optional), |R|² and |O+R|² by role
- Control panel: distance, reference angle, wavelength, gamma,
  Gaussian / median / Fourier filters, unwrap method
- Amplitude view with rectangle ROI selection
- Unwrapped phase of the ROI: map, 3D surface, middle-row profile
- Two-click depth and integral depth, rectangle roughness
- Export: PNG/TIFF figures at 300 dpi

Run:
  python holo_reconstruction_gui.py
"""

import sys

import matplotlib
matplotlib.use("Qt5Agg")
from matplotlib.figure import Figure
from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.widgets import RectangleSelector

from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
    QPushButton, QLabel, QFileDialog, QSpinBox, QMessageBox, QCheckBox,
    QComboBox, QTabWidget, QDockWidget, QLineEdit, QSlider,
)

from holo_io import (HologramImages, ImageLoadError, IMAGE_FILTER, EXPORT_FILTER, ROLES, ROLE_LABELS,
                     fpath_with_new_ext, save_figure)
from holo_logging import setup_logging
from holo_pipeline import MissingInputError, ShapeMismatchError, reconstruct_images
from holo_plots import (draw_crosshair, draw_roi, mark_points, plot_amplitude, plot_middle_row,
                        plot_phase_map, plot_phase_surface)
from holo_settings import UNWRAP_METHODS, ControlPanelState, ParameterError, wavelength_to_rgb
from phase_analysis import (
    DegenerateRoiError,
    PointPicker,
    Roi,
    measure_depth,
    measure_depth_integral,
    measure_roughness,
)

# -------------------------------
# Canvases
# -------------------------------

class PlotCanvas(FigureCanvas):
    def __init__(self, parent=None, width=7, height=6, dpi=100, projection=None):
        self.fig = Figure(figsize=(width, height), dpi=dpi, constrained_layout=projection is None)
        self.projection = projection
        super().__init__(self.fig)
        self.setParent(parent)
        self.ax = None
        self.reset_axes()

    def reset_axes(self):
        self.fig.clf()
        self.ax = self.fig.add_subplot(111, projection=self.projection)
        return self.ax

# -------------------------------
# Main App
# -------------------------------

class HoloGUI(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Off-Axis Holography Reconstruction")

        # Data
        self.images = HologramImages()
        self.state = ControlPanelState()
        self.recon = None

        # Interaction
        self.roi_selector = None
        self.rough_selector = None
        self.picker = None
        self._pick_cids = []
        self._crosshair = []

        # Views
        self.view_tabs = QTabWidget()
        self.amp_canvas = PlotCanvas(self)
        self.phase_canvas = PlotCanvas(self)
        self.surface_canvas = PlotCanvas(self, projection="3d")
        self.profile_canvas = PlotCanvas(self, height=4)
        self.view_tabs.addTab(self.amp_canvas, "Amplitude")
        self.view_tabs.addTab(self._build_phase_tab(), "Phase (ROI)")
        self.view_tabs.addTab(self.surface_canvas, "3D Surface")
        self.view_tabs.addTab(self.profile_canvas, "Middle Row")
        self.setCentralWidget(self.view_tabs)

        # Controls
        self.ctrl_dock = QDockWidget("Controls", self)
        self.ctrl_dock.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)
        ctrl = QWidget()
        lay = QVBoxLayout(ctrl)
        lay.addWidget(self._build_loader())
        lay.addWidget(self._build_controls())
        lay.addStretch()
        self.ctrl_dock.setWidget(ctrl)
        self.addDockWidget(Qt.LeftDockWidgetArea, self.ctrl_dock)

        self.update_status()

    # ---------------- UI ----------------

    def _build_loader(self):
        box = QWidget()
        grid = QGridLayout(box)
        for i, role in enumerate(ROLES):
            btn = QPushButton(f"Load {ROLE_LABELS[role]}")
            btn.clicked.connect(lambda _=False, r=role: self.load_image(r))
            grid.addWidget(btn, 0, i)
        btn_reset = QPushButton("RESET")
        btn_reset.setStyleSheet("font-weight: bold; background-color: #ff9999")
        btn_reset.clicked.connect(self.reset_images)
        grid.addWidget(btn_reset, 1, 0)
        self.lbl_status = QLabel()
        self.lbl_status.setWordWrap(True)
        grid.addWidget(self.lbl_status, 2, 0, 1, 3)
        return box

    def _edit_row(self, lay, label, text, setter):
        h = QHBoxLayout()
        h.addWidget(QLabel(label))
        edit = QLineEdit(text)
        edit.editingFinished.connect(lambda e=edit, s=setter: self._on_edit(e, s))
        h.addWidget(edit)
        lay.addLayout(h)
        return edit

    def _on_edit(self, edit, setter):
        # a rejected value is replaced by the stored one
        setter(edit.text())
        self.refresh_controls()

    def _build_controls(self):
        box = QWidget()
        lay = QVBoxLayout(box)
        s = self.state.settings

        self.edit_distance = self._edit_row(lay, "Distance [cm]", f"{s.distance_cm:g}", self.state.set_distance)
        self.edit_theta = self._edit_row(lay, "Theta [deg] (optional)", "", self.state.set_theta)

        # wavelength: edit + slider + colour swatch
        h = QHBoxLayout()
        h.addWidget(QLabel("Wavelength [nm]"))
        self.edit_lambda = QLineEdit(f"{s.wavelength_nm:.1f}")
        self.edit_lambda.editingFinished.connect(self._on_lambda_edit)
        h.addWidget(self.edit_lambda)
        self.swatch = QLabel()
        self.swatch.setFixedSize(28, 28)
        h.addWidget(self.swatch)
        lay.addLayout(h)
        self.slider_lambda = QSlider(Qt.Horizontal)
        self.slider_lambda.setRange(3800, 7500)  # 0.1 nm steps
        self.slider_lambda.setValue(int(round(s.wavelength_nm * 10)))
        self.slider_lambda.valueChanged.connect(self._on_lambda_slider)
        lay.addWidget(self.slider_lambda)

        # gamma
        h = QHBoxLayout()
        h.addWidget(QLabel("Gamma Correction (γ)"))
        self.lbl_gamma = QLabel(f"{s.gamma:.2f}")
        h.addWidget(self.lbl_gamma)
        lay.addLayout(h)
        self.slider_gamma = QSlider(Qt.Horizontal)
        self.slider_gamma.setRange(10, 100)
        self.slider_gamma.setValue(int(round(s.gamma * 100)))
        self.slider_gamma.valueChanged.connect(self._on_gamma_slider)
        lay.addWidget(self.slider_gamma)

        # filters
        self.chk_gauss = QCheckBox("Gaussian Filter")
        self.chk_gauss.toggled.connect(self.state.set_gaussian)
        lay.addWidget(self.chk_gauss)
        self.edit_sigma = self._edit_row(lay, "σ:", f"{s.gaussian_sigma:g}", self.state.set_sigma)
        self.chk_median = QCheckBox("Median Filter")
        self.chk_median.toggled.connect(self.state.set_median)
        lay.addWidget(self.chk_median)
        self.edit_median = self._edit_row(lay, "Size:", str(s.median_window), self.state.set_median_window)
        self.chk_fourier = QCheckBox("Fourier Filter")
        self.chk_fourier.toggled.connect(self.state.set_fourier)
        lay.addWidget(self.chk_fourier)
        self.edit_fourier = self._edit_row(lay, "Radius [0–1]:", f"{s.fourier_radius:g}", self.state.set_fourier_radius)

        # unwrap
        h = QHBoxLayout()
        h.addWidget(QLabel("Unwrap Method:"))
        self.combo_unwrap = QComboBox()
        for tag, label in UNWRAP_METHODS.items():
            self.combo_unwrap.addItem(label, tag)
        self.combo_unwrap.setCurrentIndex(list(UNWRAP_METHODS).index(s.unwrap_method))
        self.combo_unwrap.currentIndexChanged.connect(
            lambda i: self.state.set_unwrap_method(self.combo_unwrap.itemData(i)))
        h.addWidget(self.combo_unwrap)
        lay.addLayout(h)

        self.btn_start = QPushButton("Start Reconstruction")
        self.btn_start.setStyleSheet("font-weight: bold")
        self.btn_start.clicked.connect(self.run_reconstruction)
        lay.addWidget(self.btn_start)

        self.refresh_controls()
        return box

    def _build_phase_tab(self):
        tab = QWidget()
        lay = QVBoxLayout(tab)
        lay.addWidget(self.phase_canvas)

        h = QHBoxLayout()
        btn_depth = QPushButton("Measure Depth")
        btn_depth.clicked.connect(lambda: self.begin_pick(integral=False))
        btn_int = QPushButton("Measure Depth (Integral)")
        btn_int.clicked.connect(lambda: self.begin_pick(integral=True))
        btn_rough = QPushButton("Measure Roughness")
        btn_rough.clicked.connect(self.begin_roughness)
        h.addWidget(btn_depth); h.addWidget(btn_int); h.addWidget(btn_rough)

        h.addWidget(QLabel("Averaging Radius [px]:"))
        self.spin_radius = QSpinBox()
        self.spin_radius.setRange(1, 100)
        self.spin_radius.setValue(self.state.settings.averaging_radius)
        self.spin_radius.valueChanged.connect(self.state.set_averaging_radius)
        h.addWidget(self.spin_radius)

        btn_save_phase = QPushButton("Save Phase Map")
        btn_save_phase.clicked.connect(lambda: self.export_canvas(self.phase_canvas, "phase_map"))
        btn_save_amp = QPushButton("Save Amplitude")
        btn_save_amp.clicked.connect(lambda: self.export_canvas(self.amp_canvas, "amplitude"))
        h.addWidget(btn_save_phase); h.addWidget(btn_save_amp)
        lay.addLayout(h)

        self.lbl_result = QLabel("")
        lay.addWidget(self.lbl_result)
        return tab

    def refresh_controls(self):
        s = self.state.settings
        self.edit_distance.setText(f"{s.distance_cm:g}")
        self.edit_theta.setText("" if s.theta_rad is None else f"{s.theta_deg:g}")
        self.edit_lambda.setText(f"{s.wavelength_nm:.1f}")
        self.edit_sigma.setText(f"{s.gaussian_sigma:g}")
        self.edit_median.setText(str(s.median_window))
        self.edit_fourier.setText(f"{s.fourier_radius:g}")
        self.lbl_gamma.setText(f"{s.gamma:.2f}")
        r, g, b = (int(255 * c) for c in wavelength_to_rgb(s.wavelength_nm))
        self.swatch.setStyleSheet(f"background-color: rgb({r},{g},{b}); border-radius: 14px")

    def _on_lambda_edit(self):
        if self.state.set_wavelength(self.edit_lambda.text()):
            self.slider_lambda.blockSignals(True)
            self.slider_lambda.setValue(int(round(self.state.settings.wavelength_nm * 10)))
            self.slider_lambda.blockSignals(False)
        self.refresh_controls()

    def _on_lambda_slider(self, value):
        self.state.set_wavelength(value / 10)
        self.refresh_controls()

    def _on_gamma_slider(self, value):
        self.state.set_gamma(value / 100)
        self.refresh_controls()

    def update_status(self):
        ready = self.images.ready
        self.btn_start.setEnabled(ready)
        self.lbl_status.setText("Status: " + self.images.status())
        self.lbl_status.setStyleSheet("color: green" if ready else "color: darkred")

    # --------------- Actions ----------------

    def load_image(self, role):
        fname, _ = QFileDialog.getOpenFileName(self, f"Open {ROLE_LABELS[role]}", "", IMAGE_FILTER)
        if not fname:
            return
        try:
            self.images.load(role, fname)
        except ImageLoadError as exc:
            QMessageBox.warning(self, "Warning", str(exc))
        self.update_status()

    def reset_images(self):
        self.images.reset()
        self.update_status()

    def run_reconstruction(self):
        self.cancel_pick()
        try:
            settings = self.state.snapshot()
            self.recon = reconstruct_images(self.images, settings)
        except (MissingInputError, ShapeMismatchError, ParameterError) as exc:
            QMessageBox.critical(self, "Error", str(exc))
            return
        for notice in self.recon.notices:
            QMessageBox.warning(self, "Unwrap", notice)

        ax = self.amp_canvas.reset_axes()
        plot_amplitude(ax, self.recon)
        self.amp_canvas.draw()
        self.view_tabs.setCurrentWidget(self.amp_canvas)

        # rectangle ROI on the amplitude image
        self.roi_selector = RectangleSelector(ax, self.on_roi_selected, useblit=True,
                                              button=[1], minspanx=0, minspany=0,
                                              spancoords="data", interactive=False)

    def on_roi_selected(self, eclick, erelease):
        if self.recon is None:
            return
        self.cancel_pick()
        if None in (eclick.xdata, eclick.ydata, erelease.xdata, erelease.ydata):
            return
        roi = Roi.from_extents(min(eclick.xdata, erelease.xdata), max(eclick.xdata, erelease.xdata),
                               min(eclick.ydata, erelease.ydata), max(eclick.ydata, erelease.ydata))
        try:
            phase_map = self.recon.select_roi(roi)
        except DegenerateRoiError as exc:
            QMessageBox.warning(self, "ROI", f"ROI selection was cancelled or invalid.\n{exc}")
            return

        draw_roi(self.amp_canvas.ax, roi)
        self.amp_canvas.draw()

        title = f"Unwrapped Phase Map (ROI) | {self.recon.settings.describe_reference()}"
        plot_phase_map(self.phase_canvas.reset_axes(), phase_map, title)
        self.phase_canvas.draw()
        plot_phase_surface(self.surface_canvas.reset_axes(), phase_map)
        self.surface_canvas.draw()
        plot_middle_row(self.profile_canvas.reset_axes(), self.recon)
        self.profile_canvas.draw()
        self.view_tabs.setCurrentIndex(1)

    # --------------- Measurements ----------------

    def begin_pick(self, integral=False):
        if self.recon is None or self.recon.roi_phase is None:
            QMessageBox.warning(self, "Warning", "Select an ROI first.")
            return
        s = self.recon.settings
        if s.theta_rad is None:
            QMessageBox.warning(self, "Warning", "Set the reference angle θ before measuring depth.")
            return
        self.cancel_pick()
        radius = self.state.settings.averaging_radius
        phase_map = self.recon.roi_phase
        if integral:
            measure = lambda p1, p2: measure_depth_integral(phase_map, p1, p2, s.wavelength_m, s.theta_rad, radius)
        else:
            measure = lambda p1, p2: measure_depth(phase_map, p1, p2, s.wavelength_m, s.theta_rad, radius)
        self.picker = PointPicker(phase_map, measure)
        self.picker.begin()
        self._pick_color = "m" if integral else "r"

        canvas = self.phase_canvas
        self._pick_cids = [
            canvas.mpl_connect("button_press_event", self.on_pick_click),
            canvas.mpl_connect("motion_notify_event", self.on_pick_move),
            canvas.mpl_connect("key_press_event", self.on_pick_key),
        ]
        canvas.setFocus()
        self.lbl_result.setText("Click two points on the phase map (Esc cancels).")

    def cancel_pick(self):
        for cid in self._pick_cids:
            self.phase_canvas.mpl_disconnect(cid)
        self._pick_cids = []
        self._clear_crosshair()
        if self.picker is not None and self.picker.active:
            self.picker.cancel()

    def _clear_crosshair(self):
        for line in self._crosshair:
            line.remove()
        self._crosshair = []

    def on_pick_move(self, event):
        if event.inaxes is not self.phase_canvas.ax or self.picker is None:
            return
        if not self.picker.phase_map.contains(event.xdata, event.ydata):
            return
        self._clear_crosshair()
        # mirrored on the amplitude image, which shares the mm axes
        self._crosshair = draw_crosshair([self.phase_canvas.ax, self.amp_canvas.ax], event.xdata, event.ydata)
        self.phase_canvas.draw_idle()
        self.amp_canvas.draw_idle()

    def on_pick_key(self, event):
        if event.key == "escape":
            self.cancel_pick()
            self.lbl_result.setText("Measurement cancelled.")
            self.phase_canvas.draw_idle()
            self.amp_canvas.draw_idle()

    def on_pick_click(self, event):
        if event.inaxes is not self.phase_canvas.ax or self.picker is None:
            return
        try:
            result = self.picker.submit(event.xdata, event.ydata)
        except ValueError as exc:
            self.cancel_pick()
            QMessageBox.warning(self, "Measurement", str(exc))
            return
        if result is None:
            return
        points = list(self.picker.points)
        self.cancel_pick()
        mark_points(self.phase_canvas.ax, points, color=self._pick_color)
        mark_points(self.amp_canvas.ax, points, color=self._pick_color, marker="o")
        self.phase_canvas.draw()
        self.amp_canvas.draw()
        if hasattr(result, "delta_phi"):
            self.lbl_result.setText(f"Δφ = {result.delta_phi:.2f} rad | Δz = {result.delta_z * 1e6:.3f} µm")
        else:
            self.lbl_result.setText(f"⟨φ⟩ = {result.mean_phase:.2f} rad | Δz = {result.delta_z * 1e6:.3f} µm")

    def begin_roughness(self):
        if self.recon is None or self.recon.roi_phase is None:
            QMessageBox.warning(self, "Warning", "Select an ROI first.")
            return
        self.cancel_pick()
        self.lbl_result.setText("Drag a rectangle on the phase map to compute RMS roughness.")
        self.rough_selector = RectangleSelector(self.phase_canvas.ax, self.on_roughness_selected,
                                                useblit=True, button=[1], spancoords="data")

    def on_roughness_selected(self, eclick, erelease):
        self.rough_selector.set_active(False)
        if None in (eclick.xdata, eclick.ydata, erelease.xdata, erelease.ydata):
            return
        roi = Roi.from_extents(min(eclick.xdata, erelease.xdata), max(eclick.xdata, erelease.xdata),
                               min(eclick.ydata, erelease.ydata), max(eclick.ydata, erelease.ydata))
        try:
            m = measure_roughness(self.recon.roi_phase, roi, self.recon.settings.wavelength_m)
        except DegenerateRoiError as exc:
            QMessageBox.warning(self, "Roughness", str(exc))
            return
        draw_roi(self.phase_canvas.ax, roi, color="m", linestyle="--")
        self.phase_canvas.draw()
        self.lbl_result.setText(f"RMS Phase: {m.sigma_phase:.2f} rad | "
                                f"RMS Roughness: {m.rms_roughness * 1e6:.3f} µm (θ = 3.0°)")

    # --------------- Export ----------------

    def export_canvas(self, canvas, default_name):
        path, _ = QFileDialog.getSaveFileName(self, "Save Reconstructed Image", f"{default_name}.tif", EXPORT_FILTER)
        if not path:
            return
        if not path.lower().endswith((".tif", ".tiff", ".png")):
            path = fpath_with_new_ext(path, ".tif")
        save_figure(canvas.fig, path)


def main():
    setup_logging()
    app = QApplication(sys.argv)
    w = HoloGUI()
    w.resize(1400, 900)
    w.show()
    sys.exit(app.exec_())

if __name__ == "__main__":
    main()
