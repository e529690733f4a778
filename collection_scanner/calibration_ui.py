"""
Calibration UI Module for Collection Scanner

PyQt5 adapter over CalibrationSession: a canvas that renders the
screenshot with the grid overlay and forwards mouse input, and a window
with sliders for gaps, the quantity region and thresholds, a cell
selector, live detection stats and the zoomed quantity debug view.

No geometry or classification happens here; everything is read back
from the session.
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from PyQt5.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QSlider, QGroupBox, QSizePolicy
)
from PyQt5.QtCore import Qt, pyqtSignal
from PyQt5.QtGui import QPainter, QColor, QPen, QBrush, QImage, QPixmap, QFont

from collection_scanner.calibration import CalibrationSession, HANDLE_TOLERANCE
from collection_scanner.vision import (
    CalibrationError, ExtractionResult, UNLIMITED, text_region, quantity_region
)
from collection_scanner.vision.debug import get_confidence_color

logger = logging.getLogger(__name__)


# Overlay colors
GRID_OUTLINE = QColor(0, 255, 0, 204)
HANDLE_FILL = QColor(0, 255, 0, 230)
CELL_BORDER = QColor(0, 100, 255, 153)
NAME_REGION = QColor(255, 0, 0, 230)
SELECTED_CELL = QColor(0, 255, 0, 204)
QUANTITY_REGION = QColor(255, 255, 0, 230)
LABEL_COLOR = QColor(255, 255, 0, 204)


def slider_ticks(value: float, minimum: float, step: float) -> int:
    """Integer slider position for a value on a [minimum, minimum + n * step] scale."""
    return int(round((value - minimum) / step))


def array_to_qimage(array: np.ndarray) -> QImage:
    """Copy an (H, W, 3) uint8 RGB array into a QImage."""
    array = np.ascontiguousarray(array)
    height, width = array.shape[:2]
    return QImage(array.data, width, height, 3 * width, QImage.Format_RGB888).copy()


class CalibrationCanvas(QWidget):
    """
    Screenshot view with the draggable/resizable grid overlay.

    The screenshot is stretched to the widget; the session's display
    scale is refreshed on every resize so pointer positions map back to
    image pixels.
    """

    # Emitted after any pointer interaction changed the session
    session_updated = pyqtSignal()

    def __init__(self, session: CalibrationSession, image: np.ndarray):
        super().__init__()
        self._session = session
        self._qimage = array_to_qimage(image)
        self.setMouseTracking(False)
        self.setMinimumSize(480, 270)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setCursor(Qt.SizeAllCursor)

    def resizeEvent(self, event):
        """Keep the session's display scale in sync with the widget size."""
        super().resizeEvent(event)
        if self.width() > 0 and self.height() > 0:
            self._session.set_display_scale(
                self._session.image_width / self.width(),
                self._session.image_height / self.height()
            )

    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._session.pointer_down(event.x(), event.y())

    def mouseMoveEvent(self, event):
        self._session.pointer_move(event.x(), event.y())
        self.update()
        self.session_updated.emit()

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._session.pointer_up()

    def paintEvent(self, event):
        """Paint the screenshot and the overlay in image coordinates."""
        session = self._session
        settings = session.settings

        painter = QPainter(self)
        painter.scale(self.width() / session.image_width, self.height() / session.image_height)
        painter.drawImage(0, 0, self._qimage)
        painter.setBrush(Qt.NoBrush)

        # Cell boxes and name regions
        font = QFont()
        font.setPointSize(14)
        painter.setFont(font)
        for cell in session.cells:
            box = cell.box
            painter.setPen(QPen(CELL_BORDER, 2))
            painter.drawRect(box.x, box.y, box.width, box.height)

            name = text_region(box, settings.text_region)
            painter.setPen(QPen(NAME_REGION, 3))
            painter.drawRect(name.x, name.y, name.width, name.height)

            painter.setPen(LABEL_COLOR)
            painter.drawText(box.x + 5, box.y + 20, str(cell.index + 1))

        # Grid outline and corner handles
        grid = session.grid_box
        painter.setPen(QPen(GRID_OUTLINE, 3))
        painter.drawRect(grid.x, grid.y, grid.width, grid.height)

        painter.setPen(Qt.NoPen)
        painter.setBrush(QBrush(HANDLE_FILL))
        half = HANDLE_TOLERANCE // 2
        for cx, cy in ((grid.x, grid.y), (grid.right, grid.y),
                       (grid.x, grid.bottom), (grid.right, grid.bottom)):
            painter.drawRect(cx - half, cy - half, HANDLE_TOLERANCE, HANDLE_TOLERANCE)
        painter.setBrush(Qt.NoBrush)

        # Selected cell and its quantity strip
        selected = session.selected_cell.box
        painter.setPen(QPen(SELECTED_CELL, 3))
        painter.drawRect(selected.x, selected.y, selected.width, selected.height)

        strip = quantity_region(selected, settings.quantity)
        painter.setPen(QPen(QUANTITY_REGION, 3))
        painter.drawRect(strip.x, strip.y, strip.width, strip.height)

        preview = session.quantity_preview
        if preview is not None:
            bold = QFont()
            bold.setPointSize(20)
            bold.setBold(True)
            painter.setFont(bold)
            painter.setPen(QUANTITY_REGION)
            painter.drawText(selected.x + 5, selected.bottom - 10, f"Q: {_quantity_text(preview.quantity)}")

        painter.end()


class CalibrationWindow(QMainWindow):
    """
    Calibration window hosting the canvas and parameter controls.

    Signals:
        extract_requested(): User asked to run extraction with the current settings
        shutdown_requested(): Window is closing
    """

    extract_requested = pyqtSignal()
    shutdown_requested = pyqtSignal()

    def __init__(self, session: CalibrationSession, image: np.ndarray):
        super().__init__()
        self._session = session
        # Quantity field -> (slider, minimum, step, label updater)
        self._quantity_controls: Dict[str, Tuple[QSlider, float, float, Callable[[float], None]]] = {}
        self._init_ui(image)
        self.refresh()

    def _init_ui(self, image: np.ndarray):
        """Initialize the user interface components."""
        self.setWindowTitle("Collection Scanner - Calibration")
        self.resize(1400, 860)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QHBoxLayout()
        central_widget.setLayout(layout)

        # Left: canvas
        self.canvas = CalibrationCanvas(self._session, image)
        self.canvas.session_updated.connect(self.refresh)
        layout.addWidget(self.canvas, 3)

        # Right: controls
        controls = QVBoxLayout()
        layout.addLayout(controls, 1)

        self.status_label = QLabel("Status: Ready")
        status_font = QFont()
        status_font.setPointSize(10)
        status_font.setBold(True)
        self.status_label.setFont(status_font)
        controls.addWidget(self.status_label)

        self.grid_label = QLabel()
        controls.addWidget(self.grid_label)

        session = self._session
        layout_params = session.settings.layout
        quantity = session.settings.quantity

        gaps = QGroupBox("Card Spacing")
        gaps_layout = QVBoxLayout()
        gaps.setLayout(gaps_layout)
        self._add_slider(gaps_layout, "Card Gap X", 0.0, 0.02, 0.001, layout_params.card_gap_x,
                         lambda v: session.set_gaps(v, session.settings.layout.card_gap_y), percent=True)
        self._add_slider(gaps_layout, "Card Gap Y", 0.0, 0.10, 0.001, layout_params.card_gap_y,
                         lambda v: session.set_gaps(session.settings.layout.card_gap_x, v), percent=True)
        controls.addWidget(gaps)

        region = QGroupBox("Diamond Region (Yellow Box)")
        region_layout = QVBoxLayout()
        region.setLayout(region_layout)
        self._add_slider(region_layout, "Horizontal Offset", 0.0, 0.5, 0.01, quantity.offset_x,
                         lambda v: self._update_quantity(offset_x=v), field="offset_x", percent=True)
        self._add_slider(region_layout, "Vertical Offset", 0.0, 0.2, 0.01, quantity.offset_y,
                         lambda v: self._update_quantity(offset_y=v), field="offset_y", percent=True)
        self._add_slider(region_layout, "Width", 0.1, 0.8, 0.01, quantity.width,
                         lambda v: self._update_quantity(width=v), field="width", percent=True)
        self._add_slider(region_layout, "Height", 0.01, 0.15, 0.01, quantity.height,
                         lambda v: self._update_quantity(height=v), field="height", percent=True)
        controls.addWidget(region)

        thresholds = QGroupBox("Detection Thresholds")
        thresholds_layout = QVBoxLayout()
        thresholds.setLayout(thresholds_layout)
        self._add_slider(thresholds_layout, "Max Brightness", 10, 200, 5, quantity.brightness_threshold,
                         lambda v: self._update_quantity(brightness_threshold=v), field="brightness_threshold")
        self._add_slider(thresholds_layout, "Max Saturation", 5, 150, 5, quantity.saturation_threshold,
                         lambda v: self._update_quantity(saturation_threshold=v), field="saturation_threshold")
        self._add_slider(thresholds_layout, "Fill Ratio", 0.01, 0.50, 0.01, quantity.fill_ratio_threshold,
                         lambda v: self._update_quantity(fill_ratio_threshold=v),
                         field="fill_ratio_threshold", percent=True)
        self._add_slider(thresholds_layout, "Edge Density", 0.0, 0.2, 0.005,
                         session.settings.occupancy.edge_threshold,
                         lambda v: session.set_occupancy_thresholds(
                             replace(session.settings.occupancy, edge_threshold=v)),
                         percent=True)
        controls.addWidget(thresholds)

        # Card selector
        selector = QGroupBox("Preview Card (1-36)")
        selector_layout = QVBoxLayout()
        selector.setLayout(selector_layout)
        self.cell_slider = QSlider(Qt.Horizontal)
        self.cell_slider.setRange(0, len(session.cells) - 1)
        self.cell_slider.valueChanged.connect(self._on_cell_selected)
        selector_layout.addWidget(self.cell_slider)
        self.cell_label = QLabel()
        selector_layout.addWidget(self.cell_label)
        controls.addWidget(selector)

        # Detection stats and debug view
        self.stats_label = QLabel()
        self.stats_label.setTextFormat(Qt.RichText)
        controls.addWidget(self.stats_label)

        self.debug_view = QLabel()
        self.debug_view.setAlignment(Qt.AlignCenter)
        self.debug_view.setMinimumHeight(120)
        self.debug_view.setStyleSheet("background-color: black;")
        controls.addWidget(self.debug_view)

        buttons = QHBoxLayout()
        reset_button = QPushButton("Reset Quantity Defaults")
        reset_button.clicked.connect(self._on_reset_clicked)
        buttons.addWidget(reset_button)

        self.extract_button = QPushButton("EXTRACT")
        self.extract_button.setMinimumHeight(40)
        self.extract_button.clicked.connect(self.extract_requested.emit)
        buttons.addWidget(self.extract_button)
        controls.addLayout(buttons)

        controls.addStretch()

        self._apply_styles()

    def _apply_styles(self):
        """Dark theme so the screenshot and overlay colours stand out."""
        style = """
            QMainWindow {
                background-color: #1e1e1e;
            }
            QGroupBox {
                color: #dddddd;
                border: 1px solid #444444;
                border-radius: 4px;
                margin-top: 12px;
                padding: 6px;
            }
            QGroupBox::title {
                subcontrol-origin: margin;
                left: 8px;
            }
            QPushButton {
                background-color: #2196F3;
                color: white;
                border: none;
                border-radius: 5px;
                padding: 8px;
            }
            QPushButton:hover {
                background-color: #1976D2;
            }
            QPushButton:disabled {
                background-color: #555555;
                color: #999999;
            }
            QLabel {
                color: #dddddd;
            }
        """
        self.setStyleSheet(style)

    def _add_slider(
        self,
        layout: QVBoxLayout,
        title: str,
        minimum: float,
        maximum: float,
        step: float,
        value: float,
        on_change: Callable[[float], None],
        field: Optional[str] = None,
        percent: bool = False
    ) -> QSlider:
        """
        Add a labelled slider mapping integer ticks onto [minimum, maximum].

        Sliders given a quantity field name are re-synced from the session
        when the quantity parameters are reset.
        """
        label = QLabel()
        slider = QSlider(Qt.Horizontal)
        slider.setRange(0, slider_ticks(maximum, minimum, step))
        slider.setValue(slider_ticks(value, minimum, step))

        def show(v: float):
            text = f"{v * 100:.1f}%" if percent else f"{v:g}"
            label.setText(f"{title} ({text})")

        def changed(ticks: int):
            v = round(minimum + ticks * step, 6)
            show(v)
            try:
                on_change(v)
            except CalibrationError as e:
                self.set_status(f"Error: {e}")
                return
            self.refresh()

        show(value)
        slider.valueChanged.connect(changed)
        layout.addWidget(label)
        layout.addWidget(slider)
        if field is not None:
            self._quantity_controls[field] = (slider, minimum, step, show)
        return slider

    def _sync_quantity_sliders(self):
        """Move the quantity sliders to the session's values without re-applying them."""
        quantity = self._session.settings.quantity
        for field, (slider, minimum, step, show) in self._quantity_controls.items():
            value = getattr(quantity, field)
            slider.blockSignals(True)
            slider.setValue(slider_ticks(value, minimum, step))
            slider.blockSignals(False)
            show(value)

    def _update_quantity(self, **changes):
        self._session.set_quantity_params(replace(self._session.settings.quantity, **changes))

    def _on_cell_selected(self, index: int):
        self._session.select_cell(index)
        self.refresh()

    def _on_reset_clicked(self):
        self._session.reset_quantity_defaults()
        self._sync_quantity_sliders()
        self.set_status("Quantity parameters reset to defaults")
        self.refresh()

    def refresh(self):
        """Re-read everything shown from the session."""
        session = self._session
        layout_params = session.settings.layout
        cell = session.selected_cell

        self.grid_label.setText(
            f"Start X: {layout_params.start_x * 100:.1f}%   Start Y: {layout_params.start_y * 100:.1f}%\n"
            f"Width: {layout_params.grid_width * 100:.1f}%   Height: {layout_params.grid_height * 100:.1f}%"
        )
        self.cell_label.setText(f"Card {cell.index + 1} - Position: ({cell.column}, {cell.row})")

        preview = session.quantity_preview
        occupancy = session.occupancy_preview
        if preview is None:
            self.stats_label.setText("No screenshot loaded")
        else:
            parts = [f"<b>Detected Quantity: {_quantity_text(preview.quantity)}</b>"]
            if preview.reason:
                parts.append(f"({preview.reason})")
            zones = []
            for i, zone in enumerate(preview.zones):
                color = "#4CAF50" if zone.filled else "#d32f2f"
                mark = "Filled" if zone.filled else "Empty"
                zones.append(f"<span style='color:{color}'>Diamond {i + 1}: {mark} {zone.fill_ratio * 100:.1f}%</span>")
            if zones:
                parts.append("<br>".join(zones))
            if occupancy is not None:
                parts.append(
                    f"Edge density: {occupancy.edge_density * 100:.2f}% "
                    f"(variance {occupancy.variance:.0f}) - {'EMPTY' if occupancy.empty else 'CARD'}"
                )
            self.stats_label.setText("<br>".join(parts))

        debug = session.quantity_debug_image()
        if debug is None:
            self.debug_view.clear()
        else:
            pixmap = QPixmap.fromImage(array_to_qimage(debug))
            self.debug_view.setPixmap(pixmap.scaled(
                max(self.debug_view.width(), 240), 300, Qt.KeepAspectRatio, Qt.FastTransformation
            ))

        self.canvas.update()

    def set_status(self, status: str):
        """
        Update the status label.

        Args:
            status: Status text to display
        """
        self.status_label.setText(f"Status: {status}")
        if status.lower().startswith("error"):
            self.status_label.setStyleSheet("color: #d32f2f;")
        else:
            self.status_label.setStyleSheet("color: #dddddd;")

    def set_progress(self, percent: float, message: str):
        self.set_status(f"{message} ({percent * 100:.0f}%)")

    def set_running(self, is_running: bool):
        """Disable extraction while a worker is running."""
        self.extract_button.setEnabled(not is_running)
        self.extract_button.setText("EXTRACTING..." if is_running else "EXTRACT")

    def show_results(self, result: ExtractionResult):
        """Summarize an extraction result in the status label."""
        self.set_running(False)
        if not result.records:
            self.set_status("No cards found")
            return

        average = sum(r.confidence or 0.0 for r in result.records) / len(result.records)
        state = "cancelled" if result.cancelled else "done"
        self.set_status(
            f"{len(result.records)} cards, {result.empty_count} empty ({state}, "
            f"{result.processing_time_ms:.0f}ms)"
        )
        self.status_label.setStyleSheet(f"color: {get_confidence_color(average)};")

    def closeEvent(self, event):
        """
        Handle window close event.

        Emits shutdown_requested before closing so a running worker
        can be stopped.
        """
        self.shutdown_requested.emit()
        event.accept()


def _quantity_text(quantity: int) -> str:
    return "inf" if quantity == UNLIMITED else str(quantity)
