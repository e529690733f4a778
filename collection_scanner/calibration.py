"""
Calibration Session Module - live binding between pointer/slider input,
the preview overlay and the persisted calibration settings.

The session owns the current CalibrationSettings. Every change recomputes
the grid geometry for the overlay and, when a screenshot is attached,
re-runs the quantity and occupancy classifiers on the selected cell.
The owner is notified through on_settings_changed only when the
serialized settings differ from the last notification, so a stream of
pointer-move events that do not change anything causes no writes.

UI surfaces (see calibration_ui) are thin adapters over this class.
"""

import json
import logging
from dataclasses import replace
from enum import Enum, auto
from typing import Callable, List, Optional

import numpy as np

from collection_scanner.vision import (
    GRID_CELLS,
    BoundingBox,
    CalibrationSettings,
    GridCell,
    LayoutParameters,
    OccupancyReading,
    OccupancyThresholds,
    QuantityReading,
    QuantityRegionParameters,
    TextRegionParameters,
    analyze_occupancy,
    analyze_quantity,
    as_rgb_array,
    compute_grid_cells,
    grid_bounds,
    render_quantity_debug,
    validate_layout,
    validate_settings,
)
from collection_scanner.vision.pixels import ImageInput

logger = logging.getLogger(__name__)


__all__ = [
    "InteractionState",
    "ResizeHandle",
    "CalibrationSession",
]


# Hit-test tolerance around corners, in source-image pixels
HANDLE_TOLERANCE = 12

# Smallest grid extent a resize may produce (fraction of image)
MIN_GRID_FRACTION = 0.1


class InteractionState(Enum):
    """
    Pointer interaction states.

    States:
        IDLE: No pointer interaction in progress
        DRAGGING: Translating the whole grid
        RESIZING: Moving one corner of the grid
    """
    IDLE = auto()
    DRAGGING = auto()
    RESIZING = auto()


class ResizeHandle(Enum):
    """Grid corner being dragged while RESIZING."""
    TOP_LEFT = auto()
    TOP_RIGHT = auto()
    BOTTOM_LEFT = auto()
    BOTTOM_RIGHT = auto()


class CalibrationSession:
    """
    Interactive calibration controller.

    State Flow:
        IDLE --pointer_down on corner--> RESIZING(handle) --pointer_up--> IDLE
        IDLE --pointer_down inside grid--> DRAGGING --pointer_up--> IDLE

    Pointer coordinates are on-screen pixels; they are converted to image
    pixels with the display scale set by set_display_scale().

    Example:
        session = CalibrationSession(1920, 1080, settings, image,
                                     on_settings_changed=store_callback)
        session.pointer_down(300, 400)
        session.pointer_move(320, 410)
        session.pointer_up()
    """

    def __init__(
        self,
        image_width: int,
        image_height: int,
        settings: Optional[CalibrationSettings] = None,
        image: ImageInput = None,
        on_settings_changed: Optional[Callable[[CalibrationSettings], None]] = None
    ):
        """
        Initialize the session.

        Args:
            image_width: Screenshot width in pixels
            image_height: Screenshot height in pixels
            settings: Starting calibration (defaults if None)
            image: Optional screenshot for live classifier previews
            on_settings_changed: Called with the new settings whenever they change

        Raises:
            CalibrationError: If the starting layout is malformed
        """
        self.image_width = image_width
        self.image_height = image_height
        self.on_settings_changed = on_settings_changed

        self._settings = settings or CalibrationSettings()
        validate_layout(self._settings.layout)

        self._buffer: Optional[np.ndarray] = as_rgb_array(image)

        # Display scale: image pixels per on-screen pixel
        self._scale_x = 1.0
        self._scale_y = 1.0

        # Interaction state machine
        self._state = InteractionState.IDLE
        self._handle: Optional[ResizeHandle] = None
        self._grab_offset = (0.0, 0.0)

        # Cell under inspection (row-major index 0..35)
        self._selected_cell = 0

        # Derived state
        self._cells: List[GridCell] = []
        self._grid_box: Optional[BoundingBox] = None
        self._quantity_preview: Optional[QuantityReading] = None
        self._occupancy_preview: Optional[OccupancyReading] = None

        # Serialized settings from the last notification
        self._last_emitted = ""

        self._recompute(emit=False)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> CalibrationSettings:
        return self._settings

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def resize_handle(self) -> Optional[ResizeHandle]:
        return self._handle

    @property
    def cells(self) -> List[GridCell]:
        return self._cells

    @property
    def grid_box(self) -> Optional[BoundingBox]:
        return self._grid_box

    @property
    def selected_cell(self) -> GridCell:
        return self._cells[self._selected_cell]

    @property
    def selected_index(self) -> int:
        return self._selected_cell

    @property
    def quantity_preview(self) -> Optional[QuantityReading]:
        """Quantity reading of the selected cell, None without an image."""
        return self._quantity_preview

    @property
    def occupancy_preview(self) -> Optional[OccupancyReading]:
        """Occupancy reading of the selected cell, None without an image."""
        return self._occupancy_preview

    # ------------------------------------------------------------------
    # Pointer interaction
    # ------------------------------------------------------------------

    def set_display_scale(self, scale_x: float, scale_y: float) -> None:
        """
        Set how many image pixels one on-screen pixel covers.

        Args:
            scale_x: image_width / displayed_width
            scale_y: image_height / displayed_height
        """
        self._scale_x = scale_x
        self._scale_y = scale_y

    def to_image_coords(self, x: float, y: float):
        """Convert on-screen coordinates to image pixels."""
        return x * self._scale_x, y * self._scale_y

    def pointer_down(self, x: float, y: float) -> InteractionState:
        """
        Start a drag or resize if the pointer hits the grid.

        Corners are tested first (within HANDLE_TOLERANCE image pixels),
        then the grid interior.

        Returns:
            The new interaction state
        """
        mx, my = self.to_image_coords(x, y)
        layout = self._settings.layout

        left = self.image_width * layout.start_x
        top = self.image_height * layout.start_y
        right = left + self.image_width * layout.grid_width
        bottom = top + self.image_height * layout.grid_height

        corners = [
            (ResizeHandle.TOP_LEFT, left, top),
            (ResizeHandle.TOP_RIGHT, right, top),
            (ResizeHandle.BOTTOM_LEFT, left, bottom),
            (ResizeHandle.BOTTOM_RIGHT, right, bottom),
        ]
        for handle, cx, cy in corners:
            if abs(mx - cx) < HANDLE_TOLERANCE and abs(my - cy) < HANDLE_TOLERANCE:
                self._state = InteractionState.RESIZING
                self._handle = handle
                logger.debug(f"Resize started: {handle.name}")
                return self._state

        if left <= mx <= right and top <= my <= bottom:
            self._state = InteractionState.DRAGGING
            self._grab_offset = (mx - left, my - top)
            logger.debug("Drag started")

        return self._state

    def pointer_move(self, x: float, y: float) -> None:
        """
        Apply a pointer move for the current interaction, then recompute.

        Moves outside of a drag or resize change nothing, but still go
        through the recompute and change check.
        """
        mx, my = self.to_image_coords(x, y)
        mx = min(max(mx, 0.0), float(self.image_width))
        my = min(max(my, 0.0), float(self.image_height))

        if self._state == InteractionState.DRAGGING:
            self._settings = replace(self._settings, layout=self._dragged_layout(mx, my))
        elif self._state == InteractionState.RESIZING:
            self._settings = replace(self._settings, layout=self._resized_layout(mx, my))

        self._recompute()

    def pointer_up(self) -> None:
        """End any drag or resize."""
        if self._state != InteractionState.IDLE:
            logger.debug(f"{self._state.name} finished: {self._settings.layout}")
        self._state = InteractionState.IDLE
        self._handle = None

    def _dragged_layout(self, mx: float, my: float) -> LayoutParameters:
        layout = self._settings.layout
        new_x = (mx - self._grab_offset[0]) / self.image_width
        new_y = (my - self._grab_offset[1]) / self.image_height
        return replace(
            layout,
            start_x=max(0.0, min(1 - layout.grid_width, new_x)),
            start_y=max(0.0, min(1 - layout.grid_height, new_y)),
        )

    def _resized_layout(self, mx: float, my: float) -> LayoutParameters:
        layout = self._settings.layout
        fx = mx / self.image_width
        fy = my / self.image_height
        start_x, start_y = layout.start_x, layout.start_y
        width, height = layout.grid_width, layout.grid_height

        moves_left = self._handle in (ResizeHandle.TOP_LEFT, ResizeHandle.BOTTOM_LEFT)
        moves_top = self._handle in (ResizeHandle.TOP_LEFT, ResizeHandle.TOP_RIGHT)

        if moves_left:
            new_width = layout.grid_width - (fx - layout.start_x)
            if new_width > MIN_GRID_FRACTION:
                start_x, width = fx, new_width
        else:
            new_width = fx - layout.start_x
            if new_width > MIN_GRID_FRACTION:
                width = new_width

        if moves_top:
            new_height = layout.grid_height - (fy - layout.start_y)
            if new_height > MIN_GRID_FRACTION:
                start_y, height = fy, new_height
        else:
            new_height = fy - layout.start_y
            if new_height > MIN_GRID_FRACTION:
                height = new_height

        return replace(layout, start_x=start_x, start_y=start_y, grid_width=width, grid_height=height)

    # ------------------------------------------------------------------
    # Direct parameter changes (sliders, forms)
    # ------------------------------------------------------------------

    def set_layout(self, layout: LayoutParameters) -> None:
        """
        Replace the grid layout.

        Raises:
            CalibrationError: If the layout is malformed; the session
                keeps its previous layout
        """
        validate_layout(layout)
        self._settings = replace(self._settings, layout=layout)
        self._recompute()

    def set_gaps(self, card_gap_x: float, card_gap_y: float) -> None:
        """Set the inter-cell gaps (fractions of image width/height)."""
        self.set_layout(replace(self._settings.layout, card_gap_x=card_gap_x, card_gap_y=card_gap_y))

    def set_text_region(self, params: TextRegionParameters) -> None:
        """
        Replace the text region parameters.

        Raises:
            CalibrationError: If a value is negative or non-finite; the
                session keeps its previous settings
        """
        self._apply(replace(self._settings, text_region=params))

    def set_quantity_params(self, params: QuantityRegionParameters) -> None:
        """
        Replace the quantity region parameters.

        Raises:
            CalibrationError: If a value is negative or non-finite; the
                session keeps its previous settings
        """
        self._apply(replace(self._settings, quantity=params))

    def set_occupancy_thresholds(self, thresholds: OccupancyThresholds) -> None:
        self._apply(replace(self._settings, occupancy=thresholds))

    def _apply(self, settings: CalibrationSettings) -> None:
        validate_settings(settings)
        self._settings = settings
        self._recompute()

    def reset_quantity_defaults(self) -> None:
        """Restore the default quantity region and thresholds."""
        logger.info("Resetting quantity parameters to defaults")
        self.set_quantity_params(QuantityRegionParameters())

    def set_image(self, image: ImageInput) -> None:
        """
        Attach a different screenshot of the same size.

        Raises:
            ValueError: If the image size differs from the session's
        """
        buffer = as_rgb_array(image)
        if buffer is not None and buffer.shape[:2] != (self.image_height, self.image_width):
            raise ValueError(
                f"Image is {buffer.shape[1]}x{buffer.shape[0]}, "
                f"session expects {self.image_width}x{self.image_height}"
            )
        self._buffer = buffer
        self._recompute()

    # ------------------------------------------------------------------
    # Cell selection
    # ------------------------------------------------------------------

    def select_cell(self, index: int) -> None:
        """
        Select the cell used for the live classifier preview.

        Args:
            index: Row-major index 0..35

        Raises:
            IndexError: If index is outside 0..35
        """
        if not 0 <= index < GRID_CELLS:
            raise IndexError(f"Cell index {index} out of range 0..{GRID_CELLS - 1}")
        self._selected_cell = index
        self._recompute()

    def next_cell(self) -> None:
        self.select_cell((self._selected_cell + 1) % GRID_CELLS)

    def previous_cell(self) -> None:
        self.select_cell((self._selected_cell - 1) % GRID_CELLS)

    # ------------------------------------------------------------------
    # Recompute and change notification
    # ------------------------------------------------------------------

    def quantity_debug_image(self, zoom: int = 8) -> Optional[np.ndarray]:
        """Zoomed, colour-coded ink view of the selected cell's quantity strip."""
        if self._buffer is None:
            return None
        return render_quantity_debug(self._buffer, self.selected_cell.box, self._settings.quantity, zoom)

    def _recompute(self, emit: bool = True) -> None:
        settings = self._settings
        self._cells = compute_grid_cells(self.image_width, self.image_height, settings.layout)
        self._grid_box = grid_bounds(self.image_width, self.image_height, settings.layout)

        if self._buffer is not None:
            box = self.selected_cell.box
            self._quantity_preview = analyze_quantity(self._buffer, box, settings.quantity)
            self._occupancy_preview = analyze_occupancy(self._buffer, box, settings.occupancy)
        else:
            self._quantity_preview = None
            self._occupancy_preview = None

        if emit:
            self._emit_if_changed()

    def _emit_if_changed(self) -> None:
        current = json.dumps(self._settings.to_dict(), sort_keys=True)
        if current == self._last_emitted:
            return

        self._last_emitted = current
        logger.debug("Calibration settings changed")
        if self.on_settings_changed:
            self.on_settings_changed(self._settings)
