"""
Calibration Parameter Dataclasses

One structured type per calibration concern (grid layout, name region,
quantity region, occupancy thresholds) plus the CalibrationSettings
aggregate that is persisted per user.

All positional values are fractions: layout values are fractions of the
image width/height, region values are fractions of a single cell's box.
"""

import math
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict


# Fixed grid cardinality (12 columns x 3 rows)
GRID_COLUMNS = 12
GRID_ROWS = 3
GRID_CELLS = GRID_COLUMNS * GRID_ROWS  # 36 cells

# Float slack allowed when origin + extent lands exactly on the image edge
EXTENT_TOLERANCE = 1e-9


class CalibrationError(ValueError):
    """Raised when calibration parameters violate their invariants."""


@dataclass(frozen=True)
class LayoutParameters:
    """Grid placement as fractions of the image dimensions."""
    start_x: float = 0.027
    start_y: float = 0.193
    grid_width: float = 0.945
    grid_height: float = 0.788
    card_gap_x: float = 0.008   # Horizontal gap between cells (0.8% of width)
    card_gap_y: float = 0.036   # Vertical gap between cells (3.6% of height)


@dataclass(frozen=True)
class TextRegionParameters:
    """Name label location as fractions of a cell's box."""
    left: float = 0.05
    top: float = 0.05
    width: float = 0.6
    height: float = 0.12


@dataclass(frozen=True)
class QuantityRegionParameters:
    """
    Quantity indicator strip and its classification thresholds.

    The strip sits above the cell: offset_y is measured upward from the
    top edge of the cell's box.
    """
    offset_x: float = 0.28
    offset_y: float = 0.08
    width: float = 0.44
    height: float = 0.07
    brightness_threshold: float = 50
    saturation_threshold: float = 10
    fill_ratio_threshold: float = 0.05


@dataclass(frozen=True)
class OccupancyThresholds:
    """Empty-slot detection thresholds."""
    edge_threshold: float = 0.02
    variance_threshold: float = 1000.0  # Advisory only, never gates the decision


@dataclass(frozen=True)
class CalibrationSettings:
    """All calibration parameters for one user."""
    layout: LayoutParameters = field(default_factory=LayoutParameters)
    text_region: TextRegionParameters = field(default_factory=TextRegionParameters)
    quantity: QuantityRegionParameters = field(default_factory=QuantityRegionParameters)
    occupancy: OccupancyThresholds = field(default_factory=OccupancyThresholds)

    def to_dict(self) -> Dict[str, Any]:
        """
        Flatten into the persisted record shape.

        Keys mirror the stored column names, e.g. ``start_x``,
        ``ocr_left``, ``quantity_offset_x``, ``edge_threshold``.
        """
        record: Dict[str, Any] = {}
        record.update(asdict(self.layout))
        for key, value in asdict(self.text_region).items():
            record[f"ocr_{key}"] = value
        for key, value in asdict(self.quantity).items():
            if key.endswith("_threshold"):
                record[key] = value
            else:
                record[f"quantity_{key}"] = value
        record.update(asdict(self.occupancy))
        return record

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "CalibrationSettings":
        """
        Build settings from a flat record, filling missing keys with defaults.

        Args:
            record: Flat dictionary as produced by to_dict()

        Returns:
            CalibrationSettings instance

        Raises:
            CalibrationError: If a present value is not a number
        """
        def pick(dc_type, prefix: str = "", keep_thresholds: bool = False):
            values = {}
            for f in fields(dc_type):
                key = f.name
                if prefix and not (keep_thresholds and key.endswith("_threshold")):
                    key = prefix + key
                if key in record and record[key] is not None:
                    values[f.name] = _as_number(key, record[key])
            return dc_type(**values)

        return cls(
            layout=pick(LayoutParameters),
            text_region=pick(TextRegionParameters, "ocr_"),
            quantity=pick(QuantityRegionParameters, "quantity_", keep_thresholds=True),
            occupancy=pick(OccupancyThresholds),
        )


def _as_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CalibrationError(f"{key} must be a number, got {value!r}")
    return value


def validate_layout(layout: LayoutParameters) -> None:
    """
    Check the layout invariants before geometry is computed from it.

    Raises:
        CalibrationError: If any value is non-finite or negative, the
            grid extent is zero, or origin + extent exceeds the image.
    """
    for f in fields(layout):
        value = getattr(layout, f.name)
        if not math.isfinite(value):
            raise CalibrationError(f"{f.name} must be finite, got {value}")
        if value < 0:
            raise CalibrationError(f"{f.name} must not be negative, got {value}")

    if layout.grid_width <= 0 or layout.grid_height <= 0:
        raise CalibrationError("Grid width and height must be greater than zero")
    if layout.start_x + layout.grid_width > 1 + EXTENT_TOLERANCE:
        raise CalibrationError(
            f"start_x + grid_width exceeds image width ({layout.start_x + layout.grid_width:.3f})"
        )
    if layout.start_y + layout.grid_height > 1 + EXTENT_TOLERANCE:
        raise CalibrationError(
            f"start_y + grid_height exceeds image height ({layout.start_y + layout.grid_height:.3f})"
        )


def validate_settings(settings: CalibrationSettings) -> None:
    """
    Validate a complete settings aggregate.

    Region and threshold values only need to be finite and non-negative;
    the layout is held to its full invariants.

    Raises:
        CalibrationError: On the first violation found
    """
    validate_layout(settings.layout)
    for params in (settings.text_region, settings.quantity, settings.occupancy):
        for f in fields(params):
            value = getattr(params, f.name)
            if not math.isfinite(value) or value < 0:
                raise CalibrationError(f"{f.name} must be a finite non-negative number, got {value}")
