"""
Vision Result Dataclasses

Shared data structures produced by the geometry calculator, the
classifiers and the extraction orchestrator.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .params import GRID_COLUMNS


# Quantity sentinel for the "unlimited" indicator
UNLIMITED = -1


@dataclass(frozen=True)
class BoundingBox:
    """Integer pixel rectangle (x, y is the top-left corner)."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def contains(self, px: float, py: float) -> bool:
        """True if the point lies inside the box (edges inclusive)."""
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def is_within(self, image_width: int, image_height: int) -> bool:
        """True if the box is non-empty and lies entirely inside the image."""
        return (
            self.width > 0 and self.height > 0
            and self.x >= 0 and self.y >= 0
            and self.right <= image_width and self.bottom <= image_height
        )


@dataclass(frozen=True)
class GridCell:
    """One grid position. Column and row are 1-indexed."""
    column: int
    row: int
    box: BoundingBox

    @property
    def index(self) -> int:
        """Row-major 0-based index (0..35)."""
        return (self.row - 1) * GRID_COLUMNS + (self.column - 1)

    @property
    def label(self) -> str:
        return f"({self.column},{self.row})"


@dataclass(frozen=True)
class ZoneStat:
    """Ink statistics for one of the four indicator zones."""
    filled: bool
    fill_ratio: float
    ink_pixels: int = 0
    total_pixels: int = 0


@dataclass(frozen=True)
class QuantityReading:
    """Full result of a quantity classification."""
    quantity: int                      # 0..4, or UNLIMITED
    zones: Tuple[ZoneStat, ...] = ()   # Empty when classification was skipped
    ink_ratio: float = 0.0             # Ink pixels over the whole region
    dark_ratio: float = 0.0            # Holistic dark coverage (unlimited test)
    region: Optional[BoundingBox] = None
    reason: str = ""                   # Why a safe default was returned, if any

    @property
    def is_unlimited(self) -> bool:
        return self.quantity == UNLIMITED


@dataclass(frozen=True)
class OccupancyReading:
    """Full result of an occupancy classification."""
    empty: bool
    edge_density: float = 0.0
    variance: float = 0.0
    sample_box: Optional[BoundingBox] = None
    reason: str = ""


@dataclass(frozen=True)
class CardInfo:
    """Canonical metadata returned by the reference lookup."""
    id: str
    name: str
    set_code: str = ""
    set_name: str = ""
    rarity: str = ""
    collector_number: str = ""


@dataclass(frozen=True)
class Correction:
    """One name-correction result."""
    corrected_name: str
    confidence: float


@dataclass(frozen=True)
class ExtractedRecord:
    """
    One non-empty cell's extracted item.

    Records are immutable; a reviewer's manual fix produces a new record
    via dataclasses.replace().
    """
    column: int
    row: int
    raw_text: str
    quantity: int
    confidence: Optional[float] = None
    corrected_name: Optional[str] = None
    match: Optional[CardInfo] = None

    @property
    def display_name(self) -> str:
        return self.corrected_name or self.raw_text

    @property
    def is_unlimited(self) -> bool:
        return self.quantity == UNLIMITED


@dataclass
class ExtractionResult:
    """Complete extraction result for one screenshot."""
    records: List[ExtractedRecord]
    cells: List[GridCell]
    empty_count: int
    total_cells: int
    processing_time_ms: float
    cancelled: bool = False
    failed_cells: List[Tuple[int, int]] = field(default_factory=list)  # (column, row)
