"""
Diagnostic script to analyze cell classification on screenshots.
Outputs edge density, variance and quantity zone fill per cell to tune
calibration thresholds.

Usage:
    python tools/debug_cells.py screenshot.png [--user ID]
"""

import sys
import argparse
from pathlib import Path

import numpy as np
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collection_scanner.settings import CalibrationStore
from collection_scanner.vision import (
    CalibrationSettings,
    compute_grid_cells,
    analyze_occupancy,
    analyze_quantity,
)


def analyze_image(image_path: str, settings: CalibrationSettings):
    """Analyze an image and report classifier inputs for all 36 cells."""
    print(f"\n{'='*60}")
    print(f"Analyzing: {image_path}")
    print(f"{'='*60}")

    image = np.array(Image.open(image_path).convert("RGB"))
    height, width = image.shape[:2]
    cells = compute_grid_cells(width, height, settings.layout)

    print(f"Image: {width}x{height}, cell size: {cells[0].box.width}x{cells[0].box.height}")
    print(f"Edge threshold: {settings.occupancy.edge_threshold * 100:.1f}%")

    print(f"\n--- Cell Analysis ---")
    print(f"{'Col':>3} {'Row':>3} {'Status':>6} {'Edge%':>7} {'Variance':>9} {'Qty':>4}  Zones")
    print("-" * 60)

    empty = 0
    for cell in cells:
        occupancy = analyze_occupancy(image, cell.box, settings.occupancy)
        quantity = analyze_quantity(image, cell.box, settings.quantity)

        status = "EMPTY" if occupancy.empty else "CARD"
        if occupancy.empty:
            empty += 1

        zones = " ".join(f"{z.fill_ratio * 100:5.1f}" for z in quantity.zones) or quantity.reason
        qty = "inf" if quantity.is_unlimited else str(quantity.quantity)

        # Flag cells close to the edge threshold
        flag = ""
        if abs(occupancy.edge_density - settings.occupancy.edge_threshold) < settings.occupancy.edge_threshold * 0.25:
            flag = " <-- NEAR THRESHOLD"

        print(f"{cell.column:>3} {cell.row:>3} {status:>6} {occupancy.edge_density * 100:>7.2f} "
              f"{occupancy.variance:>9.0f} {qty:>4}  {zones}{flag}")

    print("-" * 60)
    print(f"{len(cells) - empty} cards, {empty} empty")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Per-cell classifier diagnostics")
    parser.add_argument("images", nargs="+", help="Screenshots to analyze")
    parser.add_argument("--user", "-u", default=None, help="Use this user's saved calibration")
    args = parser.parse_args()

    settings = CalibrationSettings()
    if args.user:
        settings = CalibrationStore().load(args.user) or settings

    for path in args.images:
        analyze_image(path, settings)
