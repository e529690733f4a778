"""
Collection Scanner - Entry Point

Extracts names and quantities from a collection screenshot, either
headless (prints the records) or through the calibration window.

Example:
    python main.py screenshot.png
    python main.py screenshot.png --calibrate --user alice
    python main.py screenshot.png --names cards.txt --lookup --debug
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image
from PyQt5.QtWidgets import QApplication

from collection_scanner.calibration import CalibrationSession
from collection_scanner.calibration_ui import CalibrationWindow
from collection_scanner.extraction import CollectionExtractor
from collection_scanner.extraction_worker import ExtractionWorker
from collection_scanner.recognition import (
    FuzzyNameCorrector, ScryfallLookup, create_recognizer, available_recognizers
)
from collection_scanner.settings import CalibrationStore, load_settings, save_settings
from collection_scanner.vision import CalibrationSettings, ExtractionResult, save_debug_image, DEBUG_DIR


# Configure logging - output to both console and file
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
    handlers=[
        logging.StreamHandler(),  # Console output
        logging.FileHandler("scanner.log", mode='w', encoding='utf-8')  # File output
    ]
)
logger = logging.getLogger(__name__)


class Application:
    """
    Main application controller.

    Owns the loaded screenshot, the user's calibration and the
    extractor, and wires the calibration window to the worker thread
    when running interactively.
    """

    def __init__(
        self,
        image_path: str,
        user_id: Optional[str] = None,
        engine: Optional[str] = None,
        names_file: Optional[str] = None,
        use_lookup: bool = False,
        debug_mode: bool = False
    ):
        """
        Initialize the application.

        Args:
            image_path: Screenshot to process
            user_id: Calibration owner (overrides saved setting)
            engine: Text recognizer name (overrides saved setting)
            names_file: Optional file with one known name per line for correction
            use_lookup: Validate names against the Scryfall API
            debug_mode: Enable debug mode via CLI (overrides saved setting)
        """
        self.image_path = image_path
        self.names_file = names_file
        self.use_lookup = use_lookup

        # Load persistent settings; CLI flags override them
        self.settings = load_settings()
        self.user_id = user_id or self.settings.get("user_id", "default")
        self.engine = engine or self.settings.get("text_engine", "tesseract")
        self.debug_mode = debug_mode or self.settings.get("debug_enabled", False)

        self.store = CalibrationStore()
        self.calibration = self.store.load(self.user_id) or CalibrationSettings()

        self.image = Image.open(image_path).convert("RGB")
        logger.info(f"Loaded {image_path} ({self.image.width}x{self.image.height}) for user '{self.user_id}'")

        self.window = None
        self.worker = None

    def build_extractor(self) -> CollectionExtractor:
        """Create an extractor with the current calibration and collaborators."""
        recognizer = create_recognizer(self.engine)

        corrector = None
        if self.names_file:
            vocabulary = [
                line.strip()
                for line in Path(self.names_file).read_text(encoding="utf-8").splitlines()
                if line.strip()
            ]
            logger.info(f"Loaded {len(vocabulary)} names for correction")
            corrector = FuzzyNameCorrector(vocabulary)

        lookup = ScryfallLookup() if self.use_lookup else None
        return CollectionExtractor(recognizer, corrector, lookup, self.calibration)

    def run_headless(self) -> int:
        """
        Extract once and print the records.

        Returns:
            Exit code
        """
        result = self.build_extractor().extract(self.image)
        print_result(result)

        if self.debug_mode:
            path = DEBUG_DIR / f"debug_{Path(self.image_path).stem}.png"
            save_debug_image(self.image, result.cells, result, str(path), self.calibration)
            logger.info(f"Debug image saved: {path}")

        return 0 if not result.failed_cells else 1

    def run_calibration(self) -> int:
        """
        Open the calibration window.

        Returns:
            Exit code of the Qt event loop
        """
        app = QApplication(sys.argv)

        buffer = np.array(self.image)
        session = CalibrationSession(
            self.image.width,
            self.image.height,
            self.calibration,
            buffer,
            on_settings_changed=self._on_settings_changed
        )

        self.window = CalibrationWindow(session, buffer)
        self.window.extract_requested.connect(self._on_extract)
        self.window.shutdown_requested.connect(self._on_shutdown)
        self.window.show()

        return app.exec_()

    def _on_settings_changed(self, calibration: CalibrationSettings):
        """Persist every calibration change for the current user."""
        self.calibration = calibration
        self.store.save(self.user_id, calibration)

    def _on_extract(self):
        """Handle extract button click."""
        if self.worker and self.worker.isRunning():
            logger.warning("Worker already running")
            return

        logger.info("Starting extraction worker")
        try:
            extractor = self.build_extractor()
        except (ValueError, OSError) as e:
            self._on_error(str(e))
            return

        self.worker = ExtractionWorker(extractor, self.image, debug_mode=self.debug_mode)
        self.worker.progress_changed.connect(self.window.set_progress)
        self.worker.extraction_finished.connect(self._on_finished)
        self.worker.error_occurred.connect(self._on_error)
        self.worker.start()

        self.window.set_running(True)

    def _on_finished(self, result: ExtractionResult):
        print_result(result)
        self.window.show_results(result)

    def _on_error(self, error_msg: str):
        """Handle worker error."""
        logger.error(f"Worker error: {error_msg}")
        self.window.set_running(False)
        self.window.set_status(f"Error: {error_msg}")

    def _on_shutdown(self):
        """Handle window close."""
        logger.info("Shutdown requested")
        if not self.worker or not self.worker.isRunning():
            return

        self.worker.request_stop()
        self.worker.wait(2000)  # 2 second timeout

        if self.worker.isRunning():
            logger.warning("Worker did not stop gracefully, terminating")
            self.worker.terminate()
            self.worker.wait()


def print_result(result: ExtractionResult):
    """Print extracted records as a table."""
    print(f"\n{'Col':>3} {'Row':>3} {'Qty':>4} {'Conf':>5}  Name")
    print("-" * 50)
    for record in result.records:
        quantity = "inf" if record.is_unlimited else str(record.quantity)
        confidence = f"{record.confidence:.2f}" if record.confidence is not None else "--"
        print(f"{record.column:>3} {record.row:>3} {quantity:>4} {confidence:>5}  {record.display_name}")
    print("-" * 50)
    print(
        f"{len(result.records)} cards, {result.empty_count}/{result.total_cells} empty, "
        f"{result.processing_time_ms:.0f}ms"
    )
    if result.failed_cells:
        print(f"Recognition failed for cells: {result.failed_cells}")


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Collection Scanner - extract names and quantities from collection screenshots"
    )
    parser.add_argument("image", help="Screenshot of the collection grid")
    parser.add_argument(
        "--user", "-u",
        default=None,
        help="User id whose calibration is loaded and saved"
    )
    parser.add_argument(
        "--calibrate", "-c",
        action="store_true",
        help="Open the calibration window instead of extracting headless"
    )
    parser.add_argument(
        "--engine", "-e",
        default=None,
        choices=available_recognizers(),
        help="Text recognizer to use (default: saved setting or tesseract)"
    )
    parser.add_argument(
        "--names", "-n",
        default=None,
        help="Text file of known names used to correct recognized text"
    )
    parser.add_argument(
        "--lookup",
        action="store_true",
        help="Validate names against the Scryfall API"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug mode (save annotated screenshots)"
    )
    return parser.parse_args()


def main():
    """Initialize and run the collection scanner."""
    args = parse_args()

    application = Application(
        args.image,
        user_id=args.user,
        engine=args.engine,
        names_file=args.names,
        use_lookup=args.lookup,
        debug_mode=args.debug
    )

    # Remember the last user for the next run
    if args.user:
        application.settings["user_id"] = args.user
        save_settings(application.settings)

    if args.calibrate:
        sys.exit(application.run_calibration())
    sys.exit(application.run_headless())


if __name__ == "__main__":
    main()
