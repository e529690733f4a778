"""
Extraction Worker Module for Collection Scanner

Provides a background QThread worker that runs one extraction pass so the
calibration window stays responsive. Communicates with the UI via Qt
signals for thread-safe status updates.
"""

import logging
from datetime import datetime
from typing import Optional

from PIL import Image
from PyQt5.QtCore import QThread, pyqtSignal

from collection_scanner.extraction import CollectionExtractor, ExtractionContext
from collection_scanner.vision import ExtractionResult, DEBUG_DIR, save_debug_image


# Configure module logger
logger = logging.getLogger(__name__)


class ExtractionWorker(QThread):
    """
    Background worker thread for one extraction run.

    Signals:
        progress_changed(float, str): Progress 0.0-1.0 and a status message
        extraction_finished(object): Emits the ExtractionResult
        error_occurred(str): Emitted when the run fails

    Example:
        worker = ExtractionWorker(extractor, image)
        worker.extraction_finished.connect(ui.show_results)
        worker.start()
        # ...
        worker.request_stop()
        worker.wait()
    """

    progress_changed = pyqtSignal(float, str)
    extraction_finished = pyqtSignal(object)
    error_occurred = pyqtSignal(str)

    def __init__(self, extractor: CollectionExtractor, image: Image.Image, debug_mode: bool = False):
        """
        Initialize the extraction worker.

        Args:
            extractor: Configured CollectionExtractor
            image: Screenshot to process
            debug_mode: Save an annotated debug image after the run
        """
        super().__init__()
        self._extractor = extractor
        self._image = image
        self._debug_mode = debug_mode
        self._context = ExtractionContext(progress_callback=self._on_progress)
        self._result: Optional[ExtractionResult] = None

    @property
    def result(self) -> Optional[ExtractionResult]:
        return self._result

    def run(self):
        """Run the extraction. Called when the thread starts."""
        logger.info("Extraction worker started")

        try:
            self._result = self._extractor.extract(self._image, self._context)
        except Exception as e:
            logger.exception("Error during extraction")
            self.error_occurred.emit(str(e))
            return

        if self._debug_mode:
            self.save_debug_image()

        self.extraction_finished.emit(self._result)
        logger.info("Extraction worker finished")

    def request_stop(self):
        """
        Request the worker to stop between cells.

        Use wait() after calling this to block until stopped.
        """
        logger.info("Stop requested")
        self._context.cancel()

    def _on_progress(self, percent: float, message: str) -> None:
        self.progress_changed.emit(percent, message)

    def save_debug_image(self) -> Optional[str]:
        """
        Save the screenshot with extraction annotations to the debug directory.

        Returns:
            Path to saved file, or None if no result is available
        """
        if self._result is None:
            logger.warning("No extraction result available for debug image")
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3]
        filepath = DEBUG_DIR / f"debug_{timestamp}.png"

        save_debug_image(
            self._image,
            self._result.cells,
            self._result,
            str(filepath),
            self._extractor.settings
        )

        logger.info(f"Debug image saved: {filepath}")
        return str(filepath)
