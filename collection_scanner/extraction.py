"""
Extraction Orchestrator

Drives geometry, occupancy and quantity classification across all 36
cells of one screenshot, running the text recognizer only on cells that
hold an item, then batch-correcting and looking up the recognized names.

Pipeline:
    image -> grid cells -> drop empty cells -> OCR name -> quantity
          -> name correction (batch) -> reference lookup -> records
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from collection_scanner.recognition import (
    TextRecognizer, NameCorrector, CardLookup, RecognitionError
)
from collection_scanner.vision import (
    CalibrationSettings,
    ExtractedRecord,
    ExtractionResult,
    as_rgb_array,
    compute_grid_cells,
    text_region,
    analyze_occupancy,
    detect_quantity,
)
from collection_scanner.vision.pixels import ImageInput

logger = logging.getLogger(__name__)


__all__ = [
    "ExtractionContext",
    "CollectionExtractor",
]


@dataclass
class ExtractionContext:
    """
    Cancellation and progress reporting for one extraction run.

    Attributes:
        cancel_flag: Threading event checked between cells
        progress_callback: Optional callback receiving (0.0-1.0, message)
    """
    cancel_flag: threading.Event = field(default_factory=threading.Event)
    progress_callback: Optional[Callable[[float, str], None]] = None

    def is_cancelled(self) -> bool:
        return self.cancel_flag.is_set()

    def cancel(self) -> None:
        self.cancel_flag.set()

    def report_progress(self, percent: float, message: str = "") -> None:
        """
        Report progress to the caller.

        Args:
            percent: Progress from 0.0 to 1.0
            message: Optional status message
        """
        if self.progress_callback:
            self.progress_callback(percent, message)


class CollectionExtractor:
    """
    Extracts collection records from a screenshot.

    The recognizer is required; correction and lookup are optional
    stages that are skipped when not configured.

    Example:
        extractor = CollectionExtractor(create_recognizer(), settings=settings)
        result = extractor.extract(image)
        for record in result.records:
            print(record.display_name, record.quantity)
    """

    # Share of the progress bar used by the per-cell pass
    CELL_PASS_SHARE = 0.5

    def __init__(
        self,
        recognizer: TextRecognizer,
        corrector: Optional[NameCorrector] = None,
        lookup: Optional[CardLookup] = None,
        settings: Optional[CalibrationSettings] = None
    ):
        self.recognizer = recognizer
        self.corrector = corrector
        self.lookup = lookup
        self.settings = settings or CalibrationSettings()

    def extract(self, image: ImageInput, context: Optional[ExtractionContext] = None) -> ExtractionResult:
        """
        Run the full pipeline on one screenshot.

        Args:
            image: PIL Image or RGB/RGBA uint8 array
            context: Optional cancellation/progress context

        Returns:
            ExtractionResult. If cancelled, holds the records extracted
            before cancellation and cancelled=True.
        """
        start_time = time.perf_counter()
        context = context or ExtractionContext()

        buffer = as_rgb_array(image)
        if buffer is None:
            logger.warning("No pixel data available, nothing to extract")
            return ExtractionResult(
                records=[],
                cells=[],
                empty_count=0,
                total_cells=0,
                processing_time_ms=(time.perf_counter() - start_time) * 1000
            )

        img_height, img_width = buffer.shape[:2]
        cells = compute_grid_cells(img_width, img_height, self.settings.layout)

        records: List[ExtractedRecord] = []
        failed_cells = []
        empty_count = 0
        cancelled = False

        for i, cell in enumerate(cells):
            if context.is_cancelled():
                logger.info(f"Extraction cancelled after {i} of {len(cells)} cells")
                cancelled = True
                break

            occupancy = analyze_occupancy(buffer, cell.box, self.settings.occupancy, diagnostics=logger)
            if occupancy.empty:
                empty_count += 1
            else:
                try:
                    record = self._read_cell(buffer, cell)
                except RecognitionError as e:
                    logger.error(f"Recognition failed for cell {cell.label}: {e}")
                    failed_cells.append((cell.column, cell.row))
                    record = None
                if record is not None:
                    records.append(record)

            context.report_progress(
                (i + 1) / len(cells) * self.CELL_PASS_SHARE,
                f"Extracting cards ({i + 1}/{len(cells)})"
            )

        if not cancelled and records:
            records = self._correct_names(records, context)
        if not cancelled and records and not context.is_cancelled():
            records = self._lookup_names(records, context)
        cancelled = cancelled or context.is_cancelled()

        if not cancelled:
            context.report_progress(1.0, "Done")

        processing_time = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Extracted {len(records)} cards ({empty_count} empty slots) in {processing_time:.1f}ms"
        )

        return ExtractionResult(
            records=records,
            cells=cells,
            empty_count=empty_count,
            total_cells=len(cells),
            processing_time_ms=processing_time,
            cancelled=cancelled,
            failed_cells=failed_cells
        )

    def _read_cell(self, buffer, cell) -> Optional[ExtractedRecord]:
        """OCR the name and classify the quantity of one occupied cell."""
        region = text_region(cell.box, self.settings.text_region)
        text, confidence = self.recognizer.recognize(buffer, region)
        text = text.strip()

        if not text:
            logger.debug(f"Cell {cell.label}: no text recognized, skipping")
            return None

        quantity = detect_quantity(buffer, cell.box, self.settings.quantity, diagnostics=logger)
        logger.debug(f"Cell {cell.label}: '{text}' x{quantity} (confidence {confidence:.2f})")

        return ExtractedRecord(
            column=cell.column,
            row=cell.row,
            raw_text=text,
            quantity=quantity,
            confidence=confidence,
        )

    def _correct_names(self, records: List[ExtractedRecord], context: ExtractionContext) -> List[ExtractedRecord]:
        if self.corrector is None:
            return records

        context.report_progress(0.6, "Correcting card names...")
        try:
            corrections = self.corrector.correct_batch([r.raw_text for r in records])
        except RecognitionError as e:
            logger.warning(f"Name correction failed, keeping raw text: {e}")
            return records

        corrected = []
        for record, correction in zip(records, corrections):
            if correction is None:
                corrected.append(record)
                continue
            corrected.append(replace(
                record,
                corrected_name=correction.corrected_name,
                confidence=(record.confidence or 0.0) * correction.confidence,
            ))
        # Correctors returning fewer results leave the remainder untouched
        corrected.extend(records[len(corrected):])
        return corrected

    def _lookup_names(self, records: List[ExtractedRecord], context: ExtractionContext) -> List[ExtractedRecord]:
        if self.lookup is None:
            return records

        resolved = []
        for i, record in enumerate(records):
            if context.is_cancelled():
                resolved.extend(records[i:])
                break

            try:
                card = self.lookup.lookup(record.display_name)
            except LookupError as e:
                logger.warning(f"Lookup failed for '{record.display_name}': {e}")
                card = None

            if card is not None:
                record = replace(record, match=card, corrected_name=card.name)
            resolved.append(record)

            context.report_progress(
                0.75 + 0.25 * (i + 1) / len(records),
                f"Validating names ({i + 1}/{len(records)})"
            )
        return resolved
