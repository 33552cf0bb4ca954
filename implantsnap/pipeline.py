"""
Extraction Pipeline for ImplantSnap

Runs one capture event end to end:

    tooth crop  -> preprocess -> OCR --\
    extra crop  -> preprocess -> OCR ---+-> parse -> reconcile -> PipelineResult
    table crop  -> table reader -------/

The two OCR branches and the table reader run concurrently on a thread
pool; reconciliation happens after all three have been joined.
"""

import concurrent.futures
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from PIL import Image

from .errors import ERROR_MESSAGES, ErrorCode
from .ocr import (
    LAYOUT_BLOCK,
    LAYOUT_LINE,
    OCREngine,
    OcrResult,
    ParsedData,
    Preprocessor,
    PreprocessOptions,
    RawOcrOutput,
    Reconciler,
    TableAnalysisResult,
    TableReader,
    TextParser,
    create_engine,
    validate_combination,
)
from .ocr.debug import debug_path, save_debug_crop, save_table_debug_image
from .region import ImageSource, RegionRect, crop_region, load_image
from .settings import engine_config_from, positional_order_from, preprocess_options_from


logger = logging.getLogger(__name__)


# Extra seconds allowed on top of the engine timeout when joining an OCR task
JOIN_GRACE_S = 2.0

# Used when an engine does not report its own timeout
DEFAULT_OCR_TIMEOUT_S = 15.0


@dataclass(frozen=True)
class Notice:
    """User-facing message produced by one pipeline run."""
    level: str  # "info" | "warning" | "error"
    message: str
    code: Optional[ErrorCode] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "code": self.code.value if self.code else None,
            "trace_id": self.trace_id,
        }


@dataclass(frozen=True)
class PipelineResult:
    """Everything one capture event produced."""
    trace_id: str
    ocr: OcrResult
    table: TableAnalysisResult
    final: ParsedData
    messages: Tuple[str, ...]
    notices: Tuple[Notice, ...]
    corrected: bool
    elapsed_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "parsed": self.final.to_dict(),
            "ocr": {
                "tooth": {"text": self.ocr.raw_tooth.text, "confidence": self.ocr.raw_tooth.confidence},
                "extra": {"text": self.ocr.raw_extra.text, "confidence": self.ocr.raw_extra.confidence},
                "parsed": self.ocr.parsed.to_dict(),
                "errors": list(self.ocr.errors),
            },
            "table": self.table.to_dict(),
            "corrected": self.corrected,
            "messages": list(self.messages),
            "notices": [n.to_dict() for n in self.notices],
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


class ExtractionPipeline:
    """
    Extracts and cross-validates implant data from three crops.

    Example:
        pipeline = ExtractionPipeline(create_engine("tesseract"))
        result = pipeline.run(tooth_crop, extra_crop, table_crop)
        print(result.final)
        pipeline.close()
    """

    def __init__(
        self,
        engine: OCREngine,
        preprocess: Optional[PreprocessOptions] = None,
        parser: Optional[TextParser] = None,
        table_reader: Optional[TableReader] = None,
        reconciler: Optional[Reconciler] = None,
        debug: bool = False,
        debug_dir: Optional[Path] = None,
        ocr_join_timeout_s: Optional[float] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            engine: OCR engine adapter
            preprocess: Preprocessing options (defaults to PreprocessOptions())
            parser: Text parser (defaults to TextParser())
            table_reader: Table reader (defaults to TableReader())
            reconciler: Reconciler (defaults to Reconciler())
            debug: Save preprocessed crops and annotated table images
            debug_dir: Where debug images go (defaults to ./debug)
            ocr_join_timeout_s: Wait ceiling for one OCR task. Defaults to
                twice the engine timeout plus a grace period, since both OCR
                calls may queue on the same engine.
        """
        self.engine = engine
        self.preprocessor = Preprocessor(preprocess)
        self.parser = parser or TextParser()
        self.table_reader = table_reader or TableReader()
        self.reconciler = reconciler or Reconciler()
        self.debug = debug
        self.debug_dir = debug_dir

        if ocr_join_timeout_s is None:
            engine_timeout = engine.timeout_s or DEFAULT_OCR_TIMEOUT_S
            ocr_join_timeout_s = engine_timeout * 2 + JOIN_GRACE_S
        self.ocr_join_timeout_s = ocr_join_timeout_s

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=3, thread_name_prefix="implantsnap"
        )

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], engine: Optional[OCREngine] = None) -> "ExtractionPipeline":
        """
        Build a pipeline from a settings dictionary (see settings.load_settings).

        Args:
            settings: Settings dictionary
            engine: Optional pre-built engine; created from settings otherwise
        """
        if engine is None:
            engine_type, engine_config = engine_config_from(settings)
            engine = create_engine(engine_type, **engine_config)
        return cls(
            engine=engine,
            preprocess=preprocess_options_from(settings),
            parser=TextParser(positional_order=positional_order_from(settings)),
            debug=bool(settings.get("debug_enabled", False)),
        )

    def close(self) -> None:
        """Shut down worker threads and release the engine."""
        self._executor.shutdown(wait=False)
        self.engine.close()

    def __enter__(self) -> "ExtractionPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def run_on_screenshot(self, screenshot: ImageSource, regions: Mapping[str, RegionRect]) -> PipelineResult:
        """
        Crop the configured regions from a full screenshot and run the pipeline.

        Args:
            screenshot: Full-screen capture
            regions: Mapping with "ocr_tooth", "ocr_extra" and "table" regions

        Raises:
            RegionError: If a region cannot be placed inside the screenshot
        """
        image = load_image(screenshot)
        logger.debug(f"Screenshot: {image.width}x{image.height}")
        return self.run(
            crop_region(image, regions["ocr_tooth"], "ocr_tooth"),
            crop_region(image, regions["ocr_extra"], "ocr_extra"),
            crop_region(image, regions["table"], "table"),
        )

    def run(self, tooth_image: ImageSource, extra_image: ImageSource, table_image: ImageSource) -> PipelineResult:
        """
        Run OCR and table reading concurrently, then reconcile.

        Args:
            tooth_image: Crop containing the tooth number
            extra_image: Crop containing the implant data block
            table_image: Crop of the colour-coded reference table

        Returns:
            PipelineResult

        Raises:
            PIL.UnidentifiedImageError / OSError if an OCR crop cannot be decoded
        """
        trace_id = uuid.uuid4().hex
        start = time.perf_counter()
        self._log(trace_id, "Starting extraction")

        tooth_future = self._executor.submit(self._recognize, tooth_image, LAYOUT_LINE, "ocr_tooth", trace_id)
        extra_future = self._executor.submit(self._recognize, extra_image, LAYOUT_BLOCK, "ocr_extra", trace_id)
        table_future = self._executor.submit(self._read_table, table_image, trace_id)

        raw_tooth = self._join_ocr(tooth_future, "ocr_tooth", trace_id)
        raw_extra = self._join_ocr(extra_future, "ocr_extra", trace_id)
        table = table_future.result()

        parsed, errors = self.parser.parse(raw_tooth.text, raw_extra.text)
        ocr = OcrResult(raw_tooth=raw_tooth, raw_extra=raw_extra, parsed=parsed, errors=tuple(errors))
        logger.debug(f"[{trace_id}] raw tooth: {raw_tooth}")
        logger.debug(f"[{trace_id}] raw extra: {raw_extra}")
        logger.debug(f"[{trace_id}] parsed: {parsed}")

        reconciled = self.reconciler.reconcile(parsed, table)

        notices = self._build_notices(ocr, table, reconciled.messages, reconciled.corrected, trace_id)
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._log(trace_id, f"Done in {elapsed_ms:.0f}ms: {reconciled.parsed}")

        return PipelineResult(
            trace_id=trace_id,
            ocr=ocr,
            table=table,
            final=reconciled.parsed,
            messages=tuple(errors) + reconciled.messages,
            notices=notices,
            corrected=reconciled.corrected,
            elapsed_ms=elapsed_ms,
        )

    def _recognize(self, image: ImageSource, layout: str, label: str, trace_id: str) -> RawOcrOutput:
        # Decode errors from preprocessing propagate to run()
        prepared = self.preprocessor.process(image)
        if self.debug:
            self._save_debug(save_debug_crop, prepared, debug_path(label, trace_id, self.debug_dir))

        try:
            return self.engine.recognize(prepared, layout=layout)
        except Exception:
            logger.exception(f"[{trace_id}] {label} recognition failed")
            return RawOcrOutput.failed()

    def _read_table(self, image: ImageSource, trace_id: str) -> TableAnalysisResult:
        result = self.table_reader.analyze(image)
        if self.debug and isinstance(image, Image.Image):
            self._save_debug(save_table_debug_image, image, result, debug_path("table", trace_id, self.debug_dir))
        return result

    def _join_ocr(self, future: concurrent.futures.Future, label: str, trace_id: str) -> RawOcrOutput:
        try:
            return future.result(timeout=self.ocr_join_timeout_s)
        except concurrent.futures.TimeoutError:
            logger.error(f"[{trace_id}] {label} timed out after {self.ocr_join_timeout_s:.1f}s")
            return RawOcrOutput.failed()

    def _build_notices(
        self,
        ocr: OcrResult,
        table: TableAnalysisResult,
        reconcile_messages: Tuple[str, ...],
        corrected: bool,
        trace_id: str,
    ) -> Tuple[Notice, ...]:
        notices = []
        if ocr.failed:
            notices.append(Notice("warning", ERROR_MESSAGES[ErrorCode.OCR_FAILED], ErrorCode.OCR_FAILED, trace_id))
        if ocr.errors:
            notices.append(Notice(
                "warning", f"OCR parse warnings: {'; '.join(ocr.errors)}", ErrorCode.PARSE_INCOMPLETE, trace_id
            ))
        if table.error:
            notices.append(Notice("warning", f"Table: {table.error}", ErrorCode.TABLE_UNREADABLE, trace_id))
        if corrected:
            level, code = "info", ErrorCode.COMBINATION_INVALID
        elif validate_combination(ocr.parsed.diameter, ocr.parsed.length).valid:
            level, code = "warning", ErrorCode.TABLE_MISMATCH
        else:
            level, code = "warning", ErrorCode.COMBINATION_INVALID
        for message in reconcile_messages:
            notices.append(Notice(level, message, code, trace_id))
        return tuple(notices)

    def _save_debug(self, save_fn, *args) -> None:
        try:
            save_fn(*args)
        except OSError as e:
            logger.warning(f"Failed to save debug image: {e}")

    def _log(self, trace_id: str, msg: str) -> None:
        logger.info(f"[{trace_id}] {msg}")
