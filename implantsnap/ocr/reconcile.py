"""
Reconciler

Cross-checks the OCR record against the table reading. Disagreement is
never an error: the OCR pair is either replaced by a trusted table pair
or kept with an advisory message.
"""

import logging
from dataclasses import replace

from .combinations import validate_combination
from .result import ParsedData, ReconcileResult, TableAnalysisResult


logger = logging.getLogger(__name__)


class Reconciler:
    """
    Merges OCR and table readings.

    Policy:
        - OCR pair invalid, table "high" and valid -> take table diameter/length
        - OCR pair invalid otherwise -> keep OCR, warn about the combination
        - OCR pair valid, table "high" but different -> keep OCR, warn about mismatch
        - anything else -> keep OCR silently
    """

    def reconcile(self, parsed: ParsedData, table: TableAnalysisResult) -> ReconcileResult:
        ocr_check = validate_combination(parsed.diameter, parsed.length)
        table_trusted = table.detected and table.confidence == "high"

        if not ocr_check.valid:
            if table_trusted and validate_combination(table.diameter, table.length).valid:
                corrected = replace(parsed, diameter=table.diameter, length=table.length)
                message = (
                    f"OCR read Ø{parsed.diameter or '?'} x {parsed.length or '?'}mm "
                    f"({ocr_check.message}); corrected from table to Ø{table.diameter} x {table.length}mm"
                )
                logger.info(message)
                return ReconcileResult(parsed=corrected, messages=(message,), corrected=True)

            logger.info(f"OCR combination invalid, no table correction: {ocr_check.message}")
            return ReconcileResult(parsed=parsed, messages=(ocr_check.message,))

        if table_trusted and (table.diameter != parsed.diameter or table.length != parsed.length):
            message = (
                f"OCR (Ø{parsed.diameter} x {parsed.length}mm) and table "
                f"(Ø{table.diameter} x {table.length}mm) disagree; keeping OCR"
            )
            logger.warning(message)
            return ReconcileResult(parsed=parsed, messages=(message,))

        return ReconcileResult(parsed=parsed)
