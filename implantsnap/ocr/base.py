"""
OCR Engine Base Interface

Abstract base class defining the OCR engine contract.
"""

from abc import ABC, abstractmethod
from PIL import Image

from .result import RawOcrOutput


# Page layouts a caller can ask for
LAYOUT_LINE = "line"
LAYOUT_BLOCK = "block"


class OCREngine(ABC):
    """
    Abstract base class for OCR engines.

    An engine holds whatever model resource it needs and must serialize
    concurrent recognize() calls itself if it cannot run them in parallel.
    Failures and timeouts are reported as RawOcrOutput.failed(), never raised.
    """

    @abstractmethod
    def recognize(self, image: Image.Image, layout: str = LAYOUT_BLOCK) -> RawOcrOutput:
        """
        Recognize text in a preprocessed image.

        Args:
            image: Preprocessed PIL image
            layout: LAYOUT_LINE for a single text line, LAYOUT_BLOCK for a
                block of text

        Returns:
            RawOcrOutput with text and a 0-100 confidence
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Engine identifier.

        Returns:
            String name identifying this engine type (e.g., "tesseract")
        """
        pass

    @property
    def timeout_s(self) -> float:
        """Upper bound on one recognize() call, used by callers to size joins."""
        return 0.0

    def configure(self, **kwargs) -> None:
        """
        Configure engine parameters.

        Override in subclasses to support runtime configuration.
        Default implementation does nothing.

        Args:
            **kwargs: Engine-specific configuration options
        """
        pass

    def close(self) -> None:
        """Release the engine's resources. Default implementation does nothing."""
        pass
