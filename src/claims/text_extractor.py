"""
Text extraction from uploaded documents.

Images are read with Pillow and recognised with Tesseract (pytesseract).
PDF extraction is not implemented: PDFs always yield empty text. Any other
MIME type also yields empty text. Only infrastructure failures raise.
"""

import io
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import ContextManager, Iterator, Optional

import pytesseract
from PIL import Image, UnidentifiedImageError

from .errors import UpstreamError

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


def is_image(mime_type: str) -> bool:
    """Whether a MIME type is an image type."""
    return (mime_type or "").lower().startswith("image/")


def is_supported_upload(mime_type: str) -> bool:
    """Uploads accepted for claims: images and PDFs."""
    return is_image(mime_type) or (mime_type or "").lower() == PDF_MIME_TYPE


class OcrWorker(ABC):
    """A recogniser acquired for a single extraction."""

    @abstractmethod
    def recognize(self, image: Image.Image) -> str:
        """Return the text recognised in an image."""


class OcrEngine(ABC):
    """Hands out OCR workers, one per invocation."""

    @abstractmethod
    def acquire(self) -> ContextManager[OcrWorker]:
        """Acquire a worker; it is released when the block exits."""


class TesseractWorker(OcrWorker):
    """Tesseract recogniser bound to one language and config."""

    def __init__(self, language: str, config: str = ""):
        self.language = language
        self.config = config
        self.released = False

    def recognize(self, image: Image.Image) -> str:
        if self.released:
            raise RuntimeError("OCR worker used after release")
        try:
            return pytesseract.image_to_string(image, lang=self.language, config=self.config)
        except pytesseract.TesseractNotFoundError as e:
            raise UpstreamError("Tesseract binary not found", stage="ocr") from e
        except pytesseract.TesseractError as e:
            raise UpstreamError(f"Tesseract failed: {e.message}", stage="ocr") from e


class TesseractEngine(OcrEngine):
    """OCR engine backed by the local Tesseract installation."""

    def __init__(self, language: str = "eng", config: str = ""):
        self.language = language
        self.config = config

    @contextmanager
    def acquire(self) -> Iterator[TesseractWorker]:
        worker = TesseractWorker(self.language, self.config)
        logger.debug(f"Acquired OCR worker (lang={self.language})")
        try:
            yield worker
        finally:
            worker.released = True
            logger.debug("Released OCR worker")


class TextExtractionService:
    """Converts uploaded file bytes into plain text."""

    def __init__(self, engine: Optional[OcrEngine] = None):
        self.engine = engine or TesseractEngine()

    def extract(self, data: bytes, mime_type: str) -> str:
        """
        Extract text from an uploaded file.

        Args:
            data: Raw file bytes
            mime_type: Declared MIME type of the file

        Returns:
            Recognised text ('' for blank images, PDFs and other types)

        Raises:
            UpstreamError: the image could not be read or OCR is unavailable
        """
        if not is_image(mime_type):
            if (mime_type or "").lower() == PDF_MIME_TYPE:
                logger.info("PDF text extraction not supported, returning empty text")
            else:
                logger.info(f"No text extraction for MIME type {mime_type!r}")
            return ""

        start_time = datetime.utcnow()
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise UpstreamError(
                f"Unreadable image file: {type(e).__name__}",
                stage="ocr",
                details={"mime_type": mime_type, "size": len(data)},
            ) from e

        with image, self.engine.acquire() as worker:
            text = worker.recognize(image)

        text = (text or "").strip()
        elapsed_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        logger.info(f"OCR complete: {len(text)} chars, ocr_time_ms={elapsed_ms:.0f}")
        return text
