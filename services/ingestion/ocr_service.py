"""
OCR fallback for scanned or image-only menu PDFs.

Pages are rasterized with pdf2image (poppler) and recognized with Tesseract
through pytesseract. The resulting page texts run through the same line
scanner as native text, with a lower price-confidence floor and a flat
discount on every item's confidence to account for recognition noise.

The recognizer is built lazily on first use, reused afterwards and released
with ``close()``. Construction is serialized by a lock so concurrent first
calls build it once.
"""
from __future__ import annotations
from typing import Callable, List, Optional, Protocol
import functools
import threading
from sqlmodel import SQLModel, Field
from models.ingestion import ParsedMenuItem
from utils.logger import setup_logger
from .errors import ParseError
from .menu_parser import MenuParser

logger = setup_logger(__name__)


OCR_CONFIDENCE_FLOOR = 0.4
OCR_CONFIDENCE_FACTOR = 0.8


class OcrError(ParseError):
    pass


class Recognizer(Protocol):
    def recognize_pages(self, content: bytes) -> List[str]:
        ...

    def close(self) -> None:
        ...


class OcrResult(SQLModel):
    items: List[ParsedMenuItem] = Field(default_factory=list)
    total_pages: int = 0


class TesseractRecognizer:
    def __init__(
        self,
        language: str = "deu",
        dpi: int = 300,
        tesseract_cmd: Optional[str] = None,
        poppler_path: Optional[str] = None
    ):
        try:
            import pytesseract
            from pdf2image import convert_from_bytes
        except ImportError as e:
            raise OcrError(
                f"OCR dependencies not available: {e}. "
                "Install with: pip install pytesseract pdf2image"
            ) from e

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        try:
            self.version = str(pytesseract.get_tesseract_version())
            available_languages = pytesseract.get_languages(config="")
        except Exception as e:
            raise OcrError(f"Tesseract is not available: {e}") from e

        if language not in available_languages:
            raise OcrError(f"Tesseract language pack '{language}' is not installed")

        self._pytesseract = pytesseract
        self._convert_from_bytes = convert_from_bytes
        self.language = language
        self.dpi = dpi
        self.poppler_path = poppler_path

        logger.info(
            "Tesseract recognizer initialized",
            extra={"tesseract_version": self.version, "language": language, "dpi": dpi}
        )

    def recognize_pages(self, content: bytes) -> List[str]:
        images = self._convert_from_bytes(content, dpi=self.dpi, poppler_path=self.poppler_path)

        page_texts = []
        for page_number, image in enumerate(images, start=1):
            logger.debug("Recognizing page", extra={"page": page_number})
            page_texts.append(self._pytesseract.image_to_string(image, lang=self.language))

        return page_texts

    def close(self) -> None:
        self._pytesseract = None
        self._convert_from_bytes = None


class OcrService:
    def __init__(
        self,
        language: str = "deu",
        dpi: int = 300,
        recognizer_factory: Optional[Callable[..., Recognizer]] = None,
        menu_parser: Optional[MenuParser] = None,
        tesseract_cmd: Optional[str] = None,
        poppler_path: Optional[str] = None
    ):
        if recognizer_factory is None:
            recognizer_factory = functools.partial(
                TesseractRecognizer,
                tesseract_cmd=tesseract_cmd,
                poppler_path=poppler_path
            )

        self.language = language
        self.dpi = dpi
        self.recognizer_factory = recognizer_factory
        self.menu_parser = menu_parser or MenuParser(
            confidence_floor=OCR_CONFIDENCE_FLOOR,
            confidence_factor=OCR_CONFIDENCE_FACTOR
        )

        self._recognizer: Optional[Recognizer] = None
        self._lock = threading.Lock()

    def _get_recognizer(self) -> Recognizer:
        with self._lock:
            if self._recognizer is None:
                self._recognizer = self.recognizer_factory(language=self.language, dpi=self.dpi)
            return self._recognizer

    def extract(self, content: bytes) -> OcrResult:
        if not content:
            raise ValueError("content is required for OCR")

        recognizer = self._get_recognizer()

        try:
            page_texts = recognizer.recognize_pages(content)
        except OcrError:
            raise
        except Exception as e:
            raise OcrError(f"OCR failed: {str(e)}") from e

        items = self.menu_parser.parse_pages(page_texts)

        logger.info(
            "Extracted menu items via OCR",
            extra={"total_pages": len(page_texts), "items_found": len(items)}
        )

        return OcrResult(items=items, total_pages=len(page_texts))

    def close(self) -> None:
        with self._lock:
            if self._recognizer is not None:
                self._recognizer.close()
                self._recognizer = None
                logger.info("OCR recognizer released")

    @property
    def is_initialized(self) -> bool:
        return self._recognizer is not None
