from __future__ import annotations
from typing import Optional, List, Dict, Any, Tuple
import io
from sqlmodel import SQLModel, Field
from models.ingestion import ParsedMenuItem
from utils.logger import setup_logger
from .errors import ParseError
from .menu_parser import MenuParser

logger = setup_logger(__name__)


NATIVE_TEXT_MIN_CHARS = 100
SCANNED_WARNING = "PDF appears to be scanned or image-based. OCR fallback needed."


class PDFExtractionError(ParseError):
    pass


class ExtractionResult(SQLModel):
    items: List[ParsedMenuItem] = Field(default_factory=list)
    is_text_native: bool = False
    total_pages: int = 0
    document_metadata: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class PDFProcessor:
    def __init__(
        self,
        menu_parser: Optional[MenuParser] = None,
        native_min_chars: int = NATIVE_TEXT_MIN_CHARS
    ):
        self.menu_parser = menu_parser or MenuParser(confidence_floor=0.5)
        self.native_min_chars = native_min_chars

    def extract(self, content: bytes) -> ExtractionResult:
        if not content:
            raise ValueError("content is required to extract PDF text")

        page_texts, total_pages, metadata = self._extract_with_pdfplumber(content)
        full_text = "\n".join(page_texts)

        if not self.is_text_native(full_text):
            logger.info(
                "PDF has no usable text layer",
                extra={"total_pages": total_pages, "text_length": len(full_text)}
            )
            return ExtractionResult(
                items=[],
                is_text_native=False,
                total_pages=total_pages,
                document_metadata=metadata,
                warnings=[SCANNED_WARNING]
            )

        items = self.menu_parser.parse_pages(page_texts)

        logger.info(
            "Extracted menu items from text layer",
            extra={"total_pages": total_pages, "items_found": len(items)}
        )

        return ExtractionResult(
            items=items,
            is_text_native=True,
            total_pages=total_pages,
            document_metadata=metadata
        )

    def is_text_native(self, text: str) -> bool:
        # scanned PDFs usually carry nothing but producer metadata in their text layer
        if not text or not text.strip():
            return False

        return len(text) > self.native_min_chars

    def _extract_with_pdfplumber(self, content: bytes) -> Tuple[List[str], int, Dict[str, Any]]:
        try:
            import pdfplumber
        except ImportError:
            raise PDFExtractionError("pdfplumber is not installed. Install it with: pip install pdfplumber")

        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                if not pdf.pages:
                    raise PDFExtractionError("PDF has no pages")

                page_texts = [page.extract_text() or "" for page in pdf.pages]
                metadata = self._document_metadata(pdf.metadata or {})

                return page_texts, len(pdf.pages), metadata
        except PDFExtractionError:
            raise
        except Exception as e:
            raise PDFExtractionError(f"Failed to parse PDF: {str(e)}") from e

    def _document_metadata(self, info: Dict[str, Any]) -> Dict[str, Any]:
        metadata = {}

        for source_key, target_key in (("Title", "title"), ("Author", "author"), ("Creator", "creator")):
            value = info.get(source_key)
            if value is None:
                continue
            if isinstance(value, bytes):
                value = value.decode("latin-1", errors="replace")
            metadata[target_key] = str(value)

        return metadata
