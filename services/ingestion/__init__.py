from .pdf_validator import PDFValidator
from .pdf_processor import PDFProcessor, PDFExtractionError
from .ocr_service import OcrService, OcrError, TesseractRecognizer
from .menu_parser import MenuParser
from .menu_publisher import MenuPublisher
from .ingestion_orchestrator import IngestionOrchestrator

__all__ = [
    "PDFValidator",
    "PDFProcessor",
    "PDFExtractionError",
    "OcrService",
    "OcrError",
    "TesseractRecognizer",
    "MenuParser",
    "MenuPublisher",
    "IngestionOrchestrator",
]
