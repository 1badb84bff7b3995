from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from config import settings, create_db_and_tables
from config.config_loader import ConfigLoader, init_config_loader
from middleware.logging_middleware import CorrelationIdMiddleware, RequestTimingMiddleware
from routes.api import router as api_router
from services.ingestion import (
    IngestionOrchestrator,
    MenuParser,
    OcrService,
    PDFProcessor,
    PDFValidator,
)
from utils.logger import setup_logger

logger = setup_logger(__name__)


def build_orchestrator(config_loader: ConfigLoader) -> IngestionOrchestrator:
    pdf_processor = PDFProcessor(
        menu_parser=MenuParser(
            confidence_floor=config_loader.get("ingestion.text_extraction.confidence_floor", 0.5)
        ),
        native_min_chars=config_loader.get("ingestion.text_extraction.native_min_chars", 100)
    )

    ocr_service = OcrService(
        language=config_loader.get("ingestion.ocr.language") or settings.OCR_LANGUAGE,
        dpi=config_loader.get("ingestion.ocr.dpi", settings.OCR_DPI),
        menu_parser=MenuParser(
            confidence_floor=config_loader.get("ingestion.ocr.confidence_floor", 0.4),
            confidence_factor=config_loader.get("ingestion.ocr.confidence_factor", 0.8)
        ),
        tesseract_cmd=settings.TESSERACT_CMD,
        poppler_path=settings.POPPLER_PATH
    )

    return IngestionOrchestrator(
        pdf_validator=PDFValidator(max_file_size_mb=settings.MAX_UPLOAD_SIZE_MB),
        pdf_processor=pdf_processor,
        ocr_service=ocr_service
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application lifespan")

    create_db_and_tables()
    logger.info("Database tables synchronized")

    config_loader = init_config_loader(settings.CONFIG_PATH)
    app.state.orchestrator = build_orchestrator(config_loader)
    logger.info("Ingestion pipeline ready", extra={"config_path": str(config_loader.config_path)})

    yield

    app.state.orchestrator.close()
    logger.info("Application shutdown complete")


app = FastAPI(title="Menu Ingest API", version="0.1.0", debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def root():
    return {"app": "Menu Ingest", "status": "running"}
