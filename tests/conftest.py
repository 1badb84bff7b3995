import pytest
from sqlmodel import Session, create_engine
from config.database import create_db_and_tables
from create_test_pdf import SAMPLE_MENU, build_menu_pdf, build_scanned_pdf
from models import Restaurant
from services.audit_service import InMemoryAuditSink
from services.ingestion import IngestionOrchestrator, OcrService, PDFProcessor
from fakes import FakeRecognizer, RecognizerFactory


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'menuingest_test.db'}",
        connect_args={"check_same_thread": False}
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def recognizer():
    return FakeRecognizer(page_texts=["Getränke\nApfelschorle 3,50\n", "Kaffee 2,80"])


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def orchestrator(recognizer, audit_sink):
    ocr_service = OcrService(recognizer_factory=RecognizerFactory(recognizer))
    orch = IngestionOrchestrator(
        pdf_processor=PDFProcessor(),
        ocr_service=ocr_service,
        audit_sink=audit_sink
    )
    yield orch
    orch.close()


@pytest.fixture
def menu_pdf() -> bytes:
    return build_menu_pdf(SAMPLE_MENU)


@pytest.fixture
def scanned_pdf() -> bytes:
    return build_scanned_pdf(page_count=2)


@pytest.fixture
def restaurant(session) -> Restaurant:
    r = Restaurant(name="Trattoria Test", location="Berlin")
    session.add(r)
    session.commit()
    session.refresh(r)
    return r
