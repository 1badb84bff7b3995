import threading
import pytest
from services.ingestion.ocr_service import OcrService, OcrError
from fakes import FakeRecognizer, RecognizerFactory


def test_recognizer_is_built_lazily_and_reused(recognizer):
    factory = RecognizerFactory(recognizer)
    service = OcrService(language="deu", dpi=200, recognizer_factory=factory)

    assert not service.is_initialized
    assert factory.builds == 0

    service.extract(b"%PDF scanned")
    service.extract(b"%PDF scanned")

    assert service.is_initialized
    assert factory.builds == 1
    assert factory.kwargs == {"language": "deu", "dpi": 200}
    assert recognizer.calls == 2


def test_concurrent_first_use_builds_once(recognizer):
    factory = RecognizerFactory(recognizer)
    service = OcrService(recognizer_factory=factory)

    threads = [threading.Thread(target=service.extract, args=(b"%PDF",)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert factory.builds == 1


def test_items_are_discounted_and_paged(recognizer):
    service = OcrService(recognizer_factory=RecognizerFactory(recognizer))
    result = service.extract(b"%PDF scanned")

    assert result.total_pages == 2
    assert [(i.dish_name, i.page_number) for i in result.items] == [("Apfelschorle", 1), ("Kaffee", 2)]
    assert result.items[0].price_confidence == pytest.approx(0.95 * 0.8)


def test_close_releases_recognizer(recognizer):
    service = OcrService(recognizer_factory=RecognizerFactory(recognizer))
    service.extract(b"%PDF")
    service.close()

    assert recognizer.closed
    assert not service.is_initialized

    # closing twice is harmless
    service.close()


def test_recognition_failure_is_wrapped():
    broken = FakeRecognizer(error=RuntimeError("poppler crashed"))
    service = OcrService(recognizer_factory=RecognizerFactory(broken))

    with pytest.raises(OcrError) as exc_info:
        service.extract(b"%PDF")
    assert str(exc_info.value) == "OCR failed: poppler crashed"


def test_factory_failure_propagates():
    def factory(**kwargs):
        raise OcrError("Tesseract language pack 'deu' is not installed")

    service = OcrService(recognizer_factory=factory)
    with pytest.raises(OcrError):
        service.extract(b"%PDF")
    assert not service.is_initialized
