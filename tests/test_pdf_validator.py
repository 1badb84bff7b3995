import re
from services.ingestion.pdf_validator import PDFValidator


VALID_PDF = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


def test_accepts_well_formed_pdf():
    result = PDFValidator().validate(VALID_PDF, "menu.pdf", "application/pdf")
    assert result.ok
    assert result.error is None
    assert result.warnings == []


def test_rejects_empty_content():
    result = PDFValidator().validate(b"", "menu.pdf")
    assert not result.ok
    assert result.error == "File is empty"


def test_rejects_oversized_file():
    validator = PDFValidator(max_file_size_mb=1)
    content = b"%PDF" + b"0" * (1024 * 1024) + b"%%EOF"
    result = validator.validate(content, "menu.pdf")
    assert not result.ok
    assert result.error == "File size exceeds maximum allowed (1MB)"


def test_size_limit_is_inclusive():
    validator = PDFValidator(max_file_size_mb=1)
    body_size = validator.max_file_size - len(b"%PDF") - len(b"%%EOF")
    at_limit = b"%PDF" + b"0" * body_size + b"%%EOF"

    assert len(at_limit) == 1024 * 1024
    assert validator.validate(at_limit, "menu.pdf").ok

    over = validator.validate(at_limit + b"\n", "menu.pdf")
    assert not over.ok
    assert over.error == "File size exceeds maximum allowed (1MB)"


def test_rejects_wrong_extension_before_signature():
    result = PDFValidator().validate(b"plain text", "menu.txt")
    assert not result.ok
    assert result.error == "File must be a PDF"


def test_extension_check_is_case_insensitive():
    assert PDFValidator().validate(VALID_PDF, "MENU.PDF").ok


def test_rejects_wrong_mime_type():
    result = PDFValidator().validate(VALID_PDF, "menu.pdf", "image/png")
    assert not result.ok
    assert "Invalid MIME type: image/png" in result.error


def test_missing_mime_type_is_not_checked():
    assert PDFValidator().validate(VALID_PDF, "menu.pdf", None).ok


def test_rejects_bad_signature():
    result = PDFValidator().validate(b"GIF89a....%%EOF", "menu.pdf")
    assert not result.ok
    assert "invalid file signature" in result.error


def test_missing_eof_marker_is_only_a_warning():
    result = PDFValidator().validate(b"%PDF-1.4\ntruncated", "menu.pdf")
    assert result.ok
    assert result.warnings == ["PDF file may be corrupted (missing EOF marker). Parsing may fail."]


def test_eof_marker_must_be_near_the_end():
    content = b"%PDF-1.4\n%%EOF\n" + b"x" * 2048
    result = PDFValidator().validate(content, "menu.pdf")
    assert result.ok
    assert len(result.warnings) == 1


def test_special_characters_produce_sanitize_warning():
    result = PDFValidator().validate(VALID_PDF, "Speisekarte Sommer.pdf")
    assert result.ok
    assert "Filename was sanitized to remove special characters" in result.warnings


def test_sanitize_filename_strips_path_and_unsafe_characters():
    validator = PDFValidator()
    assert validator.sanitize_filename("../../etc/Karte Mai.pdf") == "Karte_Mai.pdf"
    assert validator.sanitize_filename("C:\\menus\\menü.pdf") == "men_.pdf"
    assert validator.sanitize_filename("") == "unknown"


def test_storage_path_is_sharded_by_hash_prefix():
    file_hash = "ab12cd34" + "0" * 56
    path = PDFValidator().generate_storage_path("menu.pdf", file_hash)
    assert re.fullmatch(r"ab/\d+_ab12cd34_menu\.pdf", path)
