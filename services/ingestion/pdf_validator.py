from __future__ import annotations
import re
import time
from typing import Optional
from config.settings import settings
from models.ingestion import ValidationResult


ALLOWED_EXTENSION = ".pdf"
ALLOWED_MIME_TYPE = "application/pdf"
PDF_SIGNATURE = b"%PDF"
PDF_EOF_MARKER = b"%%EOF"
EOF_SEARCH_WINDOW = 1024

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_PATH_SEPARATORS = re.compile(r"[/\\]")


class PDFValidator:
    def __init__(self, max_file_size_mb: Optional[int] = None):
        if max_file_size_mb is None:
            max_file_size_mb = settings.MAX_UPLOAD_SIZE_MB
        self.max_file_size_mb = max_file_size_mb
        self.max_file_size = max_file_size_mb * 1024 * 1024

    def validate(self, content: bytes, filename: str, mime_type: Optional[str] = None) -> ValidationResult:
        warnings = []

        if not content:
            return ValidationResult(ok=False, error="File is empty")

        if len(content) > self.max_file_size:
            return ValidationResult(
                ok=False,
                error=f"File size exceeds maximum allowed ({self.max_file_size_mb}MB)"
            )

        if not filename or not filename.strip():
            return ValidationResult(ok=False, error="Filename is required")

        if _UNSAFE_FILENAME_CHARS.search(filename):
            warnings.append("Filename was sanitized to remove special characters")

        if not filename.lower().endswith(ALLOWED_EXTENSION):
            return ValidationResult(ok=False, error="File must be a PDF")

        if mime_type and mime_type != ALLOWED_MIME_TYPE:
            return ValidationResult(
                ok=False,
                error=f"Invalid MIME type: {mime_type}. Expected: {ALLOWED_MIME_TYPE}"
            )

        if not content.startswith(PDF_SIGNATURE):
            return ValidationResult(
                ok=False,
                error="File does not appear to be a valid PDF (invalid file signature)"
            )

        if PDF_EOF_MARKER not in content[-EOF_SEARCH_WINDOW:]:
            warnings.append("PDF file may be corrupted (missing EOF marker). Parsing may fail.")

        return ValidationResult(ok=True, warnings=warnings)

    def sanitize_filename(self, filename: str) -> str:
        basename = _PATH_SEPARATORS.split(filename or "")[-1]
        sanitized = _UNSAFE_FILENAME_CHARS.sub("_", basename)
        return sanitized or "unknown"

    def generate_storage_path(self, sanitized_filename: str, file_hash: str) -> str:
        # sharded by hash prefix so one directory never collects every upload
        prefix = file_hash[:2]
        timestamp = int(time.time() * 1000)
        return f"{prefix}/{timestamp}_{file_hash[:8]}_{sanitized_filename}"
