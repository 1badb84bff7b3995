import os
from typing import Optional, List
from dotenv import load_dotenv
from pathlib import Path

# Load .env from project folder explicitly (works even if CWD differs)
_BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=_BASE_DIR / ".env")


class Settings:
    # Database
    DATABASE_URL: str = os.getenv("MENUINGEST_DATABASE_URL", "sqlite:///./menuingest.db")

    # Server
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

    # CORS
    ALLOWED_ORIGINS: List[str] = os.getenv("ALLOWED_ORIGINS", "*").split(",")

    # Upload validation
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50"))

    # OCR (tesseract + poppler)
    OCR_LANGUAGE: str = os.getenv("OCR_LANGUAGE", "deu")
    OCR_DPI: int = int(os.getenv("OCR_DPI", "300"))
    TESSERACT_CMD: Optional[str] = os.getenv("TESSERACT_CMD")
    POPPLER_PATH: Optional[str] = os.getenv("POPPLER_PATH")

    # Parser tuning file
    CONFIG_PATH: Optional[str] = os.getenv("MENUINGEST_CONFIG_PATH")


settings = Settings()
