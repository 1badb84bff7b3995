from fastapi import APIRouter, Depends, Request
from sqlmodel import Session, select, func
from typing import Dict, Any
from datetime import datetime

from config.database import get_session
from models.ingestion import MenuParseBatch
from utils.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "service": "menu-ingest-api"
    }


@router.get("/ready")
def readiness_check(request: Request, session: Session = Depends(get_session)):
    checks_passed = True
    checks: Dict[str, Any] = {}

    try:
        batches = session.exec(select(func.count()).select_from(MenuParseBatch)).one()
        checks["database"] = {"status": "ready", "batch_count": batches}
    except Exception as e:
        logger.warning("Database readiness check failed", extra={"error": str(e)})
        checks["database"] = {"status": "not_ready", "error": str(e)}
        checks_passed = False

    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        checks["ingestion"] = {"status": "not_ready", "reason": "orchestrator_missing"}
        checks_passed = False
    else:
        # The OCR engine loads on first use, so "idle" is still ready.
        checks["ingestion"] = {
            "status": "ready",
            "ocr": "loaded" if orchestrator.ocr_service.is_initialized else "idle"
        }

    return {
        "ready": checks_passed,
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat()
    }
