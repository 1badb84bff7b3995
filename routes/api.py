from fastapi import APIRouter
from routes.health import router as health_router
from routes.ingestion import router as ingestion_router


router = APIRouter()

router.include_router(health_router)
router.include_router(ingestion_router)
