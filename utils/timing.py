import time
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from contextlib import contextmanager

from utils.logger import setup_logger

logger = setup_logger(__name__)


class StageTimer:
    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id
        self.stages: Dict[str, float] = {}

    @contextmanager
    def stage(self, stage_name: str):
        start_time = time.perf_counter()

        logger.debug(
            f"Stage started: {stage_name}",
            extra={"stage": stage_name, "correlation_id": self.correlation_id}
        )

        try:
            yield
        finally:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            self.stages[stage_name] = duration_ms

            logger.debug(
                f"Stage completed: {stage_name}",
                extra={
                    "stage": stage_name,
                    "duration_ms": duration_ms,
                    "correlation_id": self.correlation_id
                }
            )

    def get_summary(self) -> Dict[str, Any]:
        return {
            "stages_ms": dict(self.stages),
            "total_duration_ms": round(sum(self.stages.values()), 2),
        }

    def log_summary(self, operation_name: str, **context: Any):
        summary = self.get_summary()

        logger.info(
            f"{operation_name} timing summary",
            extra={
                "operation": operation_name,
                "total_duration_ms": summary["total_duration_ms"],
                "stages_ms": summary["stages_ms"],
                "correlation_id": self.correlation_id,
                **context
            }
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
