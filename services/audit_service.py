from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol
from utils.timing import utc_now
from utils.correlation_id import correlation_id_context
from utils.logger import setup_logger

logger = setup_logger("audit")


class AuditSink(Protocol):
    def record(
        self,
        action: str,
        actor_id: Optional[str],
        metadata: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> None:
        ...


def resolve_correlation_id(fallback: Optional[str] = None) -> Optional[str]:
    return correlation_id_context.get() or fallback


class LoggingAuditSink:
    """Append-only audit trail written as structured log lines."""

    def record(
        self,
        action: str,
        actor_id: Optional[str],
        metadata: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> None:
        if not action:
            raise ValueError("action is required to record an audit entry")

        logger.info(
            f"Audit: {action}",
            extra={
                "audit_action": action,
                "actor_id": actor_id,
                "audit_metadata": metadata,
                "correlation_id": resolve_correlation_id(correlation_id),
                "recorded_at": utc_now().isoformat()
            }
        )


class InMemoryAuditSink:
    """Keeps entries in a list; used where the trail has to be inspected."""

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def record(
        self,
        action: str,
        actor_id: Optional[str],
        metadata: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> None:
        self.entries.append({
            "action": action,
            "actor_id": actor_id,
            "metadata": metadata,
            "correlation_id": resolve_correlation_id(correlation_id),
        })

    def actions(self) -> List[str]:
        return [entry["action"] for entry in self.entries]
