from __future__ import annotations
from typing import Optional
from fastapi import Header, HTTPException, Request
from services.ingestion import IngestionOrchestrator


ADMIN_ROLE = "admin"


def require_admin(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_role: Optional[str] = Header(default=None)
) -> str:
    # Identity is established upstream; this only enforces the role it forwards.
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Authentication required")

    if (x_actor_role or "").lower() != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")

    return x_actor_id


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Ingestion service is not ready")
    return orchestrator
