from __future__ import annotations
from typing import List, Dict, Any, Optional
from uuid import UUID
from fastapi import APIRouter, UploadFile, File, HTTPException, Depends
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session, select
from pydantic import BaseModel
from config.database import get_session
from models.restaurant import Restaurant, MenuItem, MenuItemType
from models.ingestion import MenuParseBatch, MenuParseItem, BatchStatus, ItemAction, EditedItemData
from services.ingestion import IngestionOrchestrator
from services.ingestion.errors import (
    IngestionError,
    ValidationError,
    ParseError,
    PreconditionError,
    NotFoundError,
    ConcurrencyError,
)
from utils.logger import setup_logger
from routes.dependencies import require_admin, get_orchestrator

logger = setup_logger(__name__)

router = APIRouter(prefix="/ingestion", tags=["Menu Ingestion"])


def _http_error(error: IngestionError) -> HTTPException:
    if isinstance(error, (ValidationError, PreconditionError)):
        status_code = 400
    elif isinstance(error, NotFoundError):
        status_code = 404
    elif isinstance(error, ConcurrencyError):
        status_code = 409
    elif isinstance(error, ParseError):
        status_code = 422
    else:
        status_code = 500

    if status_code >= 500:
        logger.error("Ingestion request failed", extra={"error": str(error)})

    return HTTPException(status_code=status_code, detail=str(error))


class UploadResponse(BaseModel):
    batch_id: str
    status: str
    message: str
    warnings: List[str] = []


class OkResponse(BaseModel):
    ok: bool = True


class AssignRestaurantRequest(BaseModel):
    restaurant_id: UUID


class ItemActionRequest(BaseModel):
    action: ItemAction
    edited_data: Optional[EditedItemData] = None


class ApproveRequest(BaseModel):
    item_actions: Dict[UUID, ItemAction] = {}
    edited_items: Dict[UUID, EditedItemData] = {}


class ApproveResponse(BaseModel):
    inserted_count: int
    updated_count: int


class RejectRequest(BaseModel):
    reason: str = ""


class RestaurantCreateRequest(BaseModel):
    name: str
    location: str | None = None
    tags: List[str] = []


class RestaurantResponse(BaseModel):
    id: str
    name: str
    location: str | None
    tags: List[str]


def _batch_summary(batch: MenuParseBatch) -> Dict[str, Any]:
    return {
        "batch_id": str(batch.id),
        "filename": batch.filename,
        "status": BatchStatus(batch.status).value,
        "is_text_native": batch.is_text_native,
        "file_size": batch.file_size,
        "file_path": batch.file_path,
        "uploaded_by": batch.uploaded_by,
        "restaurant_id": str(batch.restaurant_id) if batch.restaurant_id else None,
        "items_found": (batch.parse_log or {}).get("items_found"),
        "error_message": batch.error_message,
        "created_at": batch.created_at.isoformat(),
        "updated_at": batch.updated_at.isoformat(),
    }


def _item_payload(item: MenuParseItem) -> Dict[str, Any]:
    return {
        "id": str(item.id),
        "dish_name": item.dish_name,
        "dish_name_normalized": item.dish_name_normalized,
        "description": item.description,
        "price_eur": str(item.price_eur),
        "price_confidence": item.price_confidence,
        "category": item.category,
        "page_number": item.page_number,
        "raw_text": item.raw_text,
        "action": ItemAction(item.action).value,
        "edited_data": item.edited_data,
    }


@router.post("/menu-uploads", response_model=UploadResponse)
async def upload_menu_pdf(
    file: UploadFile = File(...),
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> UploadResponse:
    if not file.filename:
        raise HTTPException(status_code=400, detail="File must have a filename")

    content = await file.read()

    try:
        result = await run_in_threadpool(
            orchestrator.upload_and_parse,
            session,
            actor_id,
            file.filename,
            content,
            file.content_type
        )
    except IngestionError as e:
        raise _http_error(e)

    return UploadResponse(
        batch_id=str(result.batch_id),
        status=result.status,
        message=result.message,
        warnings=result.warnings
    )


@router.get("/menu-batches", response_model=List[Dict[str, Any]])
def list_menu_batches(
    status: Optional[BatchStatus] = None,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> List[Dict[str, Any]]:
    return [_batch_summary(batch) for batch in orchestrator.list_batches(session, status)]


@router.get("/menu-batches/{batch_id}", response_model=Dict[str, Any])
def get_menu_batch(
    batch_id: UUID,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    try:
        batch = orchestrator.get_batch(session, batch_id)
        items = orchestrator.list_items(session, batch_id)
    except IngestionError as e:
        raise _http_error(e)

    return {
        **_batch_summary(batch),
        "parse_log": batch.parse_log,
        "approved_by": batch.approved_by,
        "approved_at": batch.approved_at.isoformat() if batch.approved_at else None,
        "rejected_by": batch.rejected_by,
        "rejected_at": batch.rejected_at.isoformat() if batch.rejected_at else None,
        "rejection_reason": batch.rejection_reason,
        "published_at": batch.published_at.isoformat() if batch.published_at else None,
        "items": [_item_payload(item) for item in items],
    }


@router.post("/menu-batches/{batch_id}/assign", response_model=OkResponse)
def assign_restaurant(
    batch_id: UUID,
    request: AssignRestaurantRequest,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> OkResponse:
    try:
        orchestrator.assign_restaurant(session, batch_id, request.restaurant_id, actor_id)
    except IngestionError as e:
        raise _http_error(e)

    return OkResponse()


@router.post("/menu-batches/{batch_id}/items/{item_id}", response_model=OkResponse)
def record_item_action(
    batch_id: UUID,
    item_id: UUID,
    request: ItemActionRequest,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> OkResponse:
    try:
        orchestrator.record_item_action(
            session,
            batch_id,
            item_id,
            request.action,
            request.edited_data,
            actor_id
        )
    except IngestionError as e:
        raise _http_error(e)

    return OkResponse()


@router.delete("/menu-batches/{batch_id}/items/{item_id}", response_model=OkResponse)
def delete_item(
    batch_id: UUID,
    item_id: UUID,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> OkResponse:
    try:
        orchestrator.delete_item(session, batch_id, item_id, actor_id)
    except IngestionError as e:
        raise _http_error(e)

    return OkResponse()


@router.post("/menu-batches/{batch_id}/approve", response_model=ApproveResponse)
def approve_batch(
    batch_id: UUID,
    request: ApproveRequest,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> ApproveResponse:
    try:
        result = orchestrator.approve_and_publish(
            session,
            batch_id,
            request.item_actions,
            request.edited_items,
            actor_id
        )
    except IngestionError as e:
        raise _http_error(e)

    return ApproveResponse(inserted_count=result.inserted_count, updated_count=result.updated_count)


@router.post("/menu-batches/{batch_id}/reject", response_model=OkResponse)
def reject_batch(
    batch_id: UUID,
    request: RejectRequest,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> OkResponse:
    try:
        orchestrator.reject_batch(session, batch_id, request.reason, actor_id)
    except IngestionError as e:
        raise _http_error(e)

    return OkResponse()


@router.delete("/menu-batches/{batch_id}", response_model=OkResponse)
def delete_batch(
    batch_id: UUID,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
) -> OkResponse:
    try:
        orchestrator.delete_batch(session, batch_id, actor_id)
    except IngestionError as e:
        raise _http_error(e)

    return OkResponse()


@router.post("/restaurants", response_model=RestaurantResponse)
def create_restaurant(
    request: RestaurantCreateRequest,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session)
) -> RestaurantResponse:
    if not request.name or not request.name.strip():
        raise HTTPException(status_code=400, detail="Restaurant name is required")

    restaurant = Restaurant(
        name=request.name.strip(),
        location=request.location,
        tags=request.tags
    )

    session.add(restaurant)
    session.commit()
    session.refresh(restaurant)

    return RestaurantResponse(
        id=str(restaurant.id),
        name=restaurant.name,
        location=restaurant.location,
        tags=restaurant.tags
    )


@router.get("/restaurants", response_model=List[RestaurantResponse])
def list_restaurants(
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session)
) -> List[RestaurantResponse]:
    restaurants = session.exec(select(Restaurant)).all()

    return [
        RestaurantResponse(
            id=str(r.id),
            name=r.name,
            location=r.location,
            tags=r.tags
        )
        for r in restaurants
    ]


@router.get("/restaurants/{restaurant_id}/menu", response_model=List[Dict[str, Any]])
def list_restaurant_menu(
    restaurant_id: UUID,
    actor_id: str = Depends(require_admin),
    session: Session = Depends(get_session)
) -> List[Dict[str, Any]]:
    if not session.get(Restaurant, restaurant_id):
        raise HTTPException(status_code=404, detail=f"Restaurant {restaurant_id} not found")

    items = session.exec(
        select(MenuItem).where(MenuItem.restaurant_id == restaurant_id).order_by(MenuItem.dish_name)
    ).all()

    return [
        {
            "id": str(i.id),
            "dish_name": i.dish_name,
            "type": MenuItemType(i.type).value,
            "category": i.category,
            "price": str(i.price),
        }
        for i in items
    ]
