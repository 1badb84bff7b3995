from __future__ import annotations
from typing import Optional, List, Dict, Any, Mapping, Tuple, Union
from uuid import UUID
from decimal import Decimal
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, Field, select
from models.restaurant import Restaurant
from models.ingestion import (
    MenuParseBatch,
    MenuParseItem,
    BatchStatus,
    ItemAction,
    ParsedMenuItem,
    EditedItemData,
    UploadResult,
    PublishResult,
    DUPLICATE_STATUS,
)
from services.audit_service import AuditSink, LoggingAuditSink
from utils.logger import setup_logger
from utils.timing import StageTimer, utc_now
from .batch_state import BatchLocks, transition, commit_batch, ensure_transition, ensure_reviewable
from .content_hasher import compute_content_hash
from .errors import (
    ValidationError,
    ParseError,
    PreconditionError,
    NotFoundError,
    ConcurrencyError,
    PublishError,
)
from .menu_publisher import MenuPublisher, MergeOutcome, ResolvedItem
from .ocr_service import OcrService
from .pdf_processor import PDFProcessor
from .pdf_validator import PDFValidator

logger = setup_logger(__name__)


REVIEW_ACTIONS = (ItemAction.ACCEPT, ItemAction.EDIT, ItemAction.REJECT)
PUBLISH_ACTIONS = (ItemAction.ACCEPT, ItemAction.EDIT)
OCR_USED_WARNING = "Used OCR for text extraction"
NO_ITEMS_WARNING = "No priced menu items were found"

EditInput = Union[EditedItemData, Mapping[str, Any]]


class ParseOutcome(SQLModel):
    items: List[ParsedMenuItem] = Field(default_factory=list)
    is_text_native: bool = False
    total_pages: int = 0
    document_metadata: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    source: str = "text"


def _as_uuid(value: Union[UUID, str], label: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}")


def _as_edit(value: Optional[EditInput]) -> Optional[EditedItemData]:
    if value is None or isinstance(value, EditedItemData):
        return value
    try:
        return EditedItemData.model_validate(dict(value))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid edited data: {e}") from e


def _as_action(value: Union[ItemAction, str]) -> ItemAction:
    try:
        return ItemAction(value)
    except ValueError:
        raise ValidationError(f"Unknown item action: {value}")


class IngestionOrchestrator:
    def __init__(
        self,
        pdf_validator: Optional[PDFValidator] = None,
        pdf_processor: Optional[PDFProcessor] = None,
        ocr_service: Optional[OcrService] = None,
        publisher: Optional[MenuPublisher] = None,
        audit_sink: Optional[AuditSink] = None
    ):
        self.pdf_validator = pdf_validator or PDFValidator()
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.ocr_service = ocr_service or OcrService()
        self.publisher = publisher or MenuPublisher()
        self.audit_sink = audit_sink or LoggingAuditSink()
        self._locks = BatchLocks()

    def close(self) -> None:
        self.ocr_service.close()

    # Upload and parse

    def upload_and_parse(
        self,
        session: Session,
        actor_id: str,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None
    ) -> UploadResult:
        if not actor_id:
            raise ValidationError("actor_id is required to upload a menu")

        validation = self.pdf_validator.validate(content, filename, mime_type)
        if not validation.ok:
            logger.info(
                "Rejected menu upload",
                extra={"upload_filename": filename, "reason": validation.error}
            )
            raise ValidationError(f"Validation failed: {validation.error}")

        file_hash = compute_content_hash(content)

        existing = self._find_by_hash(session, file_hash)
        if existing:
            return self._duplicate_result(actor_id, filename, existing)

        sanitized_filename = self.pdf_validator.sanitize_filename(filename)
        storage_path = self.pdf_validator.generate_storage_path(sanitized_filename, file_hash)

        batch = MenuParseBatch(
            uploaded_by=actor_id,
            filename=sanitized_filename,
            file_hash=file_hash,
            file_size=len(content),
            file_path=storage_path,
            status=BatchStatus.UPLOADED
        )

        try:
            session.add(batch)
            transition(session, batch, BatchStatus.PARSING)
            commit_batch(session, batch.id)
        except IntegrityError:
            # a concurrent upload of the same bytes won the unique hash
            session.rollback()
            existing = self._find_by_hash(session, file_hash)
            if existing is None:
                raise
            return self._duplicate_result(actor_id, filename, existing)

        session.refresh(batch)

        logger.info(
            "Created menu parse batch",
            extra={"batch_id": str(batch.id), "file_size": batch.file_size, "file_path": storage_path}
        )

        with self._locks.hold(batch.id):
            timer = StageTimer(correlation_id=f"batch-{batch.id}")

            try:
                outcome = self._parse_menu(content, timer)

                with timer.stage("staging"):
                    staged = self._stage_items(session, batch, outcome.items)

                warnings = list(outcome.warnings)
                if not staged:
                    warnings.append(NO_ITEMS_WARNING)

                batch.is_text_native = outcome.is_text_native
                batch.parse_log = {
                    "total_pages": outcome.total_pages,
                    "items_found": len(staged),
                    "warnings": warnings,
                    "metadata": outcome.document_metadata,
                    "source": outcome.source,
                    "timings": timer.get_summary(),
                }
                batch.error_message = None
                transition(session, batch, BatchStatus.PARSED)
                commit_batch(session, batch.id)
            except ParseError as e:
                self._mark_parse_failed(session, batch, str(e), actor_id)
                raise
            except ConcurrencyError:
                raise
            except Exception as e:
                message = f"Unexpected error: {str(e)}"
                self._mark_parse_failed(session, batch, message, actor_id)
                raise ParseError(message) from e

            session.refresh(batch)

            timer.log_summary("menu_parse", batch_id=str(batch.id), items_found=len(staged))

        self._audit("MENU_PDF_UPLOAD", actor_id, batch.id, {
            "filename": filename,
            "file_size": len(content),
            "status": BatchStatus.PARSED.value,
            "items_found": len(staged),
        })

        return UploadResult(
            batch_id=batch.id,
            status=BatchStatus.PARSED.value,
            message=f"Successfully parsed {len(staged)} menu items",
            warnings=list(validation.warnings) + warnings
        )

    def _find_by_hash(self, session: Session, file_hash: str) -> Optional[MenuParseBatch]:
        return session.exec(
            select(MenuParseBatch).where(MenuParseBatch.file_hash == file_hash)
        ).first()

    def _duplicate_result(self, actor_id: str, filename: str, existing: MenuParseBatch) -> UploadResult:
        logger.info(
            "Duplicate menu upload",
            extra={"batch_id": str(existing.id), "upload_filename": filename}
        )

        self._audit("MENU_PDF_UPLOAD", actor_id, existing.id, {
            "filename": filename,
            "file_size": existing.file_size,
            "status": DUPLICATE_STATUS,
        })

        return UploadResult(
            batch_id=existing.id,
            status=DUPLICATE_STATUS,
            message="This PDF has already been uploaded",
            warnings=["Duplicate file detected"]
        )

    def _parse_menu(self, content: bytes, timer: StageTimer) -> ParseOutcome:
        with timer.stage("text_extraction"):
            extraction = self.pdf_processor.extract(content)

        outcome = ParseOutcome(
            items=list(extraction.items),
            is_text_native=extraction.is_text_native,
            total_pages=extraction.total_pages,
            document_metadata=dict(extraction.document_metadata),
            warnings=list(extraction.warnings),
            source="text"
        )

        if extraction.is_text_native and extraction.items:
            return outcome

        # OCR only runs when native extraction has nothing usable, so an OCR
        # failure here always fails the upload.
        with timer.stage("ocr"):
            ocr_result = self.ocr_service.extract(content)

        outcome.items = list(ocr_result.items)
        outcome.is_text_native = False
        outcome.total_pages = ocr_result.total_pages or extraction.total_pages
        outcome.warnings.append(OCR_USED_WARNING)
        outcome.source = "ocr"

        return outcome

    def _stage_items(
        self,
        session: Session,
        batch: MenuParseBatch,
        candidates: List[ParsedMenuItem]
    ) -> List[MenuParseItem]:
        staged = []

        for candidate in candidates:
            # candidates without a price are not actionable menu entries
            if candidate.price is None:
                continue

            staged.append(MenuParseItem(
                batch_id=batch.id,
                dish_name=candidate.dish_name,
                dish_name_normalized=candidate.dish_name_normalized,
                description=candidate.description,
                price_eur=candidate.price,
                price_confidence=candidate.price_confidence,
                category=candidate.category,
                page_number=candidate.page_number or 1,
                raw_text=candidate.raw_text,
                action=ItemAction.PENDING
            ))

        session.add_all(staged)
        return staged

    def _mark_parse_failed(self, session: Session, batch: MenuParseBatch, message: str, actor_id: str) -> None:
        logger.error(
            "Menu parse failed",
            extra={"batch_id": str(batch.id), "error": message}
        )

        session.rollback()
        session.refresh(batch)
        batch.error_message = message
        transition(session, batch, BatchStatus.PARSE_FAILED)
        commit_batch(session, batch.id)

        self._audit("MENU_PDF_UPLOAD", actor_id, batch.id, {
            "filename": batch.filename,
            "file_size": batch.file_size,
            "status": BatchStatus.PARSE_FAILED.value,
            "error": message,
        })

    # Review

    def get_batch(self, session: Session, batch_id: Union[UUID, str]) -> MenuParseBatch:
        batch = session.get(MenuParseBatch, _as_uuid(batch_id, "batch id"))
        if not batch:
            raise NotFoundError(f"Batch {batch_id} not found")
        return batch

    def list_batches(self, session: Session, status: Optional[BatchStatus] = None) -> List[MenuParseBatch]:
        statement = select(MenuParseBatch)
        if status is not None:
            statement = statement.where(MenuParseBatch.status == status)
        statement = statement.order_by(MenuParseBatch.created_at.desc())
        return list(session.exec(statement).all())

    def list_items(self, session: Session, batch_id: Union[UUID, str]) -> List[MenuParseItem]:
        batch_uuid = _as_uuid(batch_id, "batch id")
        statement = (
            select(MenuParseItem)
            .where(MenuParseItem.batch_id == batch_uuid)
            .order_by(MenuParseItem.page_number, MenuParseItem.created_at)
        )
        return list(session.exec(statement).all())

    def _get_item(self, session: Session, batch_id: UUID, item_id: Union[UUID, str]) -> MenuParseItem:
        item = session.get(MenuParseItem, _as_uuid(item_id, "item id"))
        if not item or item.batch_id != batch_id:
            raise NotFoundError(f"Item {item_id} not found for batch {batch_id}")
        return item

    def assign_restaurant(
        self,
        session: Session,
        batch_id: Union[UUID, str],
        restaurant_id: Union[UUID, str],
        actor_id: Optional[str] = None
    ) -> MenuParseBatch:
        batch_uuid = _as_uuid(batch_id, "batch id")
        restaurant_uuid = _as_uuid(restaurant_id, "restaurant id")

        with self._locks.hold(batch_uuid):
            batch = self.get_batch(session, batch_uuid)

            if not session.get(Restaurant, restaurant_uuid):
                raise NotFoundError(f"Restaurant {restaurant_id} not found")

            transition(session, batch, BatchStatus.CHANGES_PROPOSED)
            batch.restaurant_id = restaurant_uuid
            commit_batch(session, batch_uuid)
            session.refresh(batch)

        self._audit("MENU_BATCH_ASSIGN_RESTAURANT", actor_id, batch_uuid, {
            "restaurant_id": str(restaurant_uuid),
        })

        return batch

    def record_item_action(
        self,
        session: Session,
        batch_id: Union[UUID, str],
        item_id: Union[UUID, str],
        action: Union[ItemAction, str],
        edited_data: Optional[EditInput] = None,
        actor_id: Optional[str] = None
    ) -> MenuParseItem:
        batch_uuid = _as_uuid(batch_id, "batch id")
        review_action = _as_action(action)
        edit = _as_edit(edited_data)

        if review_action not in REVIEW_ACTIONS:
            raise ValidationError("action must be one of ACCEPT, EDIT or REJECT")

        if review_action == ItemAction.EDIT and (edit is None or not edit.to_snapshot()):
            raise ValidationError("EDIT requires at least one edited field")

        with self._locks.hold(batch_uuid):
            batch = self.get_batch(session, batch_uuid)
            ensure_reviewable(batch)
            item = self._get_item(session, batch_uuid, item_id)

            item.action = review_action
            item.edited_data = edit.to_snapshot() if review_action == ItemAction.EDIT else None
            item.updated_at = utc_now()
            session.add(item)
            session.commit()
            session.refresh(item)

        self._audit("MENU_PARSE_ITEM_UPDATE", actor_id, batch_uuid, {
            "item_id": str(item.id),
            "action": review_action.value,
        })

        return item

    def delete_item(
        self,
        session: Session,
        batch_id: Union[UUID, str],
        item_id: Union[UUID, str],
        actor_id: Optional[str] = None
    ) -> None:
        batch_uuid = _as_uuid(batch_id, "batch id")

        with self._locks.hold(batch_uuid):
            batch = self.get_batch(session, batch_uuid)
            ensure_reviewable(batch)
            item = self._get_item(session, batch_uuid, item_id)
            deleted_id = item.id

            session.delete(item)
            session.commit()

        self._audit("MENU_PARSE_ITEM_DELETE", actor_id, batch_uuid, {
            "item_id": str(deleted_id),
        })

    # Approval and publishing

    def approve_and_publish(
        self,
        session: Session,
        batch_id: Union[UUID, str],
        item_actions: Optional[Mapping[Union[UUID, str], Union[ItemAction, str]]] = None,
        edited_items: Optional[Mapping[Union[UUID, str], EditInput]] = None,
        actor_id: Optional[str] = None
    ) -> PublishResult:
        batch_uuid = _as_uuid(batch_id, "batch id")
        actions = {
            _as_uuid(item_id, "item id"): _as_action(action)
            for item_id, action in (item_actions or {}).items()
        }
        edits = {
            _as_uuid(item_id, "item id"): _as_edit(edit)
            for item_id, edit in (edited_items or {}).items()
        }

        with self._locks.hold(batch_uuid):
            batch = self.get_batch(session, batch_uuid)

            if not batch.restaurant_id:
                raise PreconditionError("Restaurant must be assigned first")

            selected = self._select_for_publish(session, batch_uuid, actions, edits)
            if not selected:
                raise PreconditionError("No items accepted")

            ensure_transition(batch, BatchStatus.APPROVED)
            restaurant_id = batch.restaurant_id
            result = PublishResult()

            try:
                transition(session, batch, BatchStatus.APPROVED)
                batch.approved_by = actor_id
                batch.approved_at = utc_now()

                transition(session, batch, BatchStatus.PUBLISHING)

                for item, action, edit in selected:
                    outcome = self.publisher.merge_item(session, restaurant_id, self._resolve_item(item, edit))

                    if outcome == MergeOutcome.INSERTED:
                        result.inserted_count += 1
                    else:
                        result.updated_count += 1

                    item.action = action
                    if edit is not None:
                        item.edited_data = edit.to_snapshot()
                    item.updated_at = utc_now()
                    session.add(item)

                transition(session, batch, BatchStatus.PUBLISHED)
                batch.published_at = utc_now()
                commit_batch(session, batch_uuid)
            except ConcurrencyError:
                session.rollback()
                raise
            except Exception as e:
                session.rollback()
                logger.error(
                    "Publishing batch failed, rolled back",
                    extra={"batch_id": str(batch_uuid), "error": str(e)}
                )
                raise PublishError(f"Failed to publish batch {batch_uuid}: {str(e)}") from e

        logger.info(
            "Published menu batch",
            extra={
                "batch_id": str(batch_uuid),
                "restaurant_id": str(restaurant_id),
                "inserted_count": result.inserted_count,
                "updated_count": result.updated_count
            }
        )

        self._audit("MENU_BATCH_APPROVE_PUBLISH", actor_id, batch_uuid, {
            "restaurant_id": str(restaurant_id),
            "inserted_count": result.inserted_count,
            "updated_count": result.updated_count,
            "total_accepted": len(selected),
        })

        return result

    def _select_for_publish(
        self,
        session: Session,
        batch_id: UUID,
        actions: Dict[UUID, ItemAction],
        edits: Dict[UUID, Optional[EditedItemData]]
    ) -> List[Tuple[MenuParseItem, ItemAction, Optional[EditedItemData]]]:
        items = self.list_items(session, batch_id)
        known_ids = {item.id for item in items}

        unknown = (set(actions) | set(edits)) - known_ids
        if unknown:
            missing = ", ".join(sorted(str(item_id) for item_id in unknown))
            raise NotFoundError(f"Items not found for batch {batch_id}: {missing}")

        selected = []
        for item in items:
            action = actions.get(item.id, ItemAction(item.action))
            if action not in PUBLISH_ACTIONS:
                continue

            edit = edits.get(item.id)
            if edit is None and item.edited_data:
                edit = EditedItemData.model_validate(item.edited_data)

            selected.append((item, action, edit))

        return selected

    def _resolve_item(self, item: MenuParseItem, edit: Optional[EditedItemData]) -> ResolvedItem:
        dish_name = item.dish_name
        price = item.price_eur
        category = item.category
        description = item.description

        if edit is not None:
            dish_name = edit.dish_name or dish_name
            if edit.price_eur is not None:
                price = edit.price_eur
            category = edit.category or category
            description = edit.description or description

        return ResolvedItem(
            dish_name=dish_name.strip(),
            price=Decimal(str(price)).quantize(Decimal("0.01")),
            category=category,
            description=description
        )

    def reject_batch(
        self,
        session: Session,
        batch_id: Union[UUID, str],
        reason: str,
        actor_id: Optional[str] = None
    ) -> MenuParseBatch:
        if not reason or not isinstance(reason, str) or not reason.strip():
            raise PreconditionError("Rejection reason is required")

        batch_uuid = _as_uuid(batch_id, "batch id")

        with self._locks.hold(batch_uuid):
            batch = self.get_batch(session, batch_uuid)

            transition(session, batch, BatchStatus.REJECTED)
            batch.rejected_by = actor_id
            batch.rejected_at = utc_now()
            batch.rejection_reason = reason.strip()
            commit_batch(session, batch_uuid)
            session.refresh(batch)

        self._audit("MENU_BATCH_REJECT", actor_id, batch_uuid, {"reason": reason.strip()})

        return batch

    def delete_batch(self, session: Session, batch_id: Union[UUID, str], actor_id: Optional[str] = None) -> int:
        """Irreversibly remove a batch and its staged items. Returns the number of items removed."""
        batch_uuid = _as_uuid(batch_id, "batch id")

        with self._locks.hold(batch_uuid):
            batch = self.get_batch(session, batch_uuid)
            items = self.list_items(session, batch_uuid)

            for item in items:
                session.delete(item)
            session.flush()

            session.delete(batch)
            commit_batch(session, batch_uuid)

        self._audit("MENU_BATCH_DELETE", actor_id, batch_uuid, {"items_deleted": len(items)})

        return len(items)

    def _audit(self, action: str, actor_id: Optional[str], batch_id: UUID, metadata: Dict[str, Any]) -> None:
        self.audit_sink.record(
            action,
            actor_id,
            {"batch_id": str(batch_id), **metadata},
            correlation_id=f"batch-{batch_id}"
        )


__all__ = ["IngestionOrchestrator", "ParseOutcome"]
