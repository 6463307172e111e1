"""Queue API endpoints for inspecting and driving the report queue."""
import logging
from typing import List, Optional, Dict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from . import get_context
from ..models import QueueStatus, QueuePriority, TriggerType

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Pydantic Schemas
# ============================================================================

class QueueItemResponse(BaseModel):
    """Response for a single queue item."""
    id: int
    field_id: int
    trigger_type: str
    priority: str
    status: str
    error_message: Optional[str] = None
    retry_count: int
    max_retries: int
    created_at: datetime
    started_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchSummaryResponse(BaseModel):
    """Counts from one batch run."""
    processed: int
    errors: int
    skipped: int


class QueueStatusResponse(BaseModel):
    """Response for queue status."""
    counts: Dict[str, int]
    pending: int
    total: int
    in_flight_item_ids: List[int] = []
    last_batch: Optional[BatchSummaryResponse] = None
    last_batch_at: Optional[datetime] = None


class EnqueueRequest(BaseModel):
    """Request to queue a report for a field."""
    field_id: int
    trigger_type: TriggerType = TriggerType.FIELD_UPDATE
    priority: QueuePriority = QueuePriority.NORMAL


class EnqueueResponse(BaseModel):
    """Response for queueing a report."""
    message: str
    created: bool
    item: QueueItemResponse


class ReleaseStaleResponse(BaseModel):
    message: str
    released: int


# ============================================================================
# API Endpoints
# ============================================================================

@router.get("/status", response_model=QueueStatusResponse)
def get_queue_status(context=Depends(get_context)):
    """Get current queue status."""
    return context.coordinator.get_status()


@router.get("/items", response_model=List[QueueItemResponse])
def get_queue_items(
    status: Optional[QueueStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    context=Depends(get_context),
):
    """Get recent queue items, optionally filtered by status."""
    return context.store.list_items(status=status.value if status else None, limit=limit)


@router.post("/process", response_model=BatchSummaryResponse)
def process_queue(context=Depends(get_context)):
    """Process one batch of pending items now."""
    summary = context.coordinator.process_pending_batch()
    return summary.as_dict()


@router.post("/enqueue", response_model=EnqueueResponse)
def enqueue_report(request: EnqueueRequest, context=Depends(get_context)):
    """Queue a report for a field."""
    if not context.store.field_exists(request.field_id):
        raise HTTPException(status_code=404, detail="Field not found")

    item, created = context.store.enqueue(
        request.field_id,
        request.trigger_type,
        request.priority,
        max_retries=context.settings.default_max_retries,
    )

    return EnqueueResponse(
        message="Report queued" if created else "Report already queued",
        created=created,
        item=QueueItemResponse.model_validate(item),
    )


@router.post("/release-stale", response_model=ReleaseStaleResponse)
def release_stale(context=Depends(get_context)):
    """Fail items stuck in processing so they can be retried."""
    released = context.coordinator.release_stale_claims()
    return ReleaseStaleResponse(
        message=f"Released {released} stale claims",
        released=released,
    )


@router.post("/{item_id}/cancel")
def cancel_queue_item(item_id: int, context=Depends(get_context)):
    """Cancel a pending queue item."""
    item = context.store.get_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Queue item not found")

    if not context.store.cancel(item_id):
        current = context.store.get_item(item_id)
        raise HTTPException(
            status_code=409,
            detail=f"Cannot cancel item with status '{current.status if current else item.status}'"
        )

    logger.info(f"Cancelled queue item {item_id}")
    return {"message": "Queue item cancelled", "item_id": item_id}
