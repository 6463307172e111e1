"""Webhook endpoint for field events from the farm-management app."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from . import get_context
from ..models import QueuePriority, TriggerType

logger = logging.getLogger(__name__)

router = APIRouter()

# Priority used when the event does not carry one
TRIGGER_PRIORITY = {
    TriggerType.LOSS_EVENT: QueuePriority.HIGH,
    TriggerType.WEATHER_ALERT: QueuePriority.HIGH,
    TriggerType.PEST_DISEASE: QueuePriority.HIGH,
    TriggerType.SCHEDULED: QueuePriority.LOW,
}


class FieldEvent(BaseModel):
    """A field event notification."""
    field_id: int
    trigger_type: TriggerType = TriggerType.NEW_FIELD
    priority: Optional[QueuePriority] = None


class FieldEventResponse(BaseModel):
    success: bool
    message: str
    queue_item_id: int
    created: bool


@router.post("/field", response_model=FieldEventResponse)
def handle_field_event(event: FieldEvent, context=Depends(get_context)):
    """Queue a report for the field and return; processing happens in the next batch."""
    if not context.store.field_exists(event.field_id):
        raise HTTPException(status_code=404, detail="Field not found")

    priority = event.priority or TRIGGER_PRIORITY.get(event.trigger_type, QueuePriority.NORMAL)
    item, created = context.store.enqueue(
        event.field_id,
        event.trigger_type,
        priority,
        max_retries=context.settings.default_max_retries,
    )

    logger.info(f"Webhook {event.trigger_type.value} for field {event.field_id}: queue item {item.id}")
    return FieldEventResponse(
        success=True,
        message="Report generation queued" if created else "Report already queued",
        queue_item_id=item.id,
        created=created,
    )
