"""Report queue model for managing report generation jobs."""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, case
from sqlalchemy.orm import relationship

from ..database import Base


class QueueStatus(str, Enum):
    """Status of a queue item."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class QueuePriority(str, Enum):
    """Claim priority of a queue item."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class TriggerType(str, Enum):
    """Field event that caused a report to be queued."""
    NEW_FIELD = "new_field"
    FIELD_UPDATE = "field_update"
    GROWTH_STAGE_CHANGE = "growth_stage_change"
    LOSS_EVENT = "loss_event"
    WEATHER_ALERT = "weather_alert"
    PEST_DISEASE = "pest_disease"
    SCHEDULED = "scheduled"


# Higher rank is claimed first
PRIORITY_RANK = {
    QueuePriority.LOW.value: 0,
    QueuePriority.NORMAL.value: 1,
    QueuePriority.HIGH.value: 2,
    QueuePriority.CRITICAL.value: 3,
}


class ReportQueueItem(Base):
    """A queued report job."""

    __tablename__ = "report_queue"

    id = Column(Integer, primary_key=True, index=True)
    field_id = Column(Integer, ForeignKey("fields.id"), nullable=False, index=True)

    trigger_type = Column(String(32), default=TriggerType.FIELD_UPDATE.value, nullable=False, index=True)
    priority = Column(String(16), default=QueuePriority.NORMAL.value, nullable=False, index=True)

    # Status tracking
    status = Column(String(20), default=QueueStatus.PENDING.value, nullable=False, index=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    max_retries = Column(Integer, default=3, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)  # Most recent claim
    processed_at = Column(DateTime, nullable=True)

    # Relationship
    field = relationship("Field")

    __table_args__ = (
        Index("idx_queue_processing", "status", "priority", "created_at"),
        Index("idx_queue_retry", "status", "retry_count", "max_retries"),
    )

    @classmethod
    def priority_rank(cls):
        """SQL expression ranking priorities for ORDER BY."""
        return case(PRIORITY_RANK, value=cls.priority, else_=PRIORITY_RANK["normal"])

    def __repr__(self):
        return (
            f"<ReportQueueItem id={self.id} field_id={self.field_id} "
            f"status={self.status} retries={self.retry_count}/{self.max_retries}>"
        )
