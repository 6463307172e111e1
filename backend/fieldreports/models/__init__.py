"""Database models for the report service."""
from .field import Field, Farm, User
from .queue import ReportQueueItem, QueueStatus, QueuePriority, TriggerType
from .report_log import ReportLog

__all__ = [
    "Field",
    "Farm",
    "User",
    "ReportQueueItem",
    "QueueStatus",
    "QueuePriority",
    "TriggerType",
    "ReportLog",
]
