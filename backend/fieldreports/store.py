"""Store repository: queue transitions and field/farm queries.

Every queue state change is a single conditional ``UPDATE`` so that a timer
batch and a manually triggered batch can run side by side without both
working on the same row.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Tuple

from sqlalchemy import update, func, case, text
from sqlalchemy.orm import sessionmaker

from .models import (
    Field,
    Farm,
    User,
    ReportQueueItem,
    QueueStatus,
    QueuePriority,
    TriggerType,
    ReportLog,
)

logger = logging.getLogger(__name__)

# Maximum stored length of an error message
ERROR_MESSAGE_LIMIT = 500

# Farm columns merged into the field details record
FARM_DETAIL_COLUMNS = (
    "farm_name",
    "farmer_name",
    "phone_number",
    "backup_power_available",
    "fire_guard_present",
    "irrigation_infrastructure_available",
    "climate_zone",
)

USER_DETAIL_COLUMNS = ("email", "first_name", "last_name", "organization")


def _row_to_dict(obj) -> Dict[str, Any]:
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


class ReportStore:
    """Repository over the report queue and the farm-management tables."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def ping(self) -> bool:
        """Check the database is reachable."""
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Queue reads
    # ------------------------------------------------------------------

    def fetch_pending(self, limit: int = 10) -> List[ReportQueueItem]:
        """Pending items, highest priority first, then oldest first."""
        with self.session_factory() as db:
            return db.query(ReportQueueItem).filter(
                ReportQueueItem.status == QueueStatus.PENDING.value
            ).order_by(
                ReportQueueItem.priority_rank().desc(),
                ReportQueueItem.created_at.asc(),
                ReportQueueItem.id.asc(),
            ).limit(limit).all()

    def get_item(self, item_id: int) -> Optional[ReportQueueItem]:
        with self.session_factory() as db:
            return db.get(ReportQueueItem, item_id)

    def list_items(self, status: Optional[str] = None, limit: int = 50) -> List[ReportQueueItem]:
        with self.session_factory() as db:
            query = db.query(ReportQueueItem)
            if status:
                query = query.filter(ReportQueueItem.status == status)
            return query.order_by(
                ReportQueueItem.created_at.desc(),
                ReportQueueItem.id.desc(),
            ).limit(limit).all()

    def count_by_status(self) -> Dict[str, int]:
        """Number of queue rows per status (every status present, zero if none)."""
        counts = {status.value: 0 for status in QueueStatus}
        with self.session_factory() as db:
            rows = db.query(
                ReportQueueItem.status, func.count(ReportQueueItem.id)
            ).group_by(ReportQueueItem.status).all()
        for status, count in rows:
            counts[status] = count
        return counts

    def pending_count(self) -> int:
        with self.session_factory() as db:
            return db.query(ReportQueueItem).filter(
                ReportQueueItem.status == QueueStatus.PENDING.value
            ).count()

    # ------------------------------------------------------------------
    # Queue transitions
    # ------------------------------------------------------------------

    def enqueue(
        self,
        field_id: int,
        trigger_type: TriggerType = TriggerType.FIELD_UPDATE,
        priority: QueuePriority = QueuePriority.NORMAL,
        max_retries: int = 3,
    ) -> Tuple[ReportQueueItem, bool]:
        """
        Queue a report for a field.

        Returns the queue item and whether it was newly created. An open
        (pending or processing) item for the same field and trigger is
        returned as-is instead of queueing a duplicate.
        """
        with self.session_factory() as db:
            existing = db.query(ReportQueueItem).filter(
                ReportQueueItem.field_id == field_id,
                ReportQueueItem.trigger_type == TriggerType(trigger_type).value,
                ReportQueueItem.status.in_([
                    QueueStatus.PENDING.value,
                    QueueStatus.PROCESSING.value,
                ]),
            ).first()
            if existing:
                return existing, False

            item = ReportQueueItem(
                field_id=field_id,
                trigger_type=TriggerType(trigger_type).value,
                priority=QueuePriority(priority).value,
                status=QueueStatus.PENDING.value,
                retry_count=0,
                max_retries=max_retries,
            )
            db.add(item)
            db.commit()
            db.refresh(item)

        logger.info(f"Queued report {item.id} for field {field_id} ({item.trigger_type}, {item.priority})")
        return item, True

    def claim(self, item_id: int) -> bool:
        """
        Atomically move an item from pending to processing.

        Returns False when another invocation claimed (or cancelled) it first.
        """
        with self.session_factory() as db:
            result = db.execute(
                update(ReportQueueItem)
                .where(
                    ReportQueueItem.id == item_id,
                    ReportQueueItem.status == QueueStatus.PENDING.value,
                )
                .values(status=QueueStatus.PROCESSING.value, started_at=datetime.utcnow())
            )
            db.commit()
            return result.rowcount == 1

    def mark_completed(self, item_id: int) -> bool:
        with self.session_factory() as db:
            result = db.execute(
                update(ReportQueueItem)
                .where(
                    ReportQueueItem.id == item_id,
                    ReportQueueItem.status == QueueStatus.PROCESSING.value,
                )
                .values(status=QueueStatus.COMPLETED.value, processed_at=datetime.utcnow())
            )
            db.commit()
            return result.rowcount == 1

    def mark_retry_or_error(self, item_id: int, message: str) -> Optional[QueueStatus]:
        """
        Record a failed attempt.

        Increments ``retry_count``; the item returns to pending while retries
        remain and becomes a terminal error once ``retry_count`` reaches
        ``max_retries``. Returns the resulting status, or None if the item
        was not in processing.
        """
        with self.session_factory() as db:
            updated = self._record_failure(db, item_id, message)
            db.commit()
            if not updated:
                return None
            status = db.query(ReportQueueItem.status).filter(
                ReportQueueItem.id == item_id
            ).scalar()
        return QueueStatus(status)

    def release_stale_claims(self, older_than: timedelta) -> int:
        """Fail items left in processing (e.g. by a crashed worker) past the cutoff."""
        cutoff = datetime.utcnow() - older_than
        minutes = int(older_than.total_seconds() // 60)
        message = f"Processing interrupted; claim released after {minutes} minutes"
        released = 0
        with self.session_factory() as db:
            stale_ids = [
                row[0] for row in db.query(ReportQueueItem.id).filter(
                    ReportQueueItem.status == QueueStatus.PROCESSING.value,
                    ReportQueueItem.started_at < cutoff,
                ).all()
            ]
            for item_id in stale_ids:
                if self._record_failure(db, item_id, message):
                    released += 1
            db.commit()
        if released:
            logger.warning(f"Released {released} stale queue claims")
        return released

    def cancel(self, item_id: int) -> bool:
        """Cancel a pending item. Returns False if it was not pending."""
        with self.session_factory() as db:
            result = db.execute(
                update(ReportQueueItem)
                .where(
                    ReportQueueItem.id == item_id,
                    ReportQueueItem.status == QueueStatus.PENDING.value,
                )
                .values(status=QueueStatus.CANCELLED.value)
            )
            db.commit()
            return result.rowcount == 1

    def _record_failure(self, db, item_id: int, message: str) -> bool:
        now = datetime.utcnow()
        exhausted = ReportQueueItem.retry_count + 1 >= ReportQueueItem.max_retries
        # retry_count is assigned last so every expression sees the old value
        result = db.execute(
            update(ReportQueueItem)
            .where(
                ReportQueueItem.id == item_id,
                ReportQueueItem.status == QueueStatus.PROCESSING.value,
            )
            .ordered_values(
                (ReportQueueItem.status, case(
                    (exhausted, QueueStatus.ERROR.value),
                    else_=QueueStatus.PENDING.value,
                )),
                (ReportQueueItem.processed_at, case(
                    (exhausted, now),
                    else_=ReportQueueItem.processed_at,
                )),
                (ReportQueueItem.error_message, (message or "Unknown error")[:ERROR_MESSAGE_LIMIT]),
                (ReportQueueItem.retry_count, ReportQueueItem.retry_count + 1),
            )
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Field data
    # ------------------------------------------------------------------

    def get_field_details(self, field_id: int) -> Optional[Dict[str, Any]]:
        """Field joined with its farm and user, or None if any part is missing."""
        with self.session_factory() as db:
            row = db.query(Field, Farm, User).join(
                Farm, Field.farm_id == Farm.id
            ).join(
                User, Field.user_id == User.id
            ).filter(Field.id == field_id).first()

        if row is None:
            return None

        field, farm, user = row
        details = _row_to_dict(field)
        for column in FARM_DETAIL_COLUMNS:
            details[column] = getattr(farm, column)
        for column in USER_DETAIL_COLUMNS:
            details[column] = getattr(user, column)
        return details

    def get_farm_fields(self, farm_id: int) -> List[Dict[str, Any]]:
        with self.session_factory() as db:
            fields = db.query(Field).filter(
                Field.farm_id == farm_id
            ).order_by(Field.field_name, Field.id).all()
        return [_row_to_dict(field) for field in fields]

    def get_farm_statistics(self, farm_id: int) -> Dict[str, Any]:
        pest_level = func.lower(func.coalesce(Field.pest_infestation_level, "none"))
        with self.session_factory() as db:
            row = db.query(
                func.count(Field.id).label("total_fields"),
                func.sum(Field.field_size).label("total_area"),
                func.count(func.distinct(Field.crop_type)).label("crop_types"),
                func.min(Field.planting_date).label("earliest_planting"),
                func.max(Field.planting_date).label("latest_planting"),
                func.avg(Field.field_size).label("avg_field_size"),
                func.count(Field.basal_fertilizer).label("fertilized_fields"),
                func.count(case((Field.loss_occurred_current_season.is_(True), 1))).label("fields_with_losses"),
                func.avg(case(
                    (Field.expected_yield_per_hectare > 0, Field.expected_yield_per_hectare)
                )).label("avg_expected_yield"),
                func.count(case((pest_level.notin_(["none", "no", ""]), 1))).label("fields_with_pests"),
                func.count(case((Field.disease_occurrence.is_(True), 1))).label("fields_with_disease"),
            ).filter(Field.farm_id == farm_id).one()
        return dict(row._asdict())

    def get_crop_analysis(self, farm_id: int) -> List[Dict[str, Any]]:
        """Per-crop aggregates for a farm, largest planted area first."""
        pest_level = func.lower(func.coalesce(Field.pest_infestation_level, "none"))
        with self.session_factory() as db:
            rows = db.query(
                Field.crop_type.label("crop_type"),
                func.count(Field.id).label("field_count"),
                func.sum(Field.field_size).label("total_area"),
                func.avg(Field.field_size).label("avg_field_size"),
                func.min(Field.planting_date).label("earliest_planting"),
                func.max(Field.planting_date).label("latest_planting"),
                func.avg(case(
                    (Field.expected_yield_per_hectare > 0, Field.expected_yield_per_hectare)
                )).label("avg_expected_yield"),
                func.count(case((Field.loss_occurred_current_season.is_(True), 1))).label("fields_with_losses"),
                func.count(case((pest_level.notin_(["none", "no", ""]), 1))).label("pest_affected_fields"),
                func.count(case((Field.disease_occurrence.is_(True), 1))).label("disease_affected_fields"),
            ).filter(
                Field.farm_id == farm_id,
                Field.crop_type.isnot(None),
            ).group_by(Field.crop_type).order_by(
                func.sum(Field.field_size).desc()
            ).all()

            variety_rows = db.query(Field.crop_type, Field.variety).filter(
                Field.farm_id == farm_id,
                Field.crop_type.isnot(None),
                Field.variety.isnot(None),
            ).distinct().all()

        varieties: Dict[str, List[str]] = {}
        for crop_type, variety in variety_rows:
            varieties.setdefault(crop_type, []).append(variety)

        crops = []
        for row in rows:
            crop = dict(row._asdict())
            crop["varieties"] = sorted(varieties.get(crop["crop_type"], []))
            crop["varieties_count"] = len(crop["varieties"])
            crops.append(crop)
        return crops

    def field_exists(self, field_id: int) -> bool:
        with self.session_factory() as db:
            return db.query(Field.id).filter(Field.id == field_id).first() is not None

    def list_field_ids(self) -> List[int]:
        with self.session_factory() as db:
            return [row[0] for row in db.query(Field.id).order_by(Field.id).all()]

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def log_report(self, field_id: int, user_id: Optional[int], success: bool):
        with self.session_factory() as db:
            db.add(ReportLog(
                field_id=field_id,
                user_id=user_id,
                status="success" if success else "failed",
            ))
            db.commit()
