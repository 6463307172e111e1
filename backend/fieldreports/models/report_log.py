"""Audit log of report deliveries."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base


class ReportLog(Base):
    """One row per delivered (or failed) report email."""

    __tablename__ = "report_logs"

    id = Column(Integer, primary_key=True, index=True)
    field_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False)  # success | failed
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ReportLog field={self.field_id} status={self.status}>"
