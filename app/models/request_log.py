from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from app.database.base import Base


class RequestLog(Base):
    __tablename__ = "request_logs"

    id = Column(Integer, primary_key=True)
    method = Column(String(10), nullable=False)
    path = Column(String(255), nullable=False)
    route = Column(String(255))
    status_code = Column(Integer, nullable=False)
    duration_ms = Column(Float, nullable=False, default=0.0)

    client_ip = Column(String(64))
    user_email = Column(String(255))
    query_string = Column(String)
    error_message = Column(String)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("idx_request_logs_created_at", "created_at"),
        Index("idx_request_logs_route_status", "route", "status_code"),
    )


__all__ = ["RequestLog"]
