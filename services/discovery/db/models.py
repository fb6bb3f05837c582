"""
SQLAlchemy DeclarativeBase models: mirrors of the tables the discovery
service touches through the ORM.

Column names are snake_case to match the Supabase schema. The bulk
establishment upsert goes through asyncpg and does not use these.

IMPORTANT: These models are NOT used for migrations. The web app's SQL
migrations own the DDL; these are read/write mirrors.
"""

import enum
import uuid as _uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Float, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class QueueStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# create_type=False: the migrations own the enum DDL, SA just casts.
QueueStatusEnum = Enum(
    QueueStatus, name="validation_status", create_type=False,
    values_callable=lambda e: [m.value for m in e],
)


class Base(DeclarativeBase):
    pass


class ValidationQueueItem(Base):
    """Discovered candidate awaiting review. Only pending rows change state."""

    __tablename__ = "validation_queue"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    city: Mapped[str] = mapped_column(String)
    name: Mapped[str] = mapped_column(String)
    localized_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[str] = mapped_column(String)
    address: Mapped[str] = mapped_column(String)
    neighborhood: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(Text, default="")
    localized_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dog_features: Mapped[dict] = mapped_column(JSON, default=dict)
    price_level: Mapped[int] = mapped_column(Integer, default=2)
    confidence: Mapped[int] = mapped_column(Integer, default=50)
    reasoning: Mapped[str] = mapped_column(Text, default="")
    source: Mapped[str] = mapped_column(String, default="llm-research")
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[QueueStatus] = mapped_column(QueueStatusEnum, default=QueueStatus.PENDING)
    research_task_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
