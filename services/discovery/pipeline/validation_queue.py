"""
Validation queue: discovered candidates wait here for a human decision.

Every item enters as pending. A reviewer action moves it to approved or
rejected exactly once; both are terminal. The state change is a single
compare-and-set UPDATE guarded on status = 'pending', so two reviewers
racing on the same item cannot both win.
"""
import enum
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from services.discovery.db.models import QueueStatus, ValidationQueueItem
from services.discovery.pipeline.candidates import (
    CandidatePlace,
    ImportRecord,
    clamp_price_level,
    coerce_confidence,
)
from services.discovery.pipeline.features import normalize_dog_features

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 200

_COLUMNS = (
    "id, city, name, localized_name, category, address, neighborhood, phone, website, "
    "description, localized_description, dog_features, price_level, confidence, reasoning, "
    "source, latitude, longitude, status, research_task_id, reviewed_by, reviewed_at, created_at"
)


class QueueAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


_ACTION_TARGET = {
    QueueAction.APPROVE: QueueStatus.APPROVED,
    QueueAction.REJECT: QueueStatus.REJECTED,
}


class QueueError(Exception):
    """Base for validation queue errors."""


class QueueItemNotFoundError(QueueError):
    def __init__(self, item_id: str):
        super().__init__(f"Validation queue item not found: {item_id}")
        self.item_id = item_id


class InvalidTransitionError(QueueError):
    def __init__(self, item_id: str, current_status: Optional[str], action: str):
        if current_status is None:
            msg = f"Unknown review action {action!r} for item {item_id}"
        else:
            msg = f"Cannot {action} item {item_id}: already {current_status}"
        super().__init__(msg)
        self.item_id = item_id
        self.current_status = current_status
        self.action = action


def _now():
    return datetime.now(timezone.utc)


def _status_value(status: Union[QueueStatus, str]) -> str:
    """Normalize a status filter. Raises ValueError for unknown statuses."""
    return QueueStatus(status).value


def _decode_features(value) -> dict[str, bool]:
    # raw SQL hands JSON columns back as text
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    return normalize_dog_features(value)


def _to_item(row) -> dict:
    item = dict(row)
    item["dog_features"] = _decode_features(item.get("dog_features"))
    status = item.get("status")
    if isinstance(status, QueueStatus):
        item["status"] = status.value
    return item


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def enqueue_candidates(
    session: AsyncSession,
    city_slug: str,
    candidates: list[CandidatePlace],
    *,
    research_task_id: Optional[str] = None,
) -> list[str]:
    """Insert candidates as pending items. Returns the new item ids in input order."""
    if not candidates:
        return []

    now = _now()
    ids: list[str] = []
    for candidate in candidates:
        item = ValidationQueueItem(
            id=str(uuid.uuid4()),
            city=city_slug,
            status=QueueStatus.PENDING,
            research_task_id=research_task_id,
            created_at=now,
            **candidate.to_dict(),
        )
        session.add(item)
        ids.append(item.id)

    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logger.info("Enqueued %d candidates for %s (task=%s)", len(ids), city_slug, research_task_id)
    return ids


async def transition_queue_item(
    session: AsyncSession,
    item_id: str,
    action: Union[QueueAction, str],
    *,
    reviewed_by: str,
) -> dict:
    """
    Apply a reviewer action to a pending item and return the updated item.

    Raises QueueItemNotFoundError for an unknown id and InvalidTransitionError
    for an unknown action or an item that is no longer pending.
    """
    try:
        action = QueueAction(action)
    except ValueError:
        raise InvalidTransitionError(item_id, None, str(action)) from None

    target = _ACTION_TARGET[action]
    result = await session.execute(text("""
        UPDATE validation_queue
        SET status = :target, reviewed_by = :reviewed_by, reviewed_at = :now
        WHERE id = :id AND status = :pending
    """), {
        "id": item_id,
        "target": target.value,
        "pending": QueueStatus.PENDING.value,
        "reviewed_by": reviewed_by,
        "now": _now(),
    })

    if result.rowcount == 0:
        await session.rollback()
        current = await get_queue_item(session, item_id)
        raise InvalidTransitionError(item_id, current["status"], action.value)

    await session.commit()
    logger.info("Queue item %s %s by %s", item_id, target.value, reviewed_by)
    return await get_queue_item(session, item_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_queue_item(session: AsyncSession, item_id: str) -> dict:
    result = await session.execute(
        text(f"SELECT {_COLUMNS} FROM validation_queue WHERE id = :id"), {"id": item_id})
    row = result.mappings().first()
    if row is None:
        raise QueueItemNotFoundError(item_id)
    return _to_item(row)


async def list_queue_items(
    session: AsyncSession,
    *,
    status: Union[QueueStatus, str, None] = None,
    city: Optional[str] = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[dict]:
    """Newest first; ties broken by id so the order is stable."""
    sql = f"SELECT {_COLUMNS} FROM validation_queue"
    clauses = []
    params: dict = {"limit": limit}
    if status is not None:
        clauses.append("status = :status")
        params["status"] = _status_value(status)
    if city:
        clauses.append("city = :city")
        params["city"] = city
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at DESC, id LIMIT :limit"

    result = await session.execute(text(sql), params)
    return [_to_item(r) for r in result.mappings().all()]


async def count_by_status(session: AsyncSession, *, city: Optional[str] = None) -> dict[str, int]:
    sql = "SELECT status, COUNT(*) AS n FROM validation_queue"
    params: dict = {}
    if city:
        sql += " WHERE city = :city"
        params["city"] = city
    sql += " GROUP BY status"

    result = await session.execute(text(sql), params)
    counts = {s.value: 0 for s in QueueStatus}
    for row in result.mappings().all():
        status = row["status"]
        key = status.value if isinstance(status, QueueStatus) else str(status)
        if key in counts:
            counts[key] = int(row["n"])
    return counts


async def fetch_approved_records(session: AsyncSession, *, city: Optional[str] = None) -> list[ImportRecord]:
    """Approved items as ImportRecords, oldest first (the import source order)."""
    sql = f"SELECT {_COLUMNS} FROM validation_queue WHERE status = :status"
    params: dict = {"status": QueueStatus.APPROVED.value}
    if city:
        sql += " AND city = :city"
        params["city"] = city
    sql += " ORDER BY created_at, id"

    result = await session.execute(text(sql), params)
    records = []
    for row in result.mappings().all():
        place = CandidatePlace(
            name=row["name"],
            category=row["category"] or "",
            address=row["address"],
            description=row["description"] or "",
            localized_name=row["localized_name"],
            localized_description=row["localized_description"],
            phone=row["phone"],
            website=row["website"],
            neighborhood=row["neighborhood"],
            dog_features=_decode_features(row["dog_features"]),
            price_level=clamp_price_level(row["price_level"]),
            confidence=coerce_confidence(row["confidence"]),
            reasoning=row["reasoning"] or "",
            source=row["source"],
            latitude=row["latitude"],
            longitude=row["longitude"],
        )
        records.append(ImportRecord(city_slug=row["city"], place=place, queue_item_id=row["id"]))

    logger.info("Fetched %d approved queue items%s", len(records), f" for {city}" if city else "")
    return records
