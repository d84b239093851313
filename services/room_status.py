"""
Room status projection: keeps rooms.status in step with the active allocation count
"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.core import Room, RoomAllocation, RoomStatus
from services.occupancy import is_empty
from utils.logging_utils import get_logger

logger = get_logger("room_status")


def status_for(active_count: int) -> RoomStatus:
    return RoomStatus.EMPTY if is_empty(active_count) else RoomStatus.OCCUPIED


def active_allocation_count(db: Session, room_id: int) -> int:
    return (
        db.query(func.count(RoomAllocation.id))
        .filter(RoomAllocation.room_id == room_id, RoomAllocation.released_at.is_(None))
        .scalar()
        or 0
    )


def refresh_room_status(db: Session, room: Room) -> bool:
    """
    Recompute the room status inside the caller's transaction.

    Pending allocation changes are flushed first so the count sees them.
    Only writes when the status actually changes.

    Returns:
        True if the stored status was changed
    """
    db.flush()
    occupancy = active_allocation_count(db, room.id)
    new_status = status_for(occupancy)
    if room.status == new_status:
        return False

    old_status = room.status
    room.status = new_status
    db.flush()
    logger.debug(
        "Room status updated | room_code=%s old_status=%s new_status=%s occupancy=%s",
        room.room_code,
        getattr(old_status, "value", old_status),
        new_status.value,
        occupancy,
    )
    return True


def find_inconsistent_rooms(db: Session):
    """Rooms whose stored status disagrees with their active allocation count"""
    counts = dict(
        db.query(RoomAllocation.room_id, func.count(RoomAllocation.id))
        .filter(RoomAllocation.released_at.is_(None))
        .group_by(RoomAllocation.room_id)
        .all()
    )
    return [room for room in db.query(Room).all() if room.status != status_for(counts.get(room.id, 0))]
