import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from .. import models
from ..utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class YogaServiceError(Exception):
    pass


class ClassNotFoundError(YogaServiceError):
    pass


class ClassTypeNotFoundError(YogaServiceError):
    pass


class SchedulingError(YogaServiceError):
    pass


class ClassFullError(YogaServiceError):
    pass


def fetch_class_types(db: Session) -> List[models.ClassType]:
    return (
        db.query(models.ClassType)
        .filter(models.ClassType.active.is_(True))
        .order_by(models.ClassType.name)
        .all()
    )


def fetch_class_type_by_id(db: Session, class_type_id: str) -> Optional[models.ClassType]:
    return db.get(models.ClassType, class_type_id)


def _upcoming_query(db: Session, now: datetime):
    return (
        db.query(models.ScheduledClass)
        .filter(models.ScheduledClass.scheduled_start_time >= ensure_utc(now))
        .filter(models.ScheduledClass.status == "scheduled")
        .filter(models.ScheduledClass.is_public.is_(True))
        .order_by(models.ScheduledClass.scheduled_start_time)
    )


def fetch_upcoming_classes(db: Session, now: Optional[datetime] = None) -> List[models.ScheduledClass]:
    return _upcoming_query(db, now or utcnow()).all()


def fetch_next_scheduled_class(db: Session, now: Optional[datetime] = None) -> Optional[models.ScheduledClass]:
    return _upcoming_query(db, now or utcnow()).first()


def fetch_scheduled_class_by_id(db: Session, class_id: str) -> Optional[models.ScheduledClass]:
    return db.get(models.ScheduledClass, class_id)


def fetch_past_classes(
    db: Session,
    now: Optional[datetime] = None,
    limit: int = 10,
    offset: int = 0,
) -> List[models.ScheduledClass]:
    # every status is included, cancelled classes show up in history too
    return (
        db.query(models.ScheduledClass)
        .filter(models.ScheduledClass.scheduled_start_time < ensure_utc(now or utcnow()))
        .order_by(models.ScheduledClass.scheduled_start_time.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def create_scheduled_class(
    db: Session,
    class_type_id: str,
    scheduled_start_time: datetime,
    now: Optional[datetime] = None,
    **options,
) -> models.ScheduledClass:
    class_type = fetch_class_type_by_id(db, class_type_id)
    if not class_type or not class_type.active:
        raise ClassTypeNotFoundError(f"Class type {class_type_id} not found")

    start = ensure_utc(scheduled_start_time)
    if start <= ensure_utc(now or utcnow()):
        raise SchedulingError("Please schedule a time in the future")

    recurrence = options.get("recurrence")
    if recurrence == "none":
        recurrence = None

    sched = models.ScheduledClass(
        id=str(uuid4()),
        class_type_id=class_type_id,
        scheduled_start_time=start,
        recurrence=recurrence,
        recurrence_end_date=ensure_utc(options.get("recurrence_end_date")),
        max_participants=options.get("max_participants"),
        notes=options.get("notes"),
        zoom_link=options.get("zoom_link"),
        created_by=options.get("created_by"),
        is_public=options.get("is_public", True),
        status="scheduled",
        current_participants=0,
    )
    db.add(sched)
    db.commit()
    db.refresh(sched)
    logger.info("Scheduled class %s (%s) for %s", sched.id, class_type.name, start.isoformat())
    return sched


def register_for_class(
    db: Session,
    class_id: str,
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
    user_name: Optional[str] = None,
) -> models.Participant:
    sched = fetch_scheduled_class_by_id(db, class_id)
    if not sched:
        raise ClassNotFoundError(f"Scheduled class {class_id} not found")
    if sched.status == "cancelled":
        raise SchedulingError("This class has been cancelled")
    if sched.max_participants is not None and sched.current_participants >= sched.max_participants:
        raise ClassFullError("This class is full")

    participant = models.Participant(
        id=str(uuid4()),
        scheduled_class_id=class_id,
        user_id=user_id,
        user_email=user_email,
        user_name=user_name,
        attendance_status="registered",
    )
    db.add(participant)
    sched.current_participants = (sched.current_participants or 0) + 1
    db.commit()
    db.refresh(participant)
    logger.info("Registered participant %s for class %s", participant.id, class_id)
    return participant


def update_class_status(db: Session, class_id: str, status: str) -> models.ScheduledClass:
    if status not in models.CLASS_STATUSES:
        raise SchedulingError(f"Unknown status: {status}")
    sched = fetch_scheduled_class_by_id(db, class_id)
    if not sched:
        raise ClassNotFoundError(f"Scheduled class {class_id} not found")
    sched.status = status
    db.commit()
    db.refresh(sched)
    logger.info("Class %s is now %s", class_id, status)
    return sched


def fetch_posture_audio_urls(db: Session, language: Optional[str] = None) -> List[str]:
    query = db.query(models.PostureAudioRecording.audio_url)
    if language:
        query = query.filter(models.PostureAudioRecording.language == language)
    return [row[0] for row in query.all()]
