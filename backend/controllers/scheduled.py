import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import yoga_service
from ..services.countdown import STARTED, WAITING, compute_time_remaining, has_arrived
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/yoga/scheduled", tags=["scheduled"])

LOAD_FAILED = {"message": "Failed to load scheduled class", "retry": True}


def build_page_state(sched, now) -> schemas.ScheduledPageOut:
    if sched is None:
        return schemas.ScheduledPageOut(state="no_class")
    out = schemas.ScheduledClassOut.model_validate(sched)
    remaining = compute_time_remaining(out.scheduled_start_time, now)
    return schemas.ScheduledPageOut(
        state=STARTED if has_arrived(out.scheduled_start_time, now) else WAITING,
        scheduled_class=out,
        time_remaining=schemas.TimeRemainingOut(**remaining.as_dict()),
        audio_url=out.yoga_class_type.audio_url,
        calendar_url=f"/scheduled-classes/{out.id}/calendar.ics",
    )


@router.get("", response_model=schemas.ScheduledPageOut)
def get_scheduled_page(
    class_id: Optional[str] = Query(None, alias="classId"),
    db: Session = Depends(get_db),
):
    """
    Countdown page state for a class, or for the next upcoming class when no
    id is given.
    """
    now = utcnow()
    try:
        if class_id:
            sched = yoga_service.fetch_scheduled_class_by_id(db, class_id)
        else:
            sched = yoga_service.fetch_next_scheduled_class(db, now)
    except SQLAlchemyError:
        logger.exception("Error fetching yoga class data")
        raise HTTPException(status_code=503, detail=LOAD_FAILED)
    return build_page_state(sched, now)


@router.get("/next", response_model=schemas.ScheduledPageOut)
def get_next_class_banner(db: Session = Depends(get_db)):
    now = utcnow()
    try:
        sched = yoga_service.fetch_next_scheduled_class(db, now)
    except SQLAlchemyError:
        logger.exception("Error fetching next scheduled class")
        raise HTTPException(status_code=503, detail=LOAD_FAILED)
    return build_page_state(sched, now)
