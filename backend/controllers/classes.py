from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .. import schemas
from ..config import DEFAULT_INSTRUCTOR, SITE_URL
from ..database import get_db
from ..services import yoga_service
from ..services.countdown import format_time_until
from ..utils.ics_utils import build_class_event, generate_ics_content, ics_filename
from ..utils.time_utils import utcnow

router = APIRouter(tags=["classes"])


@router.get("/class-types", response_model=List[schemas.ClassTypeOut])
def list_class_types(db: Session = Depends(get_db)):
    return yoga_service.fetch_class_types(db)


@router.get("/class-types/{class_type_id}", response_model=schemas.ClassTypeOut)
def get_class_type(class_type_id: str, db: Session = Depends(get_db)):
    class_type = yoga_service.fetch_class_type_by_id(db, class_type_id)
    if not class_type:
        raise HTTPException(404, "Class type not found")
    return class_type


@router.get("/scheduled-classes", response_model=List[schemas.ScheduledClassListItem])
def list_upcoming_classes(db: Session = Depends(get_db)):
    now = utcnow()
    out = []
    for sched in yoga_service.fetch_upcoming_classes(db, now):
        item = schemas.ScheduledClassOut.model_validate(sched)
        out.append(schemas.ScheduledClassListItem(
            **item.model_dump(),
            time_until=format_time_until(item.scheduled_start_time, now),
        ))
    return out


@router.get("/scheduled-classes/history", response_model=List[schemas.ScheduledClassOut])
def list_past_classes(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return yoga_service.fetch_past_classes(db, utcnow(), limit=limit, offset=offset)


@router.post("/scheduled-classes", response_model=schemas.ScheduledClassOut, status_code=201)
def create_scheduled_class(payload: schemas.ScheduledClassCreate, db: Session = Depends(get_db)):
    options = payload.model_dump(exclude={"class_type_id", "scheduled_start_time"})
    try:
        return yoga_service.create_scheduled_class(
            db, payload.class_type_id, payload.scheduled_start_time, **options
        )
    except yoga_service.ClassTypeNotFoundError as e:
        raise HTTPException(404, str(e))
    except yoga_service.SchedulingError as e:
        raise HTTPException(400, str(e))


@router.get("/scheduled-classes/{class_id}", response_model=schemas.ScheduledClassOut)
def get_scheduled_class(class_id: str, db: Session = Depends(get_db)):
    sched = yoga_service.fetch_scheduled_class_by_id(db, class_id)
    if not sched:
        raise HTTPException(404, "Scheduled class not found")
    return sched


@router.patch("/scheduled-classes/{class_id}/status", response_model=schemas.ScheduledClassOut)
def update_status(class_id: str, payload: schemas.StatusUpdate, db: Session = Depends(get_db)):
    try:
        return yoga_service.update_class_status(db, class_id, payload.status)
    except yoga_service.ClassNotFoundError as e:
        raise HTTPException(404, str(e))


@router.get("/scheduled-classes/{class_id}/calendar.ics")
def download_calendar(class_id: str, db: Session = Depends(get_db)):
    sched = yoga_service.fetch_scheduled_class_by_id(db, class_id)
    if not sched:
        raise HTTPException(404, "Scheduled class not found")
    event = build_class_event(sched, SITE_URL, DEFAULT_INSTRUCTOR)
    return Response(
        content=generate_ics_content(event),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{ics_filename(event.title)}"'},
    )
