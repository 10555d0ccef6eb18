import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..config import DEFAULT_INSTRUCTOR, SITE_URL
from ..database import get_db
from ..services import yoga_service
from ..services.email_service import send_email_with_ics, smtp_configured
from ..utils.ics_utils import build_class_event, generate_ics_content, ics_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduled-classes/{class_id}/participants", tags=["participants"])


@router.post("/", response_model=schemas.ParticipantOut, status_code=201)
async def register_participant(
    class_id: str,
    payload: schemas.ParticipantCreate,
    db: Session = Depends(get_db),
):
    try:
        participant = yoga_service.register_for_class(
            db,
            class_id,
            user_id=payload.user_id,
            user_email=payload.user_email,
            user_name=payload.user_name,
        )
    except yoga_service.ClassNotFoundError as e:
        raise HTTPException(404, str(e))
    except yoga_service.ClassFullError as e:
        raise HTTPException(409, str(e))
    except yoga_service.SchedulingError as e:
        raise HTTPException(400, str(e))

    if participant.user_email and smtp_configured():
        event = build_class_event(participant.scheduled_class, SITE_URL, DEFAULT_INSTRUCTOR)
        try:
            await send_email_with_ics(
                [participant.user_email],
                f"You're registered: {event.title}",
                f"{event.description}\n\nJoin the class: {event.url}",
                generate_ics_content(event),
                ics_filename(event.title),
            )
        except Exception:
            # registration already committed; the invite is a courtesy
            logger.exception("Failed to email calendar invite for participant %s", participant.id)
    return participant
