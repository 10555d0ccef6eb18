import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .time_utils import ensure_utc, utcnow

ALARM_MINUTES_BEFORE = 15


@dataclass
class CalendarEvent:
    title: str
    description: str
    location: str
    start_time: datetime
    end_time: datetime
    url: str


def format_ics_datetime(dt: datetime) -> str:
    return ensure_utc(dt).strftime("%Y%m%dT%H%M%SZ")


def escape_ics_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def generate_uid() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(5)}@stevenzeiler.com"


def generate_ics_content(event: CalendarEvent, now: Optional[datetime] = None) -> str:
    """
    Build a VCALENDAR payload with a single VEVENT and a display alarm
    fifteen minutes before the start.
    """
    description = escape_ics_text(f"{event.description}\n\nJoin the class: {event.url}")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//StevenZeiler//YogaClasses//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{generate_uid()}",
        f"DTSTAMP:{format_ics_datetime(now or utcnow())}",
        f"DTSTART:{format_ics_datetime(event.start_time)}",
        f"DTEND:{format_ics_datetime(event.end_time)}",
        f"SUMMARY:{escape_ics_text(event.title)}",
        f"DESCRIPTION:{description}",
        f"LOCATION:{escape_ics_text(event.location or 'Online')}",
        f"URL:{event.url}",
        "STATUS:CONFIRMED",
        "SEQUENCE:0",
        "BEGIN:VALARM",
        "ACTION:DISPLAY",
        f"DESCRIPTION:Reminder: Your yoga class is starting in {ALARM_MINUTES_BEFORE} minutes",
        f"TRIGGER:-PT{ALARM_MINUTES_BEFORE}M",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines)


def class_url(site_url: str, class_id: str) -> str:
    return f"{site_url}/yoga/scheduled?classId={class_id}"


def build_class_event(scheduled_class, site_url: str, default_instructor: str = "Steven Zeiler") -> CalendarEvent:
    class_type = scheduled_class.yoga_class_type
    start = ensure_utc(scheduled_class.scheduled_start_time)
    end = start + timedelta(minutes=class_type.duration_minutes)
    description = class_type.description or (
        f"Join this {class_type.duration_minutes}-minute yoga class with "
        f"{class_type.instructor or default_instructor}."
    )
    return CalendarEvent(
        title=f"Yoga Class: {class_type.name}",
        description=description,
        location="Online",
        start_time=start,
        end_time=end,
        url=class_url(site_url, scheduled_class.id),
    )


def ics_filename(title: str) -> str:
    cleaned = re.sub(r"[^\w\s]", "", title)
    return re.sub(r"\s+", "_", cleaned) + ".ics"
