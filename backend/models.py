from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base


def now():
    return datetime.now(timezone.utc)


CLASS_STATUSES = ("scheduled", "in-progress", "completed", "cancelled")
ATTENDANCE_STATUSES = ("registered", "attended", "no-show")


class ClassType(Base):
    __tablename__ = "yoga_class_types"
    id = Column(String, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), default=now, onupdate=now)
    name = Column(String, nullable=False)
    description = Column(Text)
    duration_minutes = Column(Integer, nullable=False)
    audio_url = Column(String, nullable=False)
    cover_image_url = Column(String)
    yoga_type = Column(String, nullable=False, default="hatha")
    instructor = Column(String)
    active = Column(Boolean, nullable=False, default=True)
    scheduled_classes = relationship("ScheduledClass", back_populates="yoga_class_type")


class ScheduledClass(Base):
    __tablename__ = "yoga_scheduled_classes"
    id = Column(String, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), default=now, onupdate=now)
    class_type_id = Column(String, ForeignKey("yoga_class_types.id"), nullable=False)
    scheduled_start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    recurrence = Column(String)
    recurrence_end_date = Column(DateTime(timezone=True))
    max_participants = Column(Integer)
    current_participants = Column(Integer, nullable=False, default=0)
    notes = Column(Text)
    created_by = Column(String)
    status = Column(String, nullable=False, default="scheduled")
    zoom_link = Column(String)
    is_public = Column(Boolean, nullable=False, default=True)
    yoga_class_type = relationship("ClassType", back_populates="scheduled_classes", lazy="joined")
    participants = relationship("Participant", back_populates="scheduled_class", cascade="all, delete-orphan")


class Participant(Base):
    __tablename__ = "yoga_class_participants"
    id = Column(String, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=now)
    scheduled_class_id = Column(String, ForeignKey("yoga_scheduled_classes.id"), nullable=False)
    user_id = Column(String)
    user_email = Column(String)
    user_name = Column(String)
    attendance_status = Column(String, nullable=False, default="registered")
    feedback = Column(Text)
    rating = Column(Integer)
    scheduled_class = relationship("ScheduledClass", back_populates="participants")


class PostureAudioRecording(Base):
    __tablename__ = "posture_audio_recordings"
    id = Column(String, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), default=now, onupdate=now)
    posture_id = Column(String, nullable=False, index=True)
    series = Column(String, nullable=False, default="bikram-26")
    language = Column(String, nullable=False, default="en")
    title = Column(String, nullable=False)
    description = Column(Text)
    audio_url = Column(String, nullable=False)
    script_text = Column(Text)
    is_default = Column(Boolean, nullable=False, default=False)
    created_by = Column(String)
