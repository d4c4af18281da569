"""SQLAlchemy models for database."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, LargeBinary,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """A chat user: student, guardian or both."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), unique=True, nullable=False)
    username = Column(String(64), index=True)  # stored without the leading "@"
    is_guardian = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    schedule = relationship(
        "ScheduleDay",
        back_populates="user",
        order_by="ScheduleDay.position",
        cascade="all, delete-orphan",
    )
    contacts = relationship("Contact", back_populates="guardian", cascade="all, delete-orphan")


class ScheduleDay(Base):
    """One weekday of a user's weekly schedule."""
    __tablename__ = "schedule_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_pk = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    day_name = Column(String(16), nullable=False)

    # Relationships
    user = relationship("User", back_populates="schedule")
    subjects = relationship(
        "Subject",
        back_populates="day",
        order_by="Subject.position",
        cascade="all, delete-orphan",
    )

    # A second concurrent template install collides here
    __table_args__ = (UniqueConstraint("user_pk", "position"),)


class Subject(Base):
    """A lesson on a schedule day."""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day_id = Column(Integer, ForeignKey("schedule_days.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    subject_name = Column(String(128), nullable=False)

    # Relationships
    day = relationship("ScheduleDay", back_populates="subjects")
    submissions = relationship(
        "Submission",
        back_populates="subject",
        order_by="Submission.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (UniqueConstraint("day_id", "position"),)


class Submission(Base):
    """A homework photo appended to a subject."""
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    submission_id = Column(String(255), nullable=False, index=True)
    photo = Column(LargeBinary, nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)
    uploaded_by = Column(String(32), nullable=False)

    # Relationships
    subject = relationship("Subject", back_populates="submissions")

    __table_args__ = (Index("ix_submissions_uploaded_at", "uploaded_at"),)


class Contact(Base):
    """Guardian -> watched student handle."""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    guardian_pk = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    student_handle = Column(String(65), nullable=False)  # canonical "@name"
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    guardian = relationship("User", back_populates="contacts")

    __table_args__ = (UniqueConstraint("guardian_pk", "student_handle"),)
