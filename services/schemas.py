"""Read models returned by the services."""

from typing import Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict


class SubmissionRecord(BaseModel):
    """One homework photo."""
    model_config = ConfigDict(from_attributes=True)

    submission_id: str
    photo: bytes
    uploaded_at: datetime
    uploaded_by: str
    subject_name: Optional[str] = None
    day_name: Optional[str] = None


class SubjectEntry(BaseModel):
    """Subject with the homework filed under it."""
    model_config = ConfigDict(from_attributes=True)

    subject_name: str
    submissions: List[SubmissionRecord] = Field(default_factory=list)


class DaySchedule(BaseModel):
    """Ordered subjects of one weekday."""
    model_config = ConfigDict(from_attributes=True)

    day_name: str
    subjects: List[SubjectEntry] = Field(default_factory=list)


class UserRecord(BaseModel):
    """User without the schedule payload."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    username: Optional[str] = None
    is_guardian: bool = False
    created_at: datetime


class HomeworkStatus(BaseModel):
    """Per-day partition of a student's subjects."""
    completed: List[str] = Field(default_factory=list)
    incomplete: List[str] = Field(default_factory=list)
    submissions: Dict[str, List[SubmissionRecord]] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.completed and not self.incomplete
