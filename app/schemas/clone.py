from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CloneCreate(BaseModel):
    clone_name: str = Field(min_length=1, max_length=255)
    kind: str = "research"  # "research" | "practice"


class VersionedAction(BaseModel):
    # when set, the write is refused if the clone changed since it was read
    expected_version: Optional[int] = None


class CloneAssign(VersionedAction):
    student_id: int


class CloneStatusUpdate(VersionedAction):
    status: str


class CloneReview(VersionedAction):
    decision: str  # "approved" | "rejected"
    feedback: Optional[str] = None


class CloneAnalysisUpdate(VersionedAction):
    analysis: str


class StatusConfig(BaseModel):
    icon: str
    color: str
    title: str
    message: str
    show_refresh: bool
    show_feedback_button: bool


class StatusView(BaseModel):
    status: Optional[str]
    is_known: bool
    editable: bool
    read_only: bool
    review_ready: bool
    show_feedback: bool
    progress: float
    review_label: Optional[str] = None
    config: StatusConfig


class CloneRead(BaseModel):
    id: int
    clone_name: str
    kind: str
    status: Optional[str]
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = None
    analysis: Optional[str] = None
    feedback: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    view: StatusView
