from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class MessageCreate(BaseModel):
    content: str


class MessageRead(BaseModel):
    id: int
    discussion_id: int
    sender_id: Optional[int]
    sender_side: str
    content: str
    seq: int
    created_at: datetime

    class Config:
        from_attributes = True


class MessagePreview(BaseModel):
    id: int
    sender_id: Optional[int]
    content: str
    # shortened content for thread lists
    preview: str
    seq: int
    created_at: datetime


class DiscussionRead(BaseModel):
    id: int
    title: str
    student_id: int
    clone_id: Optional[int] = None
    last_seq: int
    last_message_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DiscussionSummary(BaseModel):
    id: int
    title: str
    student_id: int
    student_name: str
    clone_id: Optional[int] = None
    is_general: bool
    unread_count: int
    message_count: int
    last_message: Optional[MessagePreview] = None
    last_message_at: Optional[datetime] = None
    created_at: datetime


class DiscussionMessages(BaseModel):
    discussion: DiscussionRead
    messages: list[MessageRead]
    unread_count: int


class MarkReadRequest(BaseModel):
    # read up to this message seq; defaults to the latest message
    up_to_seq: Optional[int] = None


class ReadStateRead(BaseModel):
    discussion_id: int
    side: str
    unread_count: int
    last_read_seq: int

    class Config:
        from_attributes = True
