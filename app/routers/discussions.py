from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.deps import get_db
from app.models.user import User
from app.schemas.discussion import (
    DiscussionMessages,
    DiscussionRead,
    DiscussionSummary,
    MarkReadRequest,
    MessageCreate,
    MessageRead,
    ReadStateRead,
)
from app.services import discussions

router = APIRouter()


@router.get("", response_model=list[DiscussionSummary])
def list_discussions(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return discussions.list_threads_for_user(db, me)


@router.get("/unread-count")
def unread_total(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return {"unread_count": discussions.total_unread(db, me)}


@router.get("/general", response_model=DiscussionRead)
def general_discussion(
    student_id: int | None = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return discussions.get_or_create_general(db, me, student_id)


@router.get("/clone/{clone_id}", response_model=DiscussionRead)
def clone_discussion(
    clone_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return discussions.get_or_create_for_clone(db, me, clone_id)


@router.get("/{discussion_id}/messages", response_model=DiscussionMessages)
def list_messages(
    discussion_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    messages = discussions.list_messages(db, discussion_id, me)
    return {
        "discussion": discussions.get_discussion(db, discussion_id),
        "messages": messages,
        "unread_count": discussions.unread_count(db, discussion_id, me),
    }


@router.post(
    "/{discussion_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
def post_message(
    discussion_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return discussions.post_message(db, discussion_id, me, payload.content)


@router.patch("/{discussion_id}/mark-read", response_model=ReadStateRead)
def mark_read(
    discussion_id: int,
    payload: MarkReadRequest | None = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    up_to_seq = payload.up_to_seq if payload else None
    return discussions.mark_read(db, discussion_id, me, up_to_seq)


@router.delete("/{discussion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_discussion(
    discussion_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    discussions.delete_thread(db, discussion_id, me)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
