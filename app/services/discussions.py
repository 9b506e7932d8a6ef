"""
Discussion threads and unread tracking.

Each thread has one student and is read by two sides: the student, and staff
(the student's school instructors plus every director). Unread counts live in
one DiscussionReadState row per (thread, side) and are only changed here:

- post_message bumps the thread's `last_seq`, stores the message with that
  seq, and increments the counter of the other side, in one transaction.
- mark_read moves the side's read point to a committed seq and recounts the
  counterpart messages after it.

Both take the thread row's write lock before reading anything they count, so
they are serialized per thread. SELECT ... FOR UPDATE is a no-op on SQLite, so
the lock is taken with a write to the row (see _lock_thread).
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import (
    GENERAL_DISCUSSION_TITLE,
    MESSAGE_MAX_LENGTH,
    MESSAGE_PREVIEW_LENGTH,
)
from app.core.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from app.models.clone import Clone
from app.models.discussion import SIDES, Discussion, DiscussionMessage, DiscussionReadState
from app.models.user import User

logger = logging.getLogger(__name__)

Notifier = Callable[[DiscussionMessage], None]


def side_for(user: User) -> str:
    return "student" if user.role == "student" else "staff"


def _is_participant(discussion: Discussion, user: User) -> bool:
    if user.role == "director":
        return True
    if user.role == "instructor":
        return user.school_id is not None and discussion.student.school_id == user.school_id
    return discussion.student_id == user.id


def _ensure_participant(discussion: Discussion, user: User) -> None:
    if not _is_participant(discussion, user):
        raise AuthorizationError("Not a participant in this discussion")


def _scoped_query(db: Session, user: User, *entities):
    q = db.query(*(entities or (Discussion,)))
    q = q.select_from(Discussion).join(User, Discussion.student_id == User.id)
    if user.role == "director":
        return q
    if user.role == "instructor":
        return q.filter(User.school_id == user.school_id)
    return q.filter(Discussion.student_id == user.id)


def get_discussion(db: Session, discussion_id: int) -> Discussion:
    discussion = db.query(Discussion).filter(Discussion.id == discussion_id).first()
    if not discussion:
        raise NotFoundError("Discussion", discussion_id)
    return discussion


def _load_for_update(db: Session, discussion_id: int) -> Discussion:
    discussion = (
        db.query(Discussion).filter(Discussion.id == discussion_id).with_for_update().first()
    )
    if not discussion:
        raise NotFoundError("Discussion", discussion_id)
    return discussion


def _lock_thread(db: Session, discussion: Discussion) -> None:
    # a no-op write holds the row (and on SQLite the database) until commit
    db.query(Discussion).filter(Discussion.id == discussion.id).update(
        {Discussion.last_seq: Discussion.last_seq}, synchronize_session=False
    )
    db.refresh(discussion, ["last_seq"])


def _read_state(db: Session, discussion_id: int, side: str) -> DiscussionReadState:
    state = (
        db.query(DiscussionReadState)
        .filter(
            DiscussionReadState.discussion_id == discussion_id,
            DiscussionReadState.side == side,
        )
        .with_for_update()
        .first()
    )
    if state is None:
        state = DiscussionReadState(discussion_id=discussion_id, side=side, unread_count=0, last_read_seq=0)
        db.add(state)
        db.flush()
    return state


def _create_discussion(db: Session, student: User, title: str, clone: Clone | None = None) -> Discussion:
    discussion = Discussion(
        student_id=student.id,
        clone_id=clone.id if clone else None,
        title=title,
        last_seq=0,
    )
    discussion.read_states = [
        DiscussionReadState(side=side, unread_count=0, last_read_seq=0) for side in SIDES
    ]
    db.add(discussion)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(discussion)
    logger.info("Discussion %s created for student %s", discussion.id, student.id)
    return discussion


def _resolve_student(db: Session, actor: User, student_id: int | None) -> User:
    if actor.role == "student":
        if student_id is not None and student_id != actor.id:
            raise AuthorizationError("Students can only open their own discussions")
        return actor

    if student_id is None:
        raise ValidationError("student_id is required")
    student = db.query(User).filter(User.id == student_id).first()
    if not student or student.role != "student":
        raise NotFoundError("Student", student_id)
    if actor.role == "instructor" and student.school_id != actor.school_id:
        raise AuthorizationError("Student belongs to another school")
    return student


def get_or_create_general(db: Session, actor: User, student_id: int | None = None) -> Discussion:
    student = _resolve_student(db, actor, student_id)
    existing = (
        db.query(Discussion)
        .filter(Discussion.student_id == student.id, Discussion.clone_id.is_(None))
        .order_by(Discussion.id.asc())
        .first()
    )
    if existing:
        return existing
    return _create_discussion(db, student, GENERAL_DISCUSSION_TITLE)


def get_or_create_for_clone(db: Session, actor: User, clone_id: int) -> Discussion:
    clone = db.query(Clone).filter(Clone.id == clone_id).first()
    if not clone:
        raise NotFoundError("Clone", clone_id)
    if clone.assigned_to is None:
        raise ValidationError("Clone is not assigned to a student")

    student = _resolve_student(db, actor, clone.assigned_to_id)
    existing = (
        db.query(Discussion)
        .filter(Discussion.student_id == student.id, Discussion.clone_id == clone.id)
        .first()
    )
    if existing:
        return existing
    return _create_discussion(db, student, clone.clone_name, clone=clone)


def post_message(
    db: Session,
    discussion_id: int,
    sender: User,
    content: str,
    notify: Notifier | None = None,
) -> DiscussionMessage:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message content must not be empty")
    if len(text) > MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message content is longer than {MESSAGE_MAX_LENGTH} characters"
        )

    discussion = _load_for_update(db, discussion_id)
    _ensure_participant(discussion, sender)

    side = side_for(sender)
    now = datetime.now(timezone.utc)

    # increment in SQL so the seq is taken under the row's write lock
    discussion.last_seq = Discussion.last_seq + 1
    discussion.last_message_at = now
    db.flush()
    db.refresh(discussion, ["last_seq"])

    message = DiscussionMessage(
        discussion_id=discussion.id,
        sender_id=sender.id,
        sender_side=side,
        content=text,
        seq=discussion.last_seq,
        created_at=now,
    )
    db.add(message)

    for other in SIDES:
        if other != side:
            _read_state(db, discussion.id, other)
    (
        db.query(DiscussionReadState)
        .filter(
            DiscussionReadState.discussion_id == discussion.id,
            DiscussionReadState.side != side,
        )
        .update(
            {DiscussionReadState.unread_count: DiscussionReadState.unread_count + 1},
            synchronize_session=False,
        )
    )

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent post to discussion %s rejected", discussion_id)
        raise ConcurrencyConflictError("Discussion", discussion_id)
    except Exception:
        db.rollback()
        raise

    db.refresh(message)
    logger.info(
        "Message %s (seq %s) posted to discussion %s by user %s",
        message.id,
        message.seq,
        discussion_id,
        sender.id,
    )

    if notify is not None:
        try:
            notify(message)
        except Exception:
            # notifications are best effort; the message is already committed
            logger.exception("Notification for message %s failed", message.id)

    return message


def _count_unread(db: Session, discussion_id: int, side: str, after_seq: int) -> int:
    return (
        db.query(func.count(DiscussionMessage.id))
        .filter(
            DiscussionMessage.discussion_id == discussion_id,
            DiscussionMessage.sender_side != side,
            DiscussionMessage.seq > after_seq,
        )
        .scalar()
    ) or 0


def mark_read(
    db: Session,
    discussion_id: int,
    viewer: User,
    up_to_seq: int | None = None,
) -> DiscussionReadState:
    """
    Move the viewer side's read point to `up_to_seq` (default: the latest
    committed message) and recount what is left. The read point never moves
    backwards, so calling this repeatedly is harmless.
    """
    discussion = _load_for_update(db, discussion_id)
    _ensure_participant(discussion, viewer)

    side = side_for(viewer)
    _lock_thread(db, discussion)
    state = _read_state(db, discussion.id, side)

    high = discussion.last_seq
    point = high if up_to_seq is None else max(0, min(up_to_seq, high))
    point = max(point, state.last_read_seq)

    state.last_read_seq = point
    try:
        state.unread_count = _count_unread(db, discussion.id, side, point)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(state)
    return state


def unread_count(db: Session, discussion_id: int, viewer: User) -> int:
    state = (
        db.query(DiscussionReadState)
        .filter(
            DiscussionReadState.discussion_id == discussion_id,
            DiscussionReadState.side == side_for(viewer),
        )
        .first()
    )
    return state.unread_count if state else 0


def list_messages(db: Session, discussion_id: int, viewer: User) -> list[DiscussionMessage]:
    discussion = get_discussion(db, discussion_id)
    _ensure_participant(discussion, viewer)
    return (
        db.query(DiscussionMessage)
        .filter(DiscussionMessage.discussion_id == discussion_id)
        .order_by(DiscussionMessage.seq.asc())
        .all()
    )


def _preview(message: DiscussionMessage | None) -> dict | None:
    if message is None:
        return None
    preview = message.content
    if len(preview) > MESSAGE_PREVIEW_LENGTH:
        preview = preview[:MESSAGE_PREVIEW_LENGTH].rstrip() + "..."
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "content": message.content,
        "preview": preview,
        "seq": message.seq,
        "created_at": message.created_at,
    }


def list_threads_for_user(db: Session, user: User) -> list[dict]:
    side = side_for(user)
    threads = (
        _scoped_query(db, user)
        .order_by(
            func.coalesce(Discussion.last_message_at, Discussion.created_at).desc(),
            Discussion.id.desc(),
        )
        .all()
    )

    result: list[dict] = []
    for d in threads:
        last_message = (
            db.query(DiscussionMessage)
            .filter(DiscussionMessage.discussion_id == d.id)
            .order_by(DiscussionMessage.seq.desc())
            .first()
        )
        state = next((s for s in d.read_states if s.side == side), None)

        result.append(
            {
                "id": d.id,
                "title": d.title,
                "student_id": d.student_id,
                "student_name": d.student.full_name or d.student.email,
                "clone_id": d.clone_id,
                "is_general": d.clone_id is None,
                "unread_count": state.unread_count if state else 0,
                "message_count": d.last_seq,
                "last_message": _preview(last_message),
                "last_message_at": d.last_message_at,
                "created_at": d.created_at,
            }
        )

    return result


def total_unread(db: Session, user: User) -> int:
    total = (
        _scoped_query(db, user, func.sum(DiscussionReadState.unread_count))
        .join(DiscussionReadState, DiscussionReadState.discussion_id == Discussion.id)
        .filter(DiscussionReadState.side == side_for(user))
        .scalar()
    )
    return int(total or 0)


def delete_thread(db: Session, discussion_id: int, requester: User) -> None:
    discussion = get_discussion(db, discussion_id)
    if not requester.is_staff or not _is_participant(discussion, requester):
        raise AuthorizationError("Only instructors or directors of this discussion can delete it")

    db.delete(discussion)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Discussion %s deleted by user %s", discussion_id, requester.id)
