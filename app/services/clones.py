"""
Clone lifecycle operations.

Every status write in the application goes through `_apply_transition`, which
checks the transition table in app.services.clone_status first. Rows are read
with SELECT ... FOR UPDATE where the backend supports it, and the Clone mapper
carries a version counter, so two racing writers cannot both commit: the loser
gets ConcurrencyConflictError and the row keeps the winner's status.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from app.models.clone import CLONE_KINDS, Clone
from app.models.user import User
from app.services import clone_status

logger = logging.getLogger(__name__)


def _ensure_staff(actor: User) -> None:
    if not actor.is_staff:
        raise AuthorizationError("Instructor or director role required")


def _in_scope(actor: User, clone: Clone) -> bool:
    """Directors see everything; instructors see their school's clones and unassigned ones."""
    if actor.role == "director":
        return True
    if actor.role == "instructor":
        return clone.assigned_to is None or clone.assigned_to.school_id == actor.school_id
    return clone.assigned_to_id == actor.id


def _ensure_in_scope(actor: User, clone: Clone) -> None:
    if not _in_scope(actor, clone):
        raise AuthorizationError("Clone is outside your scope")


def _scoped_query(db: Session, actor: User):
    q = db.query(Clone).outerjoin(User, Clone.assigned_to_id == User.id)
    if actor.role == "director":
        return q
    if actor.role == "instructor":
        return q.filter(or_(Clone.assigned_to_id.is_(None), User.school_id == actor.school_id))
    return q.filter(Clone.assigned_to_id == actor.id)


def get_clone(db: Session, clone_id: int) -> Clone:
    clone = db.query(Clone).filter(Clone.id == clone_id).first()
    if not clone:
        raise NotFoundError("Clone", clone_id)
    return clone


def get_visible_clone(db: Session, actor: User, clone_id: int) -> Clone:
    clone = get_clone(db, clone_id)
    _ensure_in_scope(actor, clone)
    return clone


def _load_for_update(db: Session, clone_id: int, expected_version: int | None = None) -> Clone:
    clone = db.query(Clone).filter(Clone.id == clone_id).with_for_update().first()
    if not clone:
        raise NotFoundError("Clone", clone_id)
    if expected_version is not None and clone.version != expected_version:
        logger.warning(
            "Clone %s version mismatch: expected %s, found %s",
            clone_id,
            expected_version,
            clone.version,
        )
        raise ConcurrencyConflictError("Clone", clone_id)
    return clone


def _commit(db: Session, clone: Clone) -> Clone:
    clone_id = clone.id
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("Concurrent update on clone %s rejected", clone_id)
        raise ConcurrencyConflictError("Clone", clone_id)
    except Exception:
        db.rollback()
        raise

    db.refresh(clone)
    return clone


def _apply_transition(db: Session, clone: Clone, target: str, actor: User, **changes) -> Clone:
    previous = clone.status
    clone_status.ensure_transition(previous, target)

    # nothing is touched on the row until the move is known to be legal
    for field, value in changes.items():
        setattr(clone, field, value)
    clone.status = target
    if target in (clone_status.UNASSIGNED, clone_status.AVAILABLE):
        clone.assigned_to_id = None

    _commit(db, clone)
    logger.info(
        "Clone %s status %r -> %r by user %s", clone.id, previous, target, actor.id
    )
    return clone


def list_clones(db: Session, actor: User) -> list[Clone]:
    return _scoped_query(db, actor).order_by(Clone.id.asc()).all()


def create_clone(db: Session, actor: User, clone_name: str, kind: str = "research") -> Clone:
    _ensure_staff(actor)

    if kind not in CLONE_KINDS:
        raise ValidationError(f"Unknown clone kind '{kind}'", details={"valid": list(CLONE_KINDS)})
    name = (clone_name or "").strip()
    if not name:
        raise ValidationError("Clone name must not be empty")

    initial = clone_status.AVAILABLE if kind == "practice" else clone_status.UNASSIGNED
    # creation is a move out of the unset status
    clone_status.ensure_transition(None, initial)

    clone = Clone(clone_name=name, kind=kind, status=initial)
    db.add(clone)
    _commit(db, clone)

    logger.info("Clone %s (%s) created by user %s", clone.id, kind, actor.id)
    return clone


def assign_clone(
    db: Session,
    actor: User,
    clone_id: int,
    student_id: int,
    expected_version: int | None = None,
) -> Clone:
    _ensure_staff(actor)
    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_in_scope(actor, clone)

    student = db.query(User).filter(User.id == student_id).first()
    if not student:
        raise NotFoundError("User", student_id)
    if student.role != "student":
        raise ValidationError("Clones can only be assigned to students")
    if actor.role == "instructor" and student.school_id != actor.school_id:
        raise AuthorizationError("Student belongs to another school")
    if clone.assigned_to_id is not None and clone.assigned_to_id != student.id:
        raise ValidationError("Clone is already assigned; unassign it first")
    return _apply_transition(
        db, clone, clone_status.BEING_WORKED_ON, actor, assigned_to_id=student.id
    )


def unassign_clone(
    db: Session,
    actor: User,
    clone_id: int,
    expected_version: int | None = None,
) -> Clone:
    _ensure_staff(actor)
    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_in_scope(actor, clone)
    return _apply_transition(db, clone, clone_status.UNASSIGNED, actor)


def _ensure_assigned_student(actor: User, clone: Clone) -> None:
    if actor.role != "student" or clone.assigned_to_id != actor.id:
        raise AuthorizationError("Only the assigned student can do this")


def submit_clone(
    db: Session,
    actor: User,
    clone_id: int,
    expected_version: int | None = None,
) -> Clone:
    """Send the student's analysis for review.

    First submissions wait as "completed"; anything already reviewed once
    comes back as "corrected".
    """
    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_assigned_student(actor, clone)

    current = clone_status.canonical(clone.status)
    if current == clone_status.NEEDS_REANALYSIS or clone.reviewed_at is not None:
        target = clone_status.CORRECTED_WAITING_REVIEW
    else:
        target = clone_status.COMPLETED_WAITING_REVIEW
    return _apply_transition(db, clone, target, actor)


def reopen_clone(
    db: Session,
    actor: User,
    clone_id: int,
    expected_version: int | None = None,
) -> Clone:
    """Student goes back to work on a reviewed clone."""
    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_assigned_student(actor, clone)
    return _apply_transition(db, clone, clone_status.BEING_WORKED_ON, actor)


def save_analysis(
    db: Session,
    actor: User,
    clone_id: int,
    analysis: str,
    expected_version: int | None = None,
) -> Clone:
    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_assigned_student(actor, clone)
    if not clone_status.derive_editable(clone.status):
        raise AuthorizationError("Clone is locked while it waits for review")

    clone.analysis = analysis
    return _commit(db, clone)


def review_clone(
    db: Session,
    actor: User,
    clone_id: int,
    decision: str,
    feedback: str | None = None,
    expected_version: int | None = None,
) -> Clone:
    _ensure_staff(actor)
    target = clone_status.review_action(decision)

    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_in_scope(actor, clone)
    return _apply_transition(
        db,
        clone,
        target,
        actor,
        feedback=feedback,
        reviewed_at=datetime.now(timezone.utc),
    )


def change_status(
    db: Session,
    actor: User,
    clone_id: int,
    target: str,
    expected_version: int | None = None,
) -> Clone:
    """Manual status override from the director/instructor clone library."""
    _ensure_staff(actor)
    clone = _load_for_update(db, clone_id, expected_version)
    _ensure_in_scope(actor, clone)

    if target == clone_status.BEING_WORKED_ON and clone.assigned_to_id is None:
        raise ValidationError("Assign a student before starting work on a clone")
    return _apply_transition(db, clone, target, actor)


def delete_clone(db: Session, actor: User, clone_id: int) -> None:
    _ensure_staff(actor)
    clone = _load_for_update(db, clone_id)
    _ensure_in_scope(actor, clone)

    if clone.assigned_to_id is not None:
        raise AuthorizationError(
            "Cannot delete a clone while it is assigned to a student; unassign it first"
        )

    db.delete(clone)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Clone %s deleted by user %s", clone_id, actor.id)


def review_queue(db: Session, actor: User) -> list[Clone]:
    _ensure_staff(actor)
    return (
        _scoped_query(db, actor)
        .filter(Clone.status.in_(clone_status.REVIEW_READY))
        .order_by(Clone.updated_at.asc(), Clone.id.asc())
        .all()
    )
