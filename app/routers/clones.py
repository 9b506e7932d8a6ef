from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.deps import get_db
from app.core.permissions import require_staff
from app.models.clone import Clone
from app.models.user import User
from app.schemas.clone import (
    CloneAnalysisUpdate,
    CloneAssign,
    CloneCreate,
    CloneRead,
    CloneReview,
    CloneStatusUpdate,
    VersionedAction,
)
from app.services import clone_status, clones

router = APIRouter()


def _clone_out(clone: Clone, viewer: User) -> dict:
    view = clone_status.derive_view(clone.status, source=f"clone {clone.id}")

    # students only see instructor feedback once the status surfaces it
    feedback = clone.feedback
    if viewer.role == "student" and not view["show_feedback"]:
        feedback = None

    assigned = clone.assigned_to
    return {
        "id": clone.id,
        "clone_name": clone.clone_name,
        "kind": clone.kind,
        "status": clone.status,
        "assigned_to_id": clone.assigned_to_id,
        "assigned_to_name": (assigned.full_name or assigned.email) if assigned else None,
        "analysis": clone.analysis,
        "feedback": feedback,
        "reviewed_at": clone.reviewed_at,
        "version": clone.version,
        "created_at": clone.created_at,
        "updated_at": clone.updated_at,
        "view": view,
    }


@router.get("", response_model=list[CloneRead])
def list_clones(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return [_clone_out(c, me) for c in clones.list_clones(db, me)]


@router.post("", response_model=CloneRead, status_code=status.HTTP_201_CREATED)
def create_clone(
    payload: CloneCreate,
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    clone = clones.create_clone(db, me, payload.clone_name, payload.kind)
    return _clone_out(clone, me)


@router.get("/review-queue", response_model=list[CloneRead])
def review_queue(
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    return [_clone_out(c, me) for c in clones.review_queue(db, me)]


@router.get("/{clone_id}", response_model=CloneRead)
def get_clone(
    clone_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return _clone_out(clones.get_visible_clone(db, me, clone_id), me)


@router.delete("/{clone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_clone(
    clone_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    clones.delete_clone(db, me, clone_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{clone_id}/assign", response_model=CloneRead)
def assign_clone(
    clone_id: int,
    payload: CloneAssign,
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    clone = clones.assign_clone(db, me, clone_id, payload.student_id, payload.expected_version)
    return _clone_out(clone, me)


@router.post("/{clone_id}/unassign", response_model=CloneRead)
def unassign_clone(
    clone_id: int,
    payload: VersionedAction | None = None,
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    expected = payload.expected_version if payload else None
    return _clone_out(clones.unassign_clone(db, me, clone_id, expected), me)


@router.post("/{clone_id}/submit", response_model=CloneRead)
def submit_clone(
    clone_id: int,
    payload: VersionedAction | None = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    expected = payload.expected_version if payload else None
    return _clone_out(clones.submit_clone(db, me, clone_id, expected), me)


@router.post("/{clone_id}/reopen", response_model=CloneRead)
def reopen_clone(
    clone_id: int,
    payload: VersionedAction | None = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    expected = payload.expected_version if payload else None
    return _clone_out(clones.reopen_clone(db, me, clone_id, expected), me)


@router.put("/{clone_id}/analysis", response_model=CloneRead)
def save_analysis(
    clone_id: int,
    payload: CloneAnalysisUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    clone = clones.save_analysis(db, me, clone_id, payload.analysis, payload.expected_version)
    return _clone_out(clone, me)


@router.post("/{clone_id}/review", response_model=CloneRead)
def review_clone(
    clone_id: int,
    payload: CloneReview,
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    clone = clones.review_clone(
        db,
        me,
        clone_id,
        payload.decision,
        feedback=payload.feedback,
        expected_version=payload.expected_version,
    )
    return _clone_out(clone, me)


@router.patch("/{clone_id}/status", response_model=CloneRead)
def change_status(
    clone_id: int,
    payload: CloneStatusUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    clone = clones.change_status(db, me, clone_id, payload.status, payload.expected_version)
    return _clone_out(clone, me)
