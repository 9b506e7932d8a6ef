from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.core.permissions import require_staff
from app.models.clone import Clone
from app.models.user import User
from app.schemas.instructor_dashboard import InstructorDashboard
from app.services import clone_status, clones, discussions

router = APIRouter(tags=["instructor"])


@router.get("/instructor/dashboard", response_model=InstructorDashboard)
def instructor_dashboard(
    db: Session = Depends(get_db),
    me: User = Depends(require_staff),
):
    scoped = clones.list_clones(db, me)
    scoped_ids = [c.id for c in scoped]

    rows = (
        db.query(Clone.status, func.count(Clone.id))
        .filter(Clone.id.in_(scoped_ids))
        .group_by(Clone.status)
        .all()
    )
    status_counts = {(s if s else "None"): int(n) for s, n in rows}

    pending = 0
    resubmitted = 0
    for c in scoped:
        label = clone_status.review_queue_label(c.status)
        if label == "pending":
            pending += 1
        elif label == "resubmitted":
            resubmitted += 1

    return InstructorDashboard(
        total_clones=len(scoped),
        unassigned_clones=sum(1 for c in scoped if c.assigned_to_id is None),
        status_counts=status_counts,
        pending_review=pending,
        resubmitted_review=resubmitted,
        unread_messages=discussions.total_unread(db, me),
    )
