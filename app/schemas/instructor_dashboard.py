from pydantic import BaseModel


class InstructorDashboard(BaseModel):
    total_clones: int
    unassigned_clones: int
    status_counts: dict[str, int]
    pending_review: int
    resubmitted_review: int
    unread_messages: int
