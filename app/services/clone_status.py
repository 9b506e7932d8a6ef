"""
Clone status workflow.

Single source of truth for the closed set of clone statuses, the legal
transitions between them and every predicate the UI renders from. Nothing
here touches the database; app.services.clones applies these rules to rows.

Statuses are stored as their display labels (the values below), so a row
read straight from the database can be passed to any function here.
"""

import logging

from app.core.errors import IllegalTransitionError, ValidationError

logger = logging.getLogger(__name__)

# Student working states
UNASSIGNED = "Unassigned"
AVAILABLE = "Available"  # practice clones
BEING_WORKED_ON = "Being worked on by student"

# Submission states
COMPLETED_WAITING_REVIEW = "Completed, waiting review by staff"
CORRECTED_WAITING_REVIEW = "Corrected by student, waiting review"

# Review states
NEEDS_REANALYSIS = "Reviewed, needs to be reanalyzed"
NEEDS_CORRECTIONS = "Needs corrections from student"  # alias of NEEDS_REANALYSIS
REVIEWED_CORRECT = "Reviewed and Correct"

ALL_STATUSES = (
    UNASSIGNED,
    AVAILABLE,
    BEING_WORKED_ON,
    COMPLETED_WAITING_REVIEW,
    CORRECTED_WAITING_REVIEW,
    NEEDS_REANALYSIS,
    NEEDS_CORRECTIONS,
    REVIEWED_CORRECT,
)

# NEEDS_CORRECTIONS is kept readable for existing rows but never written.
# Predicates treat it like its canonical status; it has no transitions of its
# own, so every move in or out of it is illegal.
ALIASES = {NEEDS_CORRECTIONS: NEEDS_REANALYSIS}

STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    UNASSIGNED: (BEING_WORKED_ON,),
    AVAILABLE: (BEING_WORKED_ON,),
    BEING_WORKED_ON: (COMPLETED_WAITING_REVIEW, CORRECTED_WAITING_REVIEW, UNASSIGNED),
    COMPLETED_WAITING_REVIEW: (NEEDS_REANALYSIS, REVIEWED_CORRECT),
    NEEDS_REANALYSIS: (CORRECTED_WAITING_REVIEW, BEING_WORKED_ON),
    CORRECTED_WAITING_REVIEW: (NEEDS_REANALYSIS, REVIEWED_CORRECT),
    REVIEWED_CORRECT: (BEING_WORKED_ON,),
}

STUDENT_EDITABLE = frozenset(
    {
        BEING_WORKED_ON,
        NEEDS_REANALYSIS,
        NEEDS_CORRECTIONS,
        UNASSIGNED,
        AVAILABLE,
        REVIEWED_CORRECT,  # approval does not freeze the analysis
    }
)
READ_ONLY = frozenset({COMPLETED_WAITING_REVIEW, CORRECTED_WAITING_REVIEW})
REVIEW_READY = frozenset({COMPLETED_WAITING_REVIEW, CORRECTED_WAITING_REVIEW})
SHOW_FEEDBACK = frozenset({NEEDS_REANALYSIS, NEEDS_CORRECTIONS, REVIEWED_CORRECT})

PROGRESS_WEIGHTS = {
    UNASSIGNED: 0.0,
    AVAILABLE: 0.0,
    BEING_WORKED_ON: 0.25,
    NEEDS_REANALYSIS: 0.5,
    NEEDS_CORRECTIONS: 0.5,
    COMPLETED_WAITING_REVIEW: 0.75,
    CORRECTED_WAITING_REVIEW: 0.75,
    REVIEWED_CORRECT: 1.0,
}

REVIEW_QUEUE_LABELS = {
    COMPLETED_WAITING_REVIEW: "pending",
    CORRECTED_WAITING_REVIEW: "resubmitted",
}

REVIEW_ACTIONS = {
    "approved": REVIEWED_CORRECT,
    "rejected": NEEDS_REANALYSIS,
}

# Statuses a director may pick by hand (still subject to STATUS_TRANSITIONS)
DROPDOWN_STATUSES = (
    BEING_WORKED_ON,
    COMPLETED_WAITING_REVIEW,
    NEEDS_REANALYSIS,
    CORRECTED_WAITING_REVIEW,
    REVIEWED_CORRECT,
)


def _config(icon, color, title, message, show_refresh=False, show_feedback_button=False):
    return {
        "icon": icon,
        "color": color,
        "title": title,
        "message": message,
        "show_refresh": show_refresh,
        "show_feedback_button": show_feedback_button,
    }


_REVISIONS_REQUESTED = _config(
    "RefreshCw",
    "orange",
    "Revisions Requested",
    "Your instructor has reviewed your work and requested changes. "
    "Check the feedback below and update your analysis.",
    show_feedback_button=True,
)

STATUS_CONFIGS = {
    COMPLETED_WAITING_REVIEW: _config(
        "Clock",
        "yellow",
        "Submitted for Review",
        "Your analysis has been submitted and is waiting for instructor review.",
        show_refresh=True,
    ),
    NEEDS_REANALYSIS: _REVISIONS_REQUESTED,
    NEEDS_CORRECTIONS: _REVISIONS_REQUESTED,
    REVIEWED_CORRECT: _config(
        "CheckCircle",
        "green",
        "Analysis Approved",
        "Congratulations! Your analysis has been reviewed and approved by your instructor.",
        show_feedback_button=True,
    ),
    CORRECTED_WAITING_REVIEW: _config(
        "Clock",
        "purple",
        "Resubmitted for Review",
        "Your corrections have been submitted and are waiting for instructor review.",
        show_refresh=True,
    ),
    BEING_WORKED_ON: _config(
        "Clock",
        "blue",
        "In Progress",
        "Student is currently working on this analysis.",
    ),
    UNASSIGNED: _config(
        "AlertCircle",
        "gray",
        "Unassigned",
        "This clone has not been assigned to a student yet.",
    ),
    AVAILABLE: _config(
        "AlertCircle",
        "gray",
        "Available",
        "This practice clone is available for student analysis.",
    ),
}


def _is_unset(status: str | None) -> bool:
    return status is None or status == ""


def is_valid_status(status: str | None) -> bool:
    return _is_unset(status) or status in ALL_STATUSES


def canonical(status: str | None) -> str | None:
    return ALIASES.get(status, status)


def can_transition(from_status: str | None, to_status: str | None) -> bool:
    """Whether the table allows moving a clone from `from_status` to `to_status`.

    Any move out of an unset status is legal (a clone being created).
    Self-transitions are never legal.
    """
    if _is_unset(from_status):
        return True
    if not is_valid_status(to_status):
        return False
    return to_status in STATUS_TRANSITIONS.get(from_status, ())


def ensure_transition(from_status: str | None, to_status: str | None) -> None:
    """Raise unless `can_transition(from_status, to_status)`."""
    if _is_unset(to_status) or to_status not in ALL_STATUSES:
        raise ValidationError(
            f"Unknown status '{to_status}'",
            details={"status": to_status, "valid": list(ALL_STATUSES)},
        )
    if not can_transition(from_status, to_status):
        raise IllegalTransitionError(from_status, to_status)


def derive_editable(status: str | None) -> bool:
    return _is_unset(status) or status in STUDENT_EDITABLE


def derive_read_only(status: str | None) -> bool:
    return status in READ_ONLY


def derive_review_ready(status: str | None) -> bool:
    return status in REVIEW_READY


def derive_show_feedback(status: str | None) -> bool:
    return status in SHOW_FEEDBACK


def progress_weight(status: str | None) -> float:
    """Display-only progress in [0, 1]; unset and unknown statuses count as 0."""
    return PROGRESS_WEIGHTS.get(status, 0.0)


def review_action(decision: str) -> str:
    try:
        return REVIEW_ACTIONS[decision]
    except KeyError:
        raise ValidationError(
            f"Unknown review decision '{decision}'",
            details={"decision": decision, "valid": sorted(REVIEW_ACTIONS)},
        ) from None


def review_queue_label(status: str | None) -> str | None:
    return REVIEW_QUEUE_LABELS.get(status)


def status_config(status: str | None, source: str = "unknown") -> dict:
    """
    Display config for a status. Never raises: an unrecognized value gets an
    "Unknown Status" config carrying the raw value, and one warning is logged.
    """
    config = STATUS_CONFIGS.get(status)
    if config is not None:
        return dict(config)

    if not _is_unset(status):
        logger.warning(
            "Invalid clone status %r seen in %s; valid statuses are %s",
            status,
            source,
            ALL_STATUSES,
        )
    return _config("AlertCircle", "gray", "Unknown Status", f"Status: {status}")


def derive_view(status: str | None, source: str = "unknown") -> dict:
    """Everything a client renders for a status, computed in one place."""
    return {
        "status": status,
        "is_known": is_valid_status(status),
        "editable": derive_editable(status),
        "read_only": derive_read_only(status),
        "review_ready": derive_review_ready(status),
        "show_feedback": derive_show_feedback(status),
        "progress": progress_weight(status),
        "review_label": review_queue_label(status),
        "config": status_config(status, source=source),
    }


def dropdown_options() -> list[dict]:
    return [{"value": s, "label": s} for s in DROPDOWN_STATUSES]
