from fastapi import APIRouter

from app.schemas.status import StatusCatalog
from app.services import clone_status

router = APIRouter()


@router.get("/clone-statuses", response_model=StatusCatalog)
def status_catalog():
    """Everything a client needs to render statuses without hardcoding them."""
    return {
        "statuses": list(clone_status.ALL_STATUSES),
        "transitions": {k: list(v) for k, v in clone_status.STATUS_TRANSITIONS.items()},
        "aliases": dict(clone_status.ALIASES),
        "review_actions": dict(clone_status.REVIEW_ACTIONS),
        "dropdown_options": clone_status.dropdown_options(),
        "configs": {s: clone_status.status_config(s) for s in clone_status.ALL_STATUSES},
    }
