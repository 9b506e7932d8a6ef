import pytest

from app.core.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models.clone import Clone
from app.models.user import User
from app.services import clone_status as cs
from app.services import clones
from tests.conftest import TestingSessionLocal, auth_header, login


def test_assign_then_direct_approval_is_illegal(db, users, seed):
    instructor, student = users["instructor"], users["student"]

    clone = clones.assign_clone(db, instructor, seed["clone"], student.id)
    assert clone.status == cs.BEING_WORKED_ON
    assert clone.assigned_to_id == student.id

    with pytest.raises(IllegalTransitionError) as exc:
        clones.change_status(db, instructor, seed["clone"], cs.REVIEWED_CORRECT)
    assert exc.value.details["from"] == cs.BEING_WORKED_ON
    assert exc.value.details["to"] == cs.REVIEWED_CORRECT

    db.expire_all()
    assert db.get(Clone, seed["clone"]).status == cs.BEING_WORKED_ON


def test_rejection_unlocks_student_and_shows_feedback(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clones.assign_clone(db, instructor, seed["clone"], student.id)

    clone = clones.submit_clone(db, student, seed["clone"])
    assert clone.status == cs.COMPLETED_WAITING_REVIEW
    assert cs.derive_read_only(clone.status)

    clone = clones.review_clone(db, instructor, seed["clone"], "rejected", feedback="Check the primer trim")
    assert clone.status == cs.NEEDS_REANALYSIS
    assert clone.feedback == "Check the primer trim"
    assert cs.derive_show_feedback(clone.status) is True
    assert cs.derive_read_only(clone.status) is False

    clone = clones.submit_clone(db, student, seed["clone"])
    assert clone.status == cs.CORRECTED_WAITING_REVIEW


def test_review_requires_waiting_status(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clones.assign_clone(db, instructor, seed["clone"], student.id)

    with pytest.raises(IllegalTransitionError):
        clones.review_clone(db, instructor, seed["clone"], "approved", feedback="too early")

    # the refused review leaves nothing pending on the row
    clone = db.get(Clone, seed["clone"])
    assert not db.is_modified(clone)
    assert clone.feedback is None
    assert clone.reviewed_at is None

    db.expire_all()
    clone = db.get(Clone, seed["clone"])
    assert clone.status == cs.BEING_WORKED_ON
    assert clone.feedback is None


def test_assigned_clone_cannot_be_deleted(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clones.assign_clone(db, instructor, seed["clone"], student.id)

    with pytest.raises(AuthorizationError):
        clones.delete_clone(db, instructor, seed["clone"])

    clones.unassign_clone(db, instructor, seed["clone"])
    clones.delete_clone(db, instructor, seed["clone"])

    with pytest.raises(NotFoundError):
        clones.get_clone(db, seed["clone"])


def test_unassign_returns_clone_to_pool(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clones.assign_clone(db, instructor, seed["clone"], student.id)

    clone = clones.unassign_clone(db, instructor, seed["clone"])
    assert clone.status == cs.UNASSIGNED
    assert clone.assigned_to_id is None


def test_student_cannot_edit_while_waiting_review(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clones.assign_clone(db, instructor, seed["clone"], student.id)
    clones.save_analysis(db, student, seed["clone"], "BLAST hit: pUC19")
    clones.submit_clone(db, student, seed["clone"])

    with pytest.raises(AuthorizationError):
        clones.save_analysis(db, student, seed["clone"], "sneaky edit")

    clones.review_clone(db, instructor, seed["clone"], "approved")
    clone = clones.save_analysis(db, student, seed["clone"], "follow-up notes")
    assert clone.analysis == "follow-up notes"
    assert clone.status == cs.REVIEWED_CORRECT


def test_only_assigned_student_can_submit(db, users, seed):
    clones.assign_clone(db, users["instructor"], seed["clone"], users["student"].id)

    with pytest.raises(AuthorizationError):
        clones.submit_clone(db, users["other_student"], seed["clone"])
    with pytest.raises(AuthorizationError):
        clones.submit_clone(db, users["instructor"], seed["clone"])


def test_reopen_after_approval_resubmits_as_corrected(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clones.assign_clone(db, instructor, seed["clone"], student.id)
    clones.submit_clone(db, student, seed["clone"])
    clones.review_clone(db, instructor, seed["clone"], "approved")

    clone = clones.reopen_clone(db, student, seed["clone"])
    assert clone.status == cs.BEING_WORKED_ON

    clone = clones.submit_clone(db, student, seed["clone"])
    assert clone.status == cs.CORRECTED_WAITING_REVIEW


def test_create_clone_initial_status(db, users):
    director = users["director"]
    research = clones.create_clone(db, director, "pGEM-T 202")
    practice = clones.create_clone(db, director, "Practice 2", kind="practice")
    assert research.status == cs.UNASSIGNED
    assert practice.status == cs.AVAILABLE

    with pytest.raises(ValidationError):
        clones.create_clone(db, director, "x", kind="plasmid")
    with pytest.raises(AuthorizationError):
        clones.create_clone(db, users["student"], "mine")


def test_practice_clone_assignment(db, users, seed):
    clone = clones.assign_clone(db, users["instructor"], seed["practice_clone"], users["student"].id)
    assert clone.status == cs.BEING_WORKED_ON


def test_instructor_cannot_assign_other_school_student(db, users, seed):
    with pytest.raises(AuthorizationError):
        clones.assign_clone(db, users["instructor"], seed["clone"], users["other_student"].id)


def test_change_status_rejects_unknown_status(db, users, seed):
    with pytest.raises(ValidationError):
        clones.change_status(db, users["director"], seed["clone"], "Shipped")


def test_expected_version_mismatch_is_a_conflict(db, users, seed):
    instructor, student = users["instructor"], users["student"]
    clone = clones.assign_clone(db, instructor, seed["clone"], student.id)
    stale_version = clone.version - 1

    with pytest.raises(ConcurrencyConflictError):
        clones.submit_clone(db, student, seed["clone"], expected_version=stale_version)

    clone = clones.submit_clone(db, student, seed["clone"], expected_version=clone.version)
    assert clone.status == cs.COMPLETED_WAITING_REVIEW


def test_racing_reviews_do_not_both_succeed(seed):
    setup = TestingSessionLocal()
    try:
        instructor = setup.get(User, seed["instructor"])
        student = setup.get(User, seed["student"])
        clones.assign_clone(setup, instructor, seed["clone"], student.id)
        clones.submit_clone(setup, student, seed["clone"])
    finally:
        setup.close()

    first = TestingSessionLocal()
    second = TestingSessionLocal()
    try:
        # both reviewers read the clone while it is waiting review
        first.get(Clone, seed["clone"])
        second.get(Clone, seed["clone"])

        clones.review_clone(first, first.get(User, seed["instructor"]), seed["clone"], "approved")

        # the loser either trips the version check or sees the new status
        with pytest.raises((ConcurrencyConflictError, IllegalTransitionError)):
            clones.review_clone(
                second, second.get(User, seed["director"]), seed["clone"], "rejected", feedback="redo"
            )
    finally:
        first.close()
        second.close()

    check = TestingSessionLocal()
    try:
        clone = check.get(Clone, seed["clone"])
        assert clone.status == cs.REVIEWED_CORRECT
        assert clone.feedback is None
    finally:
        check.close()


def test_review_queue_scoped_by_school(db, users, seed):
    clones.assign_clone(db, users["instructor"], seed["clone"], users["student"].id)
    clones.submit_clone(db, users["student"], seed["clone"])

    queue = clones.review_queue(db, users["instructor"])
    assert [c.id for c in queue] == [seed["clone"]]
    assert clones.review_queue(db, users["other_instructor"]) == []
    assert [c.id for c in clones.review_queue(db, users["director"])] == [seed["clone"]]


# --- HTTP ---


def test_clone_lifecycle_over_http(client, seed):
    instructor = login(client, "instructor@lincoln.edu")
    student = login(client, "student@lincoln.edu")
    clone_id = seed["clone"]

    r = client.post(
        f"/clones/{clone_id}/assign",
        headers=auth_header(instructor),
        json={"student_id": seed["student"]},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == cs.BEING_WORKED_ON
    assert body["view"]["editable"] is True
    assert body["view"]["progress"] == 0.25

    r = client.post(f"/clones/{clone_id}/submit", headers=auth_header(student))
    assert r.status_code == 200, r.text
    assert r.json()["view"]["read_only"] is True

    r = client.put(
        f"/clones/{clone_id}/analysis",
        headers=auth_header(student),
        json={"analysis": "edit while locked"},
    )
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_AUTHORIZED"

    r = client.get("/clones/review-queue", headers=auth_header(instructor))
    assert r.status_code == 200
    assert [c["id"] for c in r.json()] == [clone_id]
    assert r.json()[0]["view"]["review_label"] == "pending"

    r = client.post(
        f"/clones/{clone_id}/review",
        headers=auth_header(instructor),
        json={"decision": "approved", "feedback": "Nice trace reading"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == cs.REVIEWED_CORRECT

    r = client.get(f"/clones/{clone_id}", headers=auth_header(student))
    assert r.json()["feedback"] == "Nice trace reading"
    assert r.json()["view"]["progress"] == 1.0

    # back to work: feedback is hidden again for the student
    r = client.post(f"/clones/{clone_id}/reopen", headers=auth_header(student))
    assert r.status_code == 200, r.text
    assert r.json()["feedback"] is None


def test_illegal_transition_returns_409_with_pair(client, seed):
    director = login(client, "director@program.edu")
    r = client.patch(
        f"/clones/{seed['clone']}/status",
        headers=auth_header(director),
        json={"status": cs.REVIEWED_CORRECT},
    )
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "ILLEGAL_TRANSITION"
    assert body["details"] == {"from": cs.UNASSIGNED, "to": cs.REVIEWED_CORRECT}


def test_unknown_status_returns_422(client, seed):
    director = login(client, "director@program.edu")
    r = client.patch(
        f"/clones/{seed['clone']}/status",
        headers=auth_header(director),
        json={"status": "Finished"},
    )
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_delete_assigned_clone_over_http(client, seed):
    director = login(client, "director@program.edu")
    client.post(
        f"/clones/{seed['clone']}/assign",
        headers=auth_header(director),
        json={"student_id": seed["student"]},
    )

    r = client.delete(f"/clones/{seed['clone']}", headers=auth_header(director))
    assert r.status_code == 403

    r = client.delete(f"/clones/{seed['practice_clone']}", headers=auth_header(director))
    assert r.status_code == 204


def test_student_cannot_create_clone(client):
    student = login(client, "student@lincoln.edu")
    r = client.post("/clones", headers=auth_header(student), json={"clone_name": "mine"})
    assert r.status_code == 403


def test_student_lists_only_own_clones(client, seed):
    director = login(client, "director@program.edu")
    client.post(
        f"/clones/{seed['clone']}/assign",
        headers=auth_header(director),
        json={"student_id": seed["student"]},
    )

    student = login(client, "student@lincoln.edu")
    r = client.get("/clones", headers=auth_header(student))
    assert [c["id"] for c in r.json()] == [seed["clone"]]

    other = login(client, "student@other.edu")
    assert client.get("/clones", headers=auth_header(other)).json() == []
    r = client.get(f"/clones/{seed['clone']}", headers=auth_header(other))
    assert r.status_code == 403


def test_missing_clone_is_404(client):
    director = login(client, "director@program.edu")
    r = client.get("/clones/9999", headers=auth_header(director))
    assert r.status_code == 404
    assert r.json()["code"] == "CLONE_NOT_FOUND"


def test_status_catalog(client):
    r = client.get("/clone-statuses")
    assert r.status_code == 200
    body = r.json()
    assert body["statuses"] == list(cs.ALL_STATUSES)
    assert body["transitions"][cs.UNASSIGNED] == [cs.BEING_WORKED_ON]
    assert body["aliases"] == {cs.NEEDS_CORRECTIONS: cs.NEEDS_REANALYSIS}
    assert body["configs"][cs.REVIEWED_CORRECT]["title"] == "Analysis Approved"
    assert cs.NEEDS_CORRECTIONS not in [o["value"] for o in body["dropdown_options"]]
