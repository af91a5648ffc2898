"""Concurrent writers against the same request.

Each writer holds its own session with a copy of the request loaded before
the other one commits. Decisions reload the row under lock, so different
departments both succeed; a raw save of a stale copy is refused by the
version check and leaves nothing behind.
"""
from datetime import datetime, timezone

import pytest

from clearance.errors import ConflictError
from clearance.models.clearance_request import ClearanceRequest, EntryStatus, OverallStatus
from clearance.services import approval_service, request_store
from clearance.services.identity import Staff, Student
from tests.conftest import open_request, register_user, setup_campus


def _staff(campus, department_name, user=None):
    user = user or campus["staff"][department_name]
    return Staff(
        user_id=user["user"]["user_id"],
        department_id=campus["departments"][department_name]["department_id"],
    )


def _dept_id(campus, department_name):
    return campus["departments"][department_name]["department_id"]


class TestConcurrentDecisions:
    """Decisions racing on copies loaded before the other writer committed."""

    def test_cross_department_decisions_both_succeed(self, client, session_factory):
        campus = setup_campus(client)
        request_id = open_request(client, campus["student"])["request_id"]

        s1, s2 = session_factory(), session_factory()
        try:
            first_copy = request_store.load(s1, request_id)
            held = request_store.load(s2, request_id)
            assert first_copy.version == held.version == 1

            approval_service.record_decision(s1, request_id, _staff(campus, "Accounts"), "approved")
            updated = approval_service.record_decision(s2, request_id, _staff(campus, "Hostel"), "approved")

            assert updated is held
            statuses = {e.department.name: e.status for e in updated.entries}
            assert statuses == {
                "Accounts": EntryStatus.approved,
                "Hostel": EntryStatus.approved,
                "Library": EntryStatus.pending,
            }
            assert updated.overall_status == OverallStatus.in_progress
            assert updated.version == 3
        finally:
            s1.close()
            s2.close()

    def test_last_two_departments_finalize_together(self, client, session_factory):
        """The overall status is recomputed from committed entries, not the stale copy."""
        campus = setup_campus(client, department_names=("Hostel", "Library"))
        request_id = open_request(client, campus["student"])["request_id"]

        s1, s2 = session_factory(), session_factory()
        try:
            first_copy = request_store.load(s1, request_id)
            held = request_store.load(s2, request_id)

            approval_service.record_decision(s1, request_id, _staff(campus, "Hostel"), "approved")
            assert first_copy.overall_status == OverallStatus.in_progress

            updated = approval_service.record_decision(s2, request_id, _staff(campus, "Library"), "approved")
            assert updated is held
            assert updated.overall_status == OverallStatus.approved
            assert updated.final_approval_at is not None
        finally:
            s1.close()
            s2.close()

    def test_same_department_race_second_fails(self, client, session_factory):
        campus = setup_campus(client)
        request_id = open_request(client, campus["student"])["request_id"]
        colleague = register_user(client, "Library Helper", role="staff", department_name="Library")

        s1, s2 = session_factory(), session_factory()
        try:
            first_copy = request_store.load(s1, request_id)
            held = request_store.load(s2, request_id)
            assert held.entry_for(_dept_id(campus, "Library")).status == EntryStatus.pending

            approval_service.record_decision(s1, request_id, _staff(campus, "Library"), "approved")
            with pytest.raises(ConflictError, match="already processed"):
                approval_service.record_decision(
                    s2, request_id, _staff(campus, "Library", colleague), "rejected", "overdue books",
                )
            assert first_copy.version == 2
        finally:
            s1.close()
            s2.close()

        s3 = session_factory()
        try:
            stored = request_store.load(s3, request_id)
            entry = stored.entry_for(_dept_id(campus, "Library"))
            assert entry.status == EntryStatus.approved
            assert entry.comment == ""
            assert entry.approved_by_id == campus["staff"]["Library"]["user"]["user_id"]
            assert stored.overall_status == OverallStatus.in_progress
            assert stored.version == 2
        finally:
            s3.close()


class TestVersionCheck:
    """Conditional save keyed on the version the writer loaded."""

    def test_stale_copy_save_refused(self, client, session_factory):
        campus = setup_campus(client)
        request_id = open_request(client, campus["student"])["request_id"]

        s1, s2 = session_factory(), session_factory()
        try:
            held = request_store.load(s2, request_id)
            approval_service.record_decision(s1, request_id, _staff(campus, "Accounts"), "approved")

            # Write a Hostel rejection onto the copy loaded at version 1
            now = datetime.now(timezone.utc)
            entry = held.entry_for(_dept_id(campus, "Hostel"))
            entry.status = EntryStatus.rejected
            entry.comment = "room damage"
            entry.approved_by_id = campus["staff"]["Hostel"]["user"]["user_id"]
            entry.decided_at = now
            approval_service.apply_overall_status(held, now)

            with pytest.raises(ConflictError, match="modified concurrently"):
                request_store.save(s2, held, expected_version=1)
        finally:
            s1.close()
            s2.close()

        s3 = session_factory()
        try:
            stored = request_store.load(s3, request_id)
            hostel = stored.entry_for(_dept_id(campus, "Hostel"))
            assert hostel.status == EntryStatus.pending
            assert hostel.comment == ""
            assert hostel.approved_by_id is None
            assert stored.entry_for(_dept_id(campus, "Accounts")).status == EntryStatus.approved
            assert stored.overall_status == OverallStatus.in_progress
            assert stored.version == 2
        finally:
            s3.close()

    def test_save_with_wrong_expected_version(self, client, db):
        campus = setup_campus(client)
        request_id = open_request(client, campus["student"])["request_id"]
        request = request_store.load(db, request_id)
        with pytest.raises(ConflictError):
            request_store.save(db, request, expected_version=request.version + 1)


class TestActiveRequestIndex:
    """The partial unique index backs up the one-active-request check."""

    def test_second_active_insert_refused(self, client, db):
        campus = setup_campus(client)
        student_id = campus["student"]["user"]["user_id"]
        request_store.insert(db, ClearanceRequest(student_id=student_id, overall_status=OverallStatus.pending))

        with pytest.raises(ConflictError):
            request_store.insert(
                db, ClearanceRequest(student_id=student_id, overall_status=OverallStatus.in_progress),
            )

    def test_finished_requests_do_not_count(self, client, db):
        campus = setup_campus(client)
        student_id = campus["student"]["user"]["user_id"]
        for status in (OverallStatus.approved, OverallStatus.rejected, OverallStatus.pending):
            request_store.insert(db, ClearanceRequest(student_id=student_id, overall_status=status))

        caller = Student(user_id=student_id)
        assert len(approval_service.list_for_student(db, caller)) == 3
