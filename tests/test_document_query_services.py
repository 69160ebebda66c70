import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from doctrack.errors import Forbidden, NotFound
from doctrack.models.document import (
    Document,
    DocumentPriority,
    DocumentStatus,
    RejectionReason,
    WorkflowStage,
)
from doctrack.models.user import Role
from doctrack.schemas.document import DocumentForward, DocumentReject
from doctrack.services.document_query import document_queries
from doctrack.services.document_workflow import document_workflow


def _archive(db_session, *documents):
    db_session.execute(
        update(Document)
        .where(Document.id.in_([d.id for d in documents]))
        .values(archived_at=datetime.now(timezone.utc))
    )
    db_session.commit()


class TestListForViewer:
    def test_items_carry_stage_and_forward_flag(
        self, db_session, instructor, dean, vpaa, actor_for, submit
    ):
        plain = submit(instructor, priority=DocumentPriority.HIGH)
        forwarded = submit(instructor)
        document_workflow.forward(
            db_session,
            actor_for(dean),
            forwarded.id,
            DocumentForward(target_user_ids=[vpaa.id]),
        )
        items = {
            item.id: item
            for item in document_queries.list_for_viewer(db_session, actor_for(vpaa))
        }
        assert items[plain.id].workflow_stage == WorkflowStage.INSTRUCTOR
        assert items[plain.id].is_forwarded is False
        assert items[plain.id].priority == "High"
        assert items[plain.id].status == "Pending"
        assert items[plain.id].category == "Syllabus"
        assert items[forwarded.id].workflow_stage == WorkflowStage.DEAN
        assert items[forwarded.id].is_forwarded is True
        assert items[forwarded.id].submitted_by == instructor.full_name

    def test_newest_first(self, db_session, instructor, actor_for, submit):
        first = submit(instructor)
        second = submit(instructor)
        items = document_queries.list_for_viewer(db_session, actor_for(instructor))
        assert [i.id for i in items] == [second.id, first.id]

    def test_archived_documents_stay_listed(
        self, db_session, instructor, dean, actor_for, submit
    ):
        doc = submit(instructor)
        document_workflow.approve(db_session, actor_for(dean), doc.id)
        _archive(db_session, doc)
        items = document_queries.list_for_viewer(db_session, actor_for(instructor))
        assert [i.id for i in items] == [doc.id]


class TestGetForViewer:
    def test_owner(self, db_session, instructor, actor_for, submit):
        doc = submit(instructor)
        assert document_queries.get_for_viewer(
            db_session, actor_for(instructor), doc.id
        ).id == doc.id

    def test_stranger_forbidden(self, db_session, make_user, instructor, actor_for, submit):
        doc = submit(instructor)
        with pytest.raises(Forbidden):
            document_queries.get_for_viewer(
                db_session, actor_for(make_user(Role.INSTRUCTOR)), doc.id
            )

    def test_repository_participant(
        self, db_session, instructor, dean, actor_for, submit
    ):
        doc = submit(instructor)
        document_workflow.approve(db_session, actor_for(dean), doc.id)
        # Not listed for the dean, but they took part in the approval.
        assert document_queries.get_for_viewer(
            db_session, actor_for(dean), doc.id
        ).id == doc.id

    def test_missing(self, db_session, instructor, actor_for):
        with pytest.raises(NotFound):
            document_queries.get_for_viewer(
                db_session, actor_for(instructor), uuid.uuid4()
            )


class TestTracking:
    def test_by_reference(self, db_session, instructor, dean, vpaa, actor_for, submit):
        doc = submit(instructor, priority=DocumentPriority.LOW)
        document_workflow.forward(
            db_session,
            actor_for(dean),
            doc.id,
            DocumentForward(target_user_ids=[vpaa.id]),
        )
        tracking = document_queries.tracking_by_reference(db_session, doc.reference_id)
        assert tracking.document.id == doc.id
        assert tracking.document.title == "Syllabus"
        assert tracking.document.priority == "Low"
        assert tracking.document.status == "Pending"
        assert tracking.document.current_location == "Dean's Office"
        assert tracking.document.department == "College of Engineering"
        assert tracking.document.attachments == [doc.attachment]
        assert [h.action for h in tracking.history] == [
            "Forwarded to Next Office",
            "Document Created & Submitted",
        ]
        assert tracking.history[0].is_active is True

    def test_unassigned_department(self, db_session, make_user, submit):
        loose = make_user(Role.INSTRUCTOR)
        doc = submit(loose)
        tracking = document_queries.tracking_by_reference(db_session, doc.reference_id)
        assert tracking.document.department == "Unassigned"

    def test_unknown_reference(self, db_session):
        with pytest.raises(NotFound):
            document_queries.tracking_by_reference(db_session, "DOC-000-0000")


class TestApprovedRepository:
    def test_only_approved(self, db_session, instructor, dean, actor_for, submit):
        approved = submit(instructor, remarks="Final grades")
        submit(instructor)
        rejected = submit(instructor)
        document_workflow.approve(db_session, actor_for(dean), approved.id)
        document_workflow.reject(
            db_session,
            actor_for(dean),
            rejected.id,
            DocumentReject(reason=RejectionReason.OTHER),
        )
        docs = document_queries.approved_repository(db_session, actor_for(instructor))
        assert [d.id for d in docs] == [approved.id]
        assert docs[0].title == "Final grades"
        assert docs[0].status == "Approved"
        assert docs[0].attachments == [approved.attachment]


class TestArchivedForViewer:
    def test_documents_and_analytics(
        self, db_session, make_category, instructor, dean, actor_for, submit
    ):
        report = make_category("Report")
        high = submit(instructor, priority=DocumentPriority.HIGH)
        low = submit(instructor, priority=DocumentPriority.LOW, file_category_id=report.id)
        live = submit(instructor)
        for doc in (high, low, live):
            document_workflow.approve(db_session, actor_for(dean), doc.id)
        _archive(db_session, high, low)

        result = document_queries.archived_for_viewer(db_session, actor_for(dean))
        assert {d.id for d in result.documents} == {high.id, low.id}
        assert all(d.status == "Archived" for d in result.documents)
        assert result.analytics.total == 2
        assert result.analytics.high_priority == 1
        assert result.analytics.low_priority == 1
        assert result.analytics.medium_priority == 0
        assert result.analytics.unique_categories == 2
        assert result.analytics.latest_archived_at is not None

    def test_instructor_sees_only_own(
        self, db_session, make_user, instructor, dean, actor_for, submit
    ):
        other = make_user(Role.INSTRUCTOR)
        mine = submit(instructor)
        theirs = submit(other)
        for doc in (mine, theirs):
            document_workflow.approve(db_session, actor_for(dean), doc.id)
        _archive(db_session, mine, theirs)
        result = document_queries.archived_for_viewer(db_session, actor_for(instructor))
        assert [d.id for d in result.documents] == [mine.id]

    def test_empty(self, db_session, instructor, actor_for):
        result = document_queries.archived_for_viewer(db_session, actor_for(instructor))
        assert result.documents == []
        assert result.analytics.total == 0
        assert result.analytics.latest_archived_at is None


class TestDashboardSummary:
    def test_counts(self, db_session, instructor, dean, actor_for, submit):
        pending = submit(instructor, priority=DocumentPriority.HIGH)
        approved = submit(instructor)
        rejected = submit(instructor)
        document_workflow.approve(db_session, actor_for(dean), approved.id)
        document_workflow.reject(
            db_session,
            actor_for(dean),
            rejected.id,
            DocumentReject(reason=RejectionReason.INVALID_DETAILS),
        )
        summary = document_queries.dashboard_summary(db_session, actor_for(instructor))
        assert summary.total_submitted == 3
        assert summary.pending == 1
        assert summary.approved == 1
        assert summary.rejected == 1
        assert summary.high_priority == 1
        assert summary.action_required == 1
        assert len(summary.recent_documents) == 3
        assert [d.id for d in summary.pending_documents] == [pending.id]
        assert summary.category_breakdown[0].category == "Syllabus"
        assert summary.category_breakdown[0].count == 3
        assert len(summary.monthly_activity) == 6
        assert summary.monthly_activity[-1].count == 3
        assert summary.monthly_activity[-1].label == datetime.now(timezone.utc).strftime("%b")
        assert summary.team_performance == []

    def test_dean_team_performance(
        self, db_session, make_user, instructor, dean, actor_for, submit
    ):
        colleague = make_user(Role.INSTRUCTOR, instructor.designation, first_name="Ana")
        submit(instructor)
        submit(instructor)
        doc = submit(colleague)
        document_workflow.approve(db_session, actor_for(dean), doc.id)

        summary = document_queries.dashboard_summary(db_session, actor_for(dean))
        assert summary.total_submitted == 3
        team = {member.id: member for member in summary.team_performance}
        assert set(team) == {instructor.id, colleague.id, dean.id}
        assert team[instructor.id].total == 2
        assert team[instructor.id].pending == 2
        assert team[colleague.id].approved == 1
        assert team[dean.id].total == 0
        assert summary.team_performance[0].id == instructor.id

    def test_recent_limit(self, db_session, instructor, actor_for, submit):
        for _ in range(7):
            submit(instructor)
        summary = document_queries.dashboard_summary(db_session, actor_for(instructor))
        assert summary.total_submitted == 7
        assert len(summary.recent_documents) == 5

    def test_unscoped_roles(self, db_session, make_user, instructor, hr, actor_for, submit):
        other = make_user(Role.INSTRUCTOR)
        submit(instructor)
        submit(other)
        summary = document_queries.dashboard_summary(db_session, actor_for(hr))
        assert summary.total_submitted == 2
        assert {m.id for m in summary.team_performance} == {instructor.id, other.id}


class TestSnapshot:
    def test_pending_at_dean(self, db_session, instructor, dean, vpaa, actor_for, submit):
        doc = submit(instructor)
        document_workflow.forward(
            db_session,
            actor_for(dean),
            doc.id,
            DocumentForward(target_user_ids=[vpaa.id]),
        )
        snapshot = document_queries.snapshot(db_session, doc)
        assert snapshot.current_stage == WorkflowStage.DEAN
        assert snapshot.status == DocumentStatus.PENDING
        assert [s.status.value for s in snapshot.steps] == [
            "Completed",
            "Pending",
            "Waiting",
            "Waiting",
        ]


class TestTimeline:
    def test_missing_document(self, db_session):
        with pytest.raises(NotFound):
            document_queries.timeline(db_session, uuid.uuid4())

    def test_recent_entries_first(
        self, db_session, instructor, dean, actor_for, submit
    ):
        doc = submit(instructor)
        document_workflow.approve(
            db_session, actor_for(dean), doc.id, remarks="Signed"
        )
        timeline = document_queries.timeline(db_session, doc.id)
        assert [t.action for t in timeline] == [
            "Approved",
            "Document Created & Submitted",
        ]
        assert timeline[0].description == "Signed"
        assert timeline[0].performed_by == dean.full_name
