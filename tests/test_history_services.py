from datetime import date

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from doctrack.db import Base
from doctrack.models.document import (
    DocumentHistory,
    DocumentHistoryAction,
    DocumentPriority,
    DocumentStatus,
    LedgerImmutableError,
    RejectionReason,
    WorkflowStage,
)
from doctrack.models.user import FileCategory, Role, User
from doctrack.schemas.document import DocumentSubmit
from doctrack.services.document_workflow import document_workflow
from doctrack.services.history import build_timeline, history_ledger
from doctrack.services.session import Actor


class TestHistoryLedger:
    def test_submit_writes_first_entry(self, db_session, instructor, submit):
        doc = submit(instructor)
        entries = history_ledger.entries(db_session, doc.id)
        assert len(entries) == 1
        assert entries[0].sequence == 1
        assert entries[0].action == DocumentHistoryAction.SUBMITTED
        assert entries[0].stage == WorkflowStage.INSTRUCTOR
        assert entries[0].status == DocumentStatus.PENDING

    def test_append_increments_sequence(self, db_session, instructor, dean, submit):
        doc = submit(instructor)
        entry = history_ledger.append(
            db_session,
            doc.id,
            DocumentHistoryAction.COMMENTED,
            DocumentStatus.PENDING,
            "Comment added",
            stage=WorkflowStage.DEAN,
            performed_by_id=dean.id,
        )
        db_session.commit()
        assert entry.sequence == 2
        latest = history_ledger.latest(db_session, doc.id)
        assert latest.id == entry.id

    def test_entries_are_newest_first(self, db_session, instructor, submit):
        doc = submit(instructor)
        for _ in range(3):
            history_ledger.append(
                db_session,
                doc.id,
                DocumentHistoryAction.COMMENTED,
                DocumentStatus.PENDING,
                "Comment added",
            )
        db_session.commit()
        sequences = [e.sequence for e in history_ledger.entries(db_session, doc.id)]
        assert sequences == [4, 3, 2, 1]

    def test_latest_by_document(self, db_session, instructor, submit):
        first = submit(instructor)
        second = submit(instructor)
        history_ledger.append(
            db_session,
            second.id,
            DocumentHistoryAction.FORWARDED,
            DocumentStatus.PENDING,
            "Forwarded",
            stage=WorkflowStage.DEAN,
        )
        db_session.commit()
        latest = history_ledger.latest_by_document(db_session, [first.id, second.id])
        assert latest[first.id].action == DocumentHistoryAction.SUBMITTED
        assert latest[second.id].action == DocumentHistoryAction.FORWARDED

    def test_latest_by_document_empty(self, db_session):
        assert history_ledger.latest_by_document(db_session, []) == {}

    def test_update_is_refused(self, db_session, instructor, submit):
        doc = submit(instructor)
        entry = history_ledger.latest(db_session, doc.id)
        entry.summary = "rewritten"
        with pytest.raises(LedgerImmutableError):
            db_session.commit()
        db_session.rollback()
        assert history_ledger.latest(db_session, doc.id).summary != "rewritten"

    def test_delete_is_refused(self, db_session, instructor, submit):
        doc = submit(instructor)
        entry = history_ledger.latest(db_session, doc.id)
        db_session.delete(entry)
        with pytest.raises(LedgerImmutableError):
            db_session.commit()
        db_session.rollback()
        assert db_session.query(DocumentHistory).count() == 1


@pytest.fixture()
def file_sessions(tmp_path):
    """Two sessions on one file-backed database, so their commits interleave."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    first, second = factory(), factory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        engine.dispose()


class TestConcurrentAppends:
    def _seed(self, db):
        owner = User(
            first_name="Ana", last_name="Cruz", email="ana@test.edu", role=Role.INSTRUCTOR
        )
        dean = User(first_name="Ben", last_name="Reyes", email="ben@test.edu", role=Role.DEAN)
        category = FileCategory(name="Syllabus")
        db.add_all([owner, dean, category])
        db.commit()
        document = document_workflow.submit(
            db,
            Actor.from_user(owner),
            DocumentSubmit(
                attachment="https://files.test/documents/syllabus.pdf",
                file_category_id=category.id,
                file_date=date(2026, 1, 15),
                priority=DocumentPriority.MEDIUM,
            ),
        )
        return Actor.from_user(owner), Actor.from_user(dean), document.id

    def test_comment_racing_an_approval(self, file_sessions):
        commenter, approver = file_sessions
        owner, dean, document_id = self._seed(commenter)

        # Commit an approval from the other session once the comment's
        # ledger entry is about to be written.
        def _approve_meanwhile(session, flush_context, instances):
            document_workflow.approve(approver, dean, document_id)

        event.listen(commenter, "before_flush", _approve_meanwhile, once=True)
        document_workflow.add_comment(commenter, owner, document_id, "hello")

        entries = history_ledger.entries(commenter, document_id)
        assert [(e.sequence, e.action) for e in entries] == [
            (3, DocumentHistoryAction.COMMENTED),
            (2, DocumentHistoryAction.APPROVED),
            (1, DocumentHistoryAction.SUBMITTED),
        ]

    def test_attachment_racing_an_approval(self, file_sessions):
        uploader, approver = file_sessions
        owner, dean, document_id = self._seed(uploader)

        def _approve_meanwhile(session, flush_context, instances):
            document_workflow.approve(approver, dean, document_id)

        event.listen(uploader, "before_flush", _approve_meanwhile, once=True)
        document_workflow.replace_attachment(
            uploader, owner, document_id, "https://files.test/documents/signed.pdf"
        )

        entries = history_ledger.entries(uploader, document_id)
        assert [e.sequence for e in entries] == [3, 2, 1]
        assert entries[0].action == DocumentHistoryAction.SIGNATURE_ATTACHED


class TestTimeline:
    def test_only_newest_is_active(self, db_session, instructor, submit):
        doc = submit(instructor)
        history_ledger.append(
            db_session,
            doc.id,
            DocumentHistoryAction.REJECTED,
            DocumentStatus.REJECTED,
            "Document rejected",
            stage=WorkflowStage.DEAN,
            rejection_reason=RejectionReason.NEEDS_REVISION,
            rejection_details="Fix the table",
            performed_by_id=instructor.id,
        )
        db_session.commit()
        timeline = history_ledger.timeline(db_session, doc.id)
        assert [t.is_active for t in timeline] == [True, False]
        newest = timeline[0]
        assert newest.action == "Rejected"
        assert newest.location == "Dean's Office"
        assert newest.status == "Rejected"
        assert newest.rejection_reason == "Needs correction or revision"
        assert newest.rejection_details == "Fix the table"
        assert newest.performed_by == instructor.full_name
        assert timeline[1].action == "Document Created & Submitted"

    def test_description_prefers_details(self, db_session, instructor, submit):
        doc = submit(instructor, remarks="Midterm syllabus")
        timeline = build_timeline(history_ledger.entries(db_session, doc.id))
        assert timeline[0].description == "Midterm syllabus"

    def test_empty(self):
        assert build_timeline([]) == []
