"""Workflow engine: the only code that changes a document's status.

Every status change is a conditional update guarded on the status it
expects to leave, committed together with the history entry recording it.
Notifications, storage cleanup and the system log run after commit.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from doctrack.errors import (
    AlreadyApproved,
    AlreadyRejected,
    Forbidden,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
)
from doctrack.metrics import WORKFLOW_ACTIONS, WORKFLOW_CONFLICTS
from doctrack.models.document import (
    Document,
    DocumentAssignatory,
    DocumentComment,
    DocumentHistory,
    DocumentHistoryAction,
    DocumentStatus,
)
from doctrack.models.notification import NotificationType
from doctrack.models.user import FileCategory, Role, User
from doctrack.schemas.document import (
    DocumentForward,
    DocumentReject,
    DocumentSubmit,
)
from doctrack.services.common import coerce_uuid
from doctrack.services.history import history_ledger
from doctrack.services.notification import NotificationPayload, notify, notify_many
from doctrack.services.session import Actor
from doctrack.services.stages import REJECTION_REASON_LABELS, stage_from_role
from doctrack.services.storage import schedule_delete
from doctrack.services.system_log import log_action
from doctrack.services.visibility import (
    can_comment,
    can_delete,
    can_replace_attachment,
    forward_targets,
)

logger = logging.getLogger(__name__)

_REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
_REFERENCE_ATTEMPTS = 10

_DOCUMENT_LINK = "/documents/{document_id}"


@dataclass(frozen=True)
class Recipient:
    id: uuid.UUID
    name: str
    role: Role
    designation: str | None = None


@dataclass(frozen=True)
class ForwardResult:
    document_id: uuid.UUID
    recipients: list[Recipient]
    dropped_user_ids: list[uuid.UUID] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _unit_of_work(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise Unauthorized()
    return actor


def _load_document(db: Session, document_id) -> Document:
    document = db.get(Document, coerce_uuid(document_id))
    if not document:
        raise NotFound("Document not found")
    return document


def _is_assignatory(db: Session, document_id, user_id) -> bool:
    return (
        db.scalar(
            select(DocumentAssignatory.id).where(
                DocumentAssignatory.document_id == document_id,
                DocumentAssignatory.user_id == user_id,
            )
        )
        is not None
    )


def _generate_reference_id(db: Session, category_id) -> str:
    prefix = str(category_id)[:3].upper()
    for _ in range(_REFERENCE_ATTEMPTS):
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
        candidate = f"DOC-{prefix}-{suffix}"
        exists = db.scalar(
            select(Document.id).where(Document.reference_id == candidate)
        )
        if exists is None:
            return candidate
    raise InvalidState("Could not allocate a unique reference id")


def _leave_pending(db: Session, document_id, values: dict, action: str) -> None:
    """Move a document out of Pending, or report the status it already has."""
    result = db.execute(
        update(Document)
        .where(Document.id == document_id, Document.status == DocumentStatus.PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        return
    current = db.scalar(select(Document.status).where(Document.id == document_id))
    if current is None:
        raise NotFound("Document not found")
    WORKFLOW_CONFLICTS.labels(action=action).inc()
    if current == DocumentStatus.APPROVED:
        raise AlreadyApproved()
    raise AlreadyRejected()


def _lock_pending(db: Session, document_id) -> None:
    result = db.execute(
        update(Document)
        .where(Document.id == document_id, Document.status == DocumentStatus.PENDING)
        .values(updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise InvalidState("Only pending documents can be forwarded")


def _recipient(user: User) -> Recipient:
    return Recipient(
        id=user.id,
        name=user.full_name,
        role=user.role,
        designation=user.designation.name if user.designation else None,
    )


def _link(document_id) -> str:
    return _DOCUMENT_LINK.format(document_id=document_id)


def _notify_submission(db: Session, actor: Actor, document: Document, assignatory_ids):
    recipients = list(assignatory_ids)
    if actor.designation_id is not None:
        dean_id = db.scalar(
            select(User.id)
            .where(
                User.role == Role.DEAN,
                User.designation_id == actor.designation_id,
                User.is_active.is_(True),
            )
            .order_by(User.created_at)
            .limit(1)
        )
        if dean_id is not None:
            recipients.insert(0, dean_id)
    recipients = [uid for uid in recipients if uid != actor.id]
    notify_many(
        recipients,
        NotificationPayload(
            title="New Document Submitted",
            description=f"Document {document.reference_id} requires your review.",
            type=NotificationType.DOCUMENT_SUBMITTED,
            link=_link(document.id),
            metadata={
                "document_id": document.id,
                "reference_id": document.reference_id,
            },
        ),
    )


def _notify_submitter(actor: Actor, document: Document, payload: NotificationPayload):
    if document.submitted_by_id == actor.id:
        return
    notify(document.submitted_by_id, payload)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class DocumentWorkflow:
    @staticmethod
    def submit(db: Session, actor: Actor | None, payload: DocumentSubmit) -> Document:
        actor = _require_actor(actor)
        category = db.get(FileCategory, coerce_uuid(payload.file_category_id))
        if not category:
            raise NotFound("File category not found")

        assignatory_ids = list(dict.fromkeys(payload.assignatories))
        if assignatory_ids:
            found = set(
                db.scalars(select(User.id).where(User.id.in_(assignatory_ids))).all()
            )
            missing = [str(uid) for uid in assignatory_ids if uid not in found]
            if missing:
                raise NotFound("Assignatory not found", details=missing)

        with _unit_of_work(db):
            document = Document(
                reference_id=_generate_reference_id(db, category.id),
                attachment=payload.attachment,
                file_category_id=category.id,
                remarks=payload.remarks,
                file_date=payload.file_date,
                priority=payload.priority,
                status=DocumentStatus.PENDING,
                submitted_by_id=actor.id,
            )
            db.add(document)
            db.flush()
            for user_id in assignatory_ids:
                db.add(DocumentAssignatory(document_id=document.id, user_id=user_id))
            history_ledger.append(
                db,
                document.id,
                DocumentHistoryAction.SUBMITTED,
                DocumentStatus.PENDING,
                "Document created & submitted",
                stage=stage_from_role(actor.role),
                details=payload.remarks,
                performed_by_id=actor.id,
            )
        db.refresh(document)
        logger.info("Submitted document %s (%s)", document.id, document.reference_id)
        WORKFLOW_ACTIONS.labels(action="submit").inc()
        log_action(
            db,
            actor.id,
            "Submit document",
            f"Document submitted with reference ID {document.reference_id}",
        )
        _notify_submission(db, actor, document, assignatory_ids)
        return document

    @staticmethod
    def approve(
        db: Session, actor: Actor | None, document_id, remarks: str | None = None
    ) -> Document:
        actor = _require_actor(actor)
        document = _load_document(db, document_id)
        values = {"status": DocumentStatus.APPROVED}
        if remarks is not None:
            values["remarks"] = remarks
        with _unit_of_work(db):
            _leave_pending(db, document.id, values, "approve")
            history_ledger.append(
                db,
                document.id,
                DocumentHistoryAction.APPROVED,
                DocumentStatus.APPROVED,
                "Document approved",
                stage=stage_from_role(actor.role),
                details=remarks,
                performed_by_id=actor.id,
            )
        db.refresh(document)
        logger.info("Approved document %s", document.id)
        WORKFLOW_ACTIONS.labels(action="approve").inc()
        log_action(
            db,
            actor.id,
            "Approve document",
            f"Document {document.reference_id} approved",
        )
        _notify_submitter(
            actor,
            document,
            NotificationPayload(
                title="Document Approved",
                description=f"Your document {document.reference_id} has been approved.",
                type=NotificationType.DOCUMENT_APPROVED,
                link=_link(document.id),
                metadata={"document_id": document.id},
            ),
        )
        return document

    @staticmethod
    def reject(
        db: Session, actor: Actor | None, document_id, payload: DocumentReject
    ) -> Document:
        actor = _require_actor(actor)
        document = _load_document(db, document_id)
        details = payload.details.strip() if payload.details else None
        values = {"status": DocumentStatus.REJECTED}
        if details:
            values["remarks"] = details
        with _unit_of_work(db):
            _leave_pending(db, document.id, values, "reject")
            history_ledger.append(
                db,
                document.id,
                DocumentHistoryAction.REJECTED,
                DocumentStatus.REJECTED,
                "Document rejected",
                stage=stage_from_role(actor.role),
                details=details,
                rejection_reason=payload.reason,
                rejection_details=details,
                performed_by_id=actor.id,
            )
        db.refresh(document)
        logger.info("Rejected document %s (%s)", document.id, payload.reason.value)
        WORKFLOW_ACTIONS.labels(action="reject").inc()
        log_action(
            db,
            actor.id,
            "Reject document",
            f"Document {document.reference_id} rejected: "
            f"{REJECTION_REASON_LABELS[payload.reason]}",
        )
        _notify_submitter(
            actor,
            document,
            NotificationPayload(
                title="Document Rejected",
                description=(
                    f"Your document {document.reference_id} was rejected: "
                    f"{REJECTION_REASON_LABELS[payload.reason]}."
                ),
                type=NotificationType.DOCUMENT_REJECTED,
                link=_link(document.id),
                metadata={
                    "document_id": document.id,
                    "reason": payload.reason.value,
                },
            ),
        )
        return document

    @staticmethod
    def forwardable_recipients(db: Session, actor: Actor | None) -> list[Recipient]:
        actor = _require_actor(actor)
        roles = forward_targets(actor.role)
        if not roles:
            raise Forbidden("Your role cannot forward documents")
        stmt = (
            select(User)
            .where(User.role.in_(roles), User.is_active.is_(True))
            .order_by(User.role, User.first_name, User.last_name)
        )
        return [_recipient(user) for user in db.scalars(stmt).all()]

    @staticmethod
    def forward(
        db: Session, actor: Actor | None, document_id, payload: DocumentForward
    ) -> ForwardResult:
        actor = _require_actor(actor)
        roles = forward_targets(actor.role)
        if not roles:
            raise Forbidden("Your role cannot forward documents")
        requested = list(dict.fromkeys(payload.target_user_ids))
        if not requested:
            raise ValidationError("Select at least one recipient")
        document = _load_document(db, document_id)
        if document.status != DocumentStatus.PENDING:
            raise InvalidState("Only pending documents can be forwarded")

        found = {
            user.id: user
            for user in db.scalars(
                select(User).where(
                    User.id.in_(requested),
                    User.is_active.is_(True),
                    User.role.in_(roles),
                )
            ).all()
        }
        recipients = [found[uid] for uid in requested if uid in found]
        dropped = [uid for uid in requested if uid not in found]
        if not recipients:
            raise ValidationError(
                "No valid recipients selected", details=[str(uid) for uid in dropped]
            )
        if dropped:
            logger.info(
                "Dropped %d ineligible forward targets for document %s",
                len(dropped),
                document.id,
            )

        names = ", ".join(user.full_name for user in recipients)
        with _unit_of_work(db):
            _lock_pending(db, document.id)
            existing = set(
                db.scalars(
                    select(DocumentAssignatory.user_id).where(
                        DocumentAssignatory.document_id == document.id,
                        DocumentAssignatory.user_id.in_(list(found)),
                    )
                ).all()
            )
            for user in recipients:
                if user.id not in existing:
                    db.add(
                        DocumentAssignatory(document_id=document.id, user_id=user.id)
                    )
            history_ledger.append(
                db,
                document.id,
                DocumentHistoryAction.FORWARDED,
                DocumentStatus.PENDING,
                f"Forwarded to {names}",
                stage=stage_from_role(actor.role),
                details=payload.note,
                performed_by_id=actor.id,
                metadata={"recipient_ids": [str(user.id) for user in recipients]},
            )
        db.refresh(document)
        logger.info("Forwarded document %s to %s", document.id, names)
        WORKFLOW_ACTIONS.labels(action="forward").inc()
        log_action(
            db,
            actor.id,
            "Forward document",
            f"Document {document.reference_id} forwarded to {names}",
        )
        notify_many(
            [user.id for user in recipients],
            NotificationPayload(
                title="Document Forwarded to You",
                description=f"Document {document.reference_id} requires your action.",
                type=NotificationType.DOCUMENT_ASSIGNED,
                link=_link(document.id),
                metadata={"document_id": document.id, "note": payload.note},
            ),
        )
        _notify_submitter(
            actor,
            document,
            NotificationPayload(
                title="Document Forwarded",
                description=f"Your document {document.reference_id} was forwarded to {names}.",
                type=NotificationType.DOCUMENT_UPDATED,
                link=_link(document.id),
                metadata={"document_id": document.id},
            ),
        )
        return ForwardResult(
            document_id=document.id,
            recipients=[_recipient(user) for user in recipients],
            dropped_user_ids=dropped,
        )

    @staticmethod
    def replace_attachment(
        db: Session, actor: Actor | None, document_id, new_url: str | None
    ) -> Document:
        actor = _require_actor(actor)
        new_url = (new_url or "").strip()
        if not new_url:
            raise ValidationError("Attachment URL is required")
        document = _load_document(db, document_id)
        is_assignatory = _is_assignatory(db, document.id, actor.id)
        if not can_replace_attachment(actor, document, is_assignatory):
            raise Forbidden("You are not allowed to update this document")

        previous = document.attachment
        with _unit_of_work(db):
            document.attachment = new_url
            history_ledger.append(
                db,
                document.id,
                DocumentHistoryAction.SIGNATURE_ATTACHED,
                document.status,
                "Signed PDF uploaded",
                stage=stage_from_role(actor.role),
                performed_by_id=actor.id,
            )
        db.refresh(document)
        logger.info("Replaced attachment of document %s", document.id)
        WORKFLOW_ACTIONS.labels(action="replace_attachment").inc()
        log_action(
            db,
            actor.id,
            "Replace attachment",
            f"Attachment of document {document.reference_id} replaced",
        )
        if previous and previous != new_url:
            schedule_delete(previous)
        return document

    @staticmethod
    def delete(db: Session, actor: Actor | None, document_id) -> None:
        actor = _require_actor(actor)
        document = _load_document(db, document_id)
        if not can_delete(actor, document):
            raise Forbidden("Only the document owner can delete it")
        if document.status == DocumentStatus.APPROVED:
            raise InvalidState("Approved documents cannot be deleted")

        doc_id = document.id
        attachment = document.attachment
        reference_id = document.reference_id
        # Bulk statements bypass the ledger's append-only mapper events.
        with _unit_of_work(db):
            db.execute(
                delete(DocumentAssignatory).where(
                    DocumentAssignatory.document_id == doc_id
                )
            )
            db.execute(
                delete(DocumentComment).where(DocumentComment.document_id == doc_id)
            )
            db.execute(
                delete(DocumentHistory).where(DocumentHistory.document_id == doc_id)
            )
            result = db.execute(
                delete(Document).where(
                    Document.id == doc_id,
                    Document.status != DocumentStatus.APPROVED,
                )
            )
            if not result.rowcount:
                raise InvalidState("Approved documents cannot be deleted")
        logger.info("Deleted document %s (%s)", doc_id, reference_id)
        WORKFLOW_ACTIONS.labels(action="delete").inc()
        log_action(
            db,
            actor.id,
            "Delete document",
            f"Document {reference_id} deleted",
        )
        schedule_delete(attachment)

    @staticmethod
    def add_comment(
        db: Session, actor: Actor | None, document_id, content: str | None
    ) -> DocumentComment:
        actor = _require_actor(actor)
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment cannot be empty")
        document = _load_document(db, document_id)
        is_assignatory = _is_assignatory(db, document.id, actor.id)
        if not can_comment(actor, document, is_assignatory):
            raise Forbidden("You are not allowed to comment on this document")

        with _unit_of_work(db):
            comment = DocumentComment(
                document_id=document.id, user_id=actor.id, content=content
            )
            db.add(comment)
            history_ledger.append(
                db,
                document.id,
                DocumentHistoryAction.COMMENTED,
                document.status,
                "Comment added",
                stage=stage_from_role(actor.role),
                details=content,
                performed_by_id=actor.id,
            )
        db.refresh(comment)
        logger.info("Added comment %s to document %s", comment.id, document.id)
        if document.submitted_by_id != actor.id:
            notify(
                document.submitted_by_id,
                NotificationPayload(
                    title="New Comment",
                    description=f"A comment was added to document {document.reference_id}.",
                    type=NotificationType.DOCUMENT_UPDATED,
                    link=_link(document.id),
                    metadata={"document_id": document.id, "comment_id": comment.id},
                ),
            )
        return comment

    @staticmethod
    def list_comments(
        db: Session, actor: Actor | None, document_id
    ) -> list[DocumentComment]:
        actor = _require_actor(actor)
        document = _load_document(db, document_id)
        is_assignatory = _is_assignatory(db, document.id, actor.id)
        if not can_comment(actor, document, is_assignatory):
            raise Forbidden("You are not allowed to view comments on this document")
        stmt = (
            select(DocumentComment)
            .where(DocumentComment.document_id == document.id)
            .order_by(DocumentComment.created_at)
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def archive_inactive(db: Session, older_than: datetime) -> int:
        """Soft-archive settled documents untouched since ``older_than``.

        Archival is an overlay: no history entry is written and the stored
        status is left as is.
        """
        rows = db.execute(
            select(Document.id, Document.submitted_by_id, Document.reference_id).where(
                Document.archived_at.is_(None),
                Document.status.in_(
                    (DocumentStatus.APPROVED, DocumentStatus.REJECTED)
                ),
                Document.updated_at < older_than,
            )
        ).all()
        if not rows:
            return 0
        now = datetime.now(timezone.utc)
        with _unit_of_work(db):
            db.execute(
                update(Document)
                .where(
                    Document.id.in_([row.id for row in rows]),
                    Document.archived_at.is_(None),
                )
                .values(archived_at=now, updated_at=Document.updated_at)
                .execution_options(synchronize_session=False)
            )
        logger.info("Archived %d inactive documents", len(rows))
        for row in rows:
            notify(
                row.submitted_by_id,
                NotificationPayload(
                    title="Document Archived",
                    description=f"Document {row.reference_id} was moved to the archive.",
                    type=NotificationType.DOCUMENT_ARCHIVED,
                    link=_link(row.id),
                    metadata={"document_id": row.id},
                ),
            )
        return len(rows)


document_workflow = DocumentWorkflow()
