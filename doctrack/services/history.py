import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased, selectinload

from doctrack.models.document import (
    Document,
    DocumentHistory,
    DocumentHistoryAction,
    DocumentStatus,
    RejectionReason,
    WorkflowStage,
)
from doctrack.services.common import coerce_uuid
from doctrack.services.stages import (
    HISTORY_ACTION_LABELS,
    REJECTION_REASON_LABELS,
    STATUS_DISPLAY,
    WORKFLOW_STAGE_LABELS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineEntry:
    id: uuid.UUID
    action: str
    description: str
    location: str
    status: str
    timestamp: datetime
    is_active: bool
    performed_by: str | None = None
    rejection_reason: str | None = None
    rejection_details: str | None = None


class HistoryLedger:
    """Append-only log of workflow facts per document.

    ``append`` only flushes: the caller commits the entry together with the
    document change it records.
    """

    @staticmethod
    def append(
        db: Session,
        document_id,
        action: DocumentHistoryAction,
        status: DocumentStatus,
        summary: str,
        stage: WorkflowStage | None = None,
        details: str | None = None,
        rejection_reason: RejectionReason | None = None,
        rejection_details: str | None = None,
        performed_by_id=None,
        metadata: dict | None = None,
    ) -> DocumentHistory:
        document_id = coerce_uuid(document_id)
        # Serialize appends per document, then number the entry inside the
        # INSERT so it sees every entry committed before it.
        db.scalar(
            select(Document.id).where(Document.id == document_id).with_for_update()
        )
        prior = aliased(DocumentHistory)
        next_sequence = (
            select(func.coalesce(func.max(prior.sequence), 0) + 1)
            .where(prior.document_id == document_id)
            .scalar_subquery()
        )
        entry = DocumentHistory(
            document_id=document_id,
            sequence=next_sequence,
            action=action,
            status=status,
            stage=stage or WorkflowStage.INSTRUCTOR,
            summary=summary,
            details=details,
            rejection_reason=rejection_reason,
            rejection_details=rejection_details,
            performed_by_id=coerce_uuid(performed_by_id),
            metadata_=metadata,
        )
        db.add(entry)
        db.flush()
        logger.debug(
            "Appended %s entry #%d to document %s",
            action.value,
            entry.sequence,
            document_id,
        )
        return entry

    @staticmethod
    def entries(db: Session, document_id) -> list[DocumentHistory]:
        stmt = (
            select(DocumentHistory)
            .where(DocumentHistory.document_id == coerce_uuid(document_id))
            .options(selectinload(DocumentHistory.performed_by))
            .order_by(DocumentHistory.sequence.desc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def latest(db: Session, document_id) -> DocumentHistory | None:
        stmt = (
            select(DocumentHistory)
            .where(DocumentHistory.document_id == coerce_uuid(document_id))
            .order_by(DocumentHistory.sequence.desc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    @staticmethod
    def latest_by_document(db: Session, document_ids) -> dict:
        """Map each document id to its most recent entry."""
        ids = [coerce_uuid(d) for d in document_ids]
        if not ids:
            return {}
        newest = (
            select(
                DocumentHistory.document_id,
                func.max(DocumentHistory.sequence).label("sequence"),
            )
            .where(DocumentHistory.document_id.in_(ids))
            .group_by(DocumentHistory.document_id)
            .subquery()
        )
        stmt = select(DocumentHistory).join(
            newest,
            (DocumentHistory.document_id == newest.c.document_id)
            & (DocumentHistory.sequence == newest.c.sequence),
        )
        return {entry.document_id: entry for entry in db.scalars(stmt).all()}

    @staticmethod
    def timeline(db: Session, document_id) -> list[TimelineEntry]:
        return build_timeline(HistoryLedger.entries(db, document_id))


def build_timeline(history: list[DocumentHistory]) -> list[TimelineEntry]:
    ordered = sorted(history, key=lambda e: e.sequence, reverse=True)
    timeline = []
    for index, entry in enumerate(ordered):
        reason = None
        if entry.rejection_reason is not None:
            reason = REJECTION_REASON_LABELS.get(
                entry.rejection_reason, entry.rejection_reason.value
            )
        timeline.append(
            TimelineEntry(
                id=entry.id,
                action=HISTORY_ACTION_LABELS.get(
                    entry.action, entry.action.value.replace("_", " ")
                ),
                description=entry.details or entry.summary,
                location=WORKFLOW_STAGE_LABELS.get(entry.stage, "In Transit"),
                status=STATUS_DISPLAY.get(entry.status, "Pending"),
                timestamp=entry.created_at,
                is_active=index == 0,
                performed_by=entry.performed_by.full_name
                if entry.performed_by
                else None,
                rejection_reason=reason,
                rejection_details=entry.rejection_details,
            )
        )
    return timeline


history_ledger = HistoryLedger()
