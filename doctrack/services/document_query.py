from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from doctrack.errors import Forbidden, NotFound
from doctrack.models.document import (
    Document,
    DocumentHistoryAction,
    DocumentPriority,
    DocumentStatus,
    WorkflowStage,
)
from doctrack.models.user import FileCategory, Role, User
from doctrack.services.common import coerce_uuid
from doctrack.services.history import TimelineEntry, build_timeline, history_ledger
from doctrack.services.session import Actor
from doctrack.services.stages import (
    PRIORITY_DISPLAY,
    STATUS_DISPLAY,
    WORKFLOW_STAGE_LABELS,
    SnapshotStep,
    current_stage,
    workflow_snapshot,
)
from doctrack.services.visibility import (
    DASHBOARD_UNSCOPED_ROLES,
    VisibilitySurface,
    policy_for,
)

logger = logging.getLogger(__name__)

RECENT_DOCUMENTS_LIMIT = 5
CATEGORY_BREAKDOWN_LIMIT = 5
ACTIVITY_MONTHS = 6


@dataclass(frozen=True)
class DocumentListItem:
    id: uuid.UUID
    reference_id: str
    attachment: str
    attachment_name: str
    category: str
    category_id: uuid.UUID
    priority: str
    status: str
    workflow_stage: WorkflowStage
    is_forwarded: bool
    submitted_by: str
    submitted_by_id: uuid.UUID
    created_at: datetime


@dataclass(frozen=True)
class RepositoryDocument:
    id: uuid.UUID
    reference_id: str
    title: str
    attachments: list[str]
    category: str
    priority: str
    status: str
    created_at: datetime
    submitted_by: str | None = None
    archived_at: datetime | None = None


@dataclass(frozen=True)
class ArchiveAnalytics:
    total: int
    high_priority: int
    medium_priority: int
    low_priority: int
    unique_categories: int
    latest_archived_at: datetime | None = None


@dataclass(frozen=True)
class ArchivedDocuments:
    documents: list[RepositoryDocument]
    analytics: ArchiveAnalytics


@dataclass(frozen=True)
class MonthlyActivity:
    label: str
    count: int


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int


@dataclass(frozen=True)
class TeamMember:
    id: uuid.UUID
    name: str
    role: Role
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


@dataclass(frozen=True)
class DashboardSummary:
    total_submitted: int
    pending: int
    approved: int
    rejected: int
    high_priority: int
    action_required: int
    recent_documents: list[RepositoryDocument]
    pending_documents: list[RepositoryDocument] = field(default_factory=list)
    monthly_activity: list[MonthlyActivity] = field(default_factory=list)
    category_breakdown: list[CategoryCount] = field(default_factory=list)
    team_performance: list[TeamMember] = field(default_factory=list)


@dataclass(frozen=True)
class TrackingDocument:
    id: uuid.UUID
    reference_id: str
    title: str
    category: str
    status: str
    priority: str
    submitted_by: str
    submitted_date: datetime
    current_location: str
    department: str
    attachments: list[str]


@dataclass(frozen=True)
class WorkflowSnapshot:
    document_id: uuid.UUID
    current_stage: WorkflowStage
    status: DocumentStatus
    steps: list[SnapshotStep]


@dataclass(frozen=True)
class Tracking:
    document: TrackingDocument
    history: list[TimelineEntry]


def _category_name(document: Document) -> str:
    return document.file_category.name if document.file_category else ""


def _submitter_name(document: Document) -> str | None:
    return document.submitted_by.full_name if document.submitted_by else None


def _repository_item(document: Document, status: str | None = None) -> RepositoryDocument:
    return RepositoryDocument(
        id=document.id,
        reference_id=document.reference_id,
        title=document.display_title,
        attachments=[document.attachment] if document.attachment else [],
        category=_category_name(document),
        priority=PRIORITY_DISPLAY[document.priority],
        status=status or STATUS_DISPLAY[document.status],
        created_at=document.created_at,
        submitted_by=_submitter_name(document),
        archived_at=document.archived_at,
    )


def _month_starts(now: datetime, count: int) -> list[tuple[int, int]]:
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def _monthly_activity(db: Session, scope) -> list[MonthlyActivity]:
    months = _month_starts(datetime.now(timezone.utc), ACTIVITY_MONTHS)
    first_year, first_month = months[0]
    since = datetime(first_year, first_month, 1, tzinfo=timezone.utc)
    created = db.scalars(
        select(Document.created_at).where(scope, Document.created_at >= since)
    ).all()
    counts = Counter((ts.year, ts.month) for ts in created)
    return [
        MonthlyActivity(
            label=datetime(year, month, 1).strftime("%b"),
            count=counts.get((year, month), 0),
        )
        for year, month in months
    ]


def _category_breakdown(db: Session, scope) -> list[CategoryCount]:
    stmt = (
        select(FileCategory.name, func.count(Document.id))
        .join(Document, Document.file_category_id == FileCategory.id)
        .where(scope)
        .group_by(FileCategory.name)
        .order_by(func.count(Document.id).desc(), FileCategory.name)
        .limit(CATEGORY_BREAKDOWN_LIMIT)
    )
    return [CategoryCount(category=name, count=count) for name, count in db.execute(stmt)]


def _team_members(db: Session, viewer: Actor) -> list[User]:
    if viewer.role == Role.DEAN and viewer.designation_id is not None:
        stmt = select(User).where(User.designation_id == viewer.designation_id)
    elif viewer.role in DASHBOARD_UNSCOPED_ROLES:
        stmt = select(User).where(
            select(Document.id).where(Document.submitted_by_id == User.id).exists()
        )
    else:
        return []
    return list(db.scalars(stmt.order_by(User.first_name)).all())


def _team_performance(db: Session, viewer: Actor, scope) -> list[TeamMember]:
    members = _team_members(db, viewer)
    if not members:
        return []
    grouped = db.execute(
        select(Document.submitted_by_id, Document.status, func.count(Document.id))
        .where(scope)
        .group_by(Document.submitted_by_id, Document.status)
    ).all()
    metrics: dict = {}
    for submitter_id, status, count in grouped:
        bucket = metrics.setdefault(submitter_id, Counter())
        bucket["total"] += count
        bucket[status.value.lower()] += count
    team = []
    for member in members:
        bucket = metrics.get(member.id, Counter())
        team.append(
            TeamMember(
                id=member.id,
                name=member.full_name,
                role=member.role,
                total=bucket["total"],
                pending=bucket["pending"],
                approved=bucket["approved"],
                rejected=bucket["rejected"],
            )
        )
    return sorted(team, key=lambda m: m.total, reverse=True)


class DocumentQueries:
    @staticmethod
    def get(db: Session, document_id) -> Document:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFound("Document not found")
        return document

    @staticmethod
    def get_for_viewer(db: Session, viewer: Actor, document_id) -> Document:
        """Load a document the viewer may open: listed for them, or visible in
        the approved repository."""
        document = DocumentQueries.get(db, document_id)
        listed = db.scalar(
            select(Document.id).where(
                Document.id == document.id,
                policy_for(VisibilitySurface.list)(viewer),
            )
        )
        if listed is not None:
            return document
        if document.status == DocumentStatus.APPROVED and policy_for(
            VisibilitySurface.approved_repository
        )(viewer, document):
            return document
        raise Forbidden("You do not have access to this document")

    @staticmethod
    def list_for_viewer(db: Session, viewer: Actor) -> list[DocumentListItem]:
        stmt = (
            select(Document)
            .where(policy_for(VisibilitySurface.list)(viewer))
            .options(
                selectinload(Document.file_category),
                selectinload(Document.submitted_by),
            )
            .order_by(Document.created_at.desc())
        )
        documents = list(db.scalars(stmt).all())
        latest = history_ledger.latest_by_document(db, [d.id for d in documents])
        items = []
        for document in documents:
            entry = latest.get(document.id)
            items.append(
                DocumentListItem(
                    id=document.id,
                    reference_id=document.reference_id,
                    attachment=document.attachment,
                    attachment_name=document.attachment_name,
                    category=_category_name(document),
                    category_id=document.file_category_id,
                    priority=PRIORITY_DISPLAY[document.priority],
                    status=STATUS_DISPLAY[document.status],
                    workflow_stage=current_stage(entry),
                    is_forwarded=entry is not None
                    and entry.action == DocumentHistoryAction.FORWARDED,
                    submitted_by=_submitter_name(document) or "Unknown",
                    submitted_by_id=document.submitted_by_id,
                    created_at=document.created_at,
                )
            )
        return items

    @staticmethod
    def current_stage(db: Session, document_id) -> WorkflowStage:
        return current_stage(history_ledger.latest(db, document_id))

    @staticmethod
    def snapshot(db: Session, document: Document) -> WorkflowSnapshot:
        stage = current_stage(history_ledger.latest(db, document.id))
        return WorkflowSnapshot(
            document_id=document.id,
            current_stage=stage,
            status=document.status,
            steps=workflow_snapshot(stage, document.status),
        )

    @staticmethod
    def tracking_by_reference(db: Session, reference_id: str) -> Tracking:
        stmt = (
            select(Document)
            .where(Document.reference_id == reference_id)
            .options(
                selectinload(Document.file_category),
                selectinload(Document.submitted_by).selectinload(User.designation),
            )
        )
        document = db.scalars(stmt).first()
        if not document:
            raise NotFound(f"No document with reference {reference_id}")
        history = history_ledger.timeline(db, document.id)
        submitter = document.submitted_by
        return Tracking(
            document=TrackingDocument(
                id=document.id,
                reference_id=document.reference_id,
                title=_category_name(document) or document.reference_id,
                category=_category_name(document),
                status=STATUS_DISPLAY[document.status],
                priority=PRIORITY_DISPLAY[document.priority],
                submitted_by=submitter.full_name if submitter else "Unknown",
                submitted_date=document.created_at,
                current_location=history[0].location
                if history
                else WORKFLOW_STAGE_LABELS[WorkflowStage.INSTRUCTOR],
                department=submitter.designation.name
                if submitter is not None and submitter.designation is not None
                else "Unassigned",
                attachments=[document.attachment] if document.attachment else [],
            ),
            history=history,
        )

    @staticmethod
    def approved_repository(db: Session, viewer: Actor) -> list[RepositoryDocument]:
        stmt = (
            select(Document)
            .where(Document.status == DocumentStatus.APPROVED)
            .options(
                selectinload(Document.file_category).selectinload(
                    FileCategory.designations
                ),
                selectinload(Document.submitted_by),
                selectinload(Document.assignatories),
                selectinload(Document.history),
            )
            .order_by(Document.updated_at.desc())
        )
        allowed = policy_for(VisibilitySurface.approved_repository)
        return [
            _repository_item(document)
            for document in db.scalars(stmt).all()
            if allowed(viewer, document)
        ]

    @staticmethod
    def archived_for_viewer(db: Session, viewer: Actor) -> ArchivedDocuments:
        stmt = (
            select(Document)
            .where(
                Document.archived_at.is_not(None),
                policy_for(VisibilitySurface.archive)(viewer),
            )
            .options(
                selectinload(Document.file_category),
                selectinload(Document.submitted_by),
            )
            .order_by(Document.archived_at.desc())
        )
        documents = [
            _repository_item(document, status="Archived")
            for document in db.scalars(stmt).all()
        ]
        priorities = Counter(doc.priority for doc in documents)
        analytics = ArchiveAnalytics(
            total=len(documents),
            high_priority=priorities[PRIORITY_DISPLAY[DocumentPriority.HIGH]],
            medium_priority=priorities[PRIORITY_DISPLAY[DocumentPriority.MEDIUM]],
            low_priority=priorities[PRIORITY_DISPLAY[DocumentPriority.LOW]],
            unique_categories=len({doc.category for doc in documents}),
            latest_archived_at=max(
                (doc.archived_at for doc in documents), default=None
            ),
        )
        return ArchivedDocuments(documents=documents, analytics=analytics)

    @staticmethod
    def dashboard_summary(db: Session, viewer: Actor) -> DashboardSummary:
        scope = policy_for(VisibilitySurface.dashboard)(viewer)

        def count(*criteria) -> int:
            return db.scalar(
                select(func.count(Document.id)).where(scope, *criteria)
            ) or 0

        def documents(*criteria, order_by) -> list[RepositoryDocument]:
            stmt = (
                select(Document)
                .where(scope, *criteria)
                .options(
                    selectinload(Document.file_category),
                    selectinload(Document.submitted_by),
                )
                .order_by(order_by)
                .limit(RECENT_DOCUMENTS_LIMIT)
            )
            return [_repository_item(d) for d in db.scalars(stmt).all()]

        pending = count(Document.status == DocumentStatus.PENDING)
        return DashboardSummary(
            total_submitted=count(),
            pending=pending,
            approved=count(Document.status == DocumentStatus.APPROVED),
            rejected=count(Document.status == DocumentStatus.REJECTED),
            high_priority=count(Document.priority == DocumentPriority.HIGH),
            action_required=pending,
            recent_documents=documents(order_by=Document.updated_at.desc()),
            pending_documents=documents(
                Document.status == DocumentStatus.PENDING,
                order_by=Document.created_at.desc(),
            ),
            monthly_activity=_monthly_activity(db, scope),
            category_breakdown=_category_breakdown(db, scope),
            team_performance=_team_performance(db, viewer, scope),
        )

    @staticmethod
    def timeline(db: Session, document_id) -> list[TimelineEntry]:
        document = DocumentQueries.get(db, document_id)
        return build_timeline(history_ledger.entries(db, document.id))


document_queries = DocumentQueries()
