from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from doctrack.models.document import (
    DocumentPriority,
    DocumentStatus,
    RejectionReason,
    WorkflowStage,
)
from doctrack.models.user import Role
from doctrack.services.stages import StepStatus


# ---------------------------------------------------------------------------
# Workflow commands
# ---------------------------------------------------------------------------


class DocumentSubmit(BaseModel):
    attachment: str = Field(min_length=1)
    file_category_id: UUID
    remarks: str | None = None
    file_date: date
    priority: DocumentPriority = DocumentPriority.MEDIUM
    assignatories: list[UUID] = Field(default_factory=list)


class DocumentApprove(BaseModel):
    remarks: str | None = None


class DocumentReject(BaseModel):
    reason: RejectionReason
    details: str | None = None


class DocumentForward(BaseModel):
    target_user_ids: list[UUID] = Field(default_factory=list)
    note: str | None = None


class AttachmentReplace(BaseModel):
    attachment: str


class CommentCreate(BaseModel):
    content: str


# ---------------------------------------------------------------------------
# Document projections
# ---------------------------------------------------------------------------


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_id: str
    attachment: str
    attachment_name: str
    file_category_id: UUID
    remarks: str | None = None
    display_title: str
    file_date: date
    priority: DocumentPriority
    status: DocumentStatus
    submitted_by_id: UUID
    assignatory_ids: list[UUID] = Field(default_factory=list)
    archived_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DocumentListItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_id: str
    attachment: str
    attachment_name: str
    category: str
    category_id: UUID
    priority: str
    status: str
    workflow_stage: WorkflowStage
    is_forwarded: bool
    submitted_by: str
    submitted_by_id: UUID
    created_at: datetime


class RepositoryDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_id: str
    title: str
    attachments: list[str]
    category: str
    priority: str
    status: str
    submitted_by: str | None = None
    created_at: datetime
    archived_at: datetime | None = None


class ArchiveAnalyticsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    high_priority: int
    medium_priority: int
    low_priority: int
    unique_categories: int
    latest_archived_at: datetime | None = None


class ArchivedDocumentsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    documents: list[RepositoryDocumentRead]
    analytics: ArchiveAnalyticsRead


class MonthlyActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    count: int


class CategoryCountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    count: int


class TeamMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: Role
    total: int
    pending: int
    approved: int
    rejected: int


class DashboardSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_submitted: int
    pending: int
    approved: int
    rejected: int
    high_priority: int
    action_required: int
    recent_documents: list[RepositoryDocumentRead]
    pending_documents: list[RepositoryDocumentRead] = Field(default_factory=list)
    monthly_activity: list[MonthlyActivityRead] = Field(default_factory=list)
    category_breakdown: list[CategoryCountRead] = Field(default_factory=list)
    team_performance: list[TeamMemberRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# History / tracking
# ---------------------------------------------------------------------------


class TimelineEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action: str
    description: str
    location: str
    status: str
    timestamp: datetime
    is_active: bool
    performed_by: str | None = None
    rejection_reason: str | None = None
    rejection_details: str | None = None


class SnapshotStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: WorkflowStage
    label: str
    status: StepStatus


class WorkflowSnapshotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_id: UUID
    current_stage: WorkflowStage
    status: DocumentStatus
    steps: list[SnapshotStepRead]


class TrackingDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
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


class TrackingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document: TrackingDocumentRead
    history: list[TimelineEntryRead]


# ---------------------------------------------------------------------------
# Forwarding
# ---------------------------------------------------------------------------


class RecipientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: Role
    designation: str | None = None


class ForwardResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_id: UUID
    recipients: list[RecipientRead]
    dropped_user_ids: list[UUID] = Field(default_factory=list)


class CommentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    updated_at: datetime
