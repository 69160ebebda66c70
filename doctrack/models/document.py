import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doctrack.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DocumentStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DocumentPriority(enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class WorkflowStage(enum.Enum):
    # Declaration order is the precedence order used by the stage resolver.
    INSTRUCTOR = "INSTRUCTOR"
    DEAN = "DEAN"
    VPAA = "VPAA"
    VPADA = "VPADA"
    PRESIDENT = "PRESIDENT"
    REGISTRAR = "REGISTRAR"
    ARCHIVES = "ARCHIVES"


class DocumentHistoryAction(enum.Enum):
    SUBMITTED = "SUBMITTED"
    FORWARDED = "FORWARDED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"
    SIGNATURE_ATTACHED = "SIGNATURE_ATTACHED"
    COMMENTED = "COMMENTED"


class RejectionReason(enum.Enum):
    MISSING_INFORMATION = "MISSING_INFORMATION"
    INVALID_DETAILS = "INVALID_DETAILS"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    NEEDS_REVISION = "NEEDS_REVISION"
    OTHER = "OTHER"


class LedgerImmutableError(RuntimeError):
    pass


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("reference_id", name="uq_documents_reference_id"),
        Index("ix_documents_submitted_by_id", "submitted_by_id"),
        Index("ix_documents_status", "status"),
        Index("ix_documents_archived_at", "archived_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reference_id: Mapped[str] = mapped_column(String(32), nullable=False)
    attachment: Mapped[str] = mapped_column(String(2048), nullable=False)
    file_category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("file_categories.id"), nullable=False
    )
    remarks: Mapped[str | None] = mapped_column(Text)
    file_date: Mapped[date] = mapped_column(Date, nullable=False)
    priority: Mapped[DocumentPriority] = mapped_column(
        Enum(DocumentPriority), default=DocumentPriority.MEDIUM
    )
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.PENDING
    )
    submitted_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    file_category = relationship("FileCategory", back_populates="documents")
    submitted_by = relationship("User", foreign_keys=[submitted_by_id])
    assignatories = relationship("DocumentAssignatory", back_populates="document")
    history = relationship(
        "DocumentHistory",
        order_by="DocumentHistory.sequence.desc()",
        viewonly=True,
    )
    comments = relationship(
        "DocumentComment",
        back_populates="document",
        order_by="DocumentComment.created_at",
    )

    @property
    def display_title(self) -> str:
        if self.remarks:
            return self.remarks
        if self.file_category is not None and self.file_category.name:
            return self.file_category.name
        return self.reference_id

    @property
    def attachment_name(self) -> str:
        return self.attachment.rsplit("/", 1)[-1] or self.reference_id

    @property
    def assignatory_ids(self) -> set[uuid.UUID]:
        return {a.user_id for a in self.assignatories}


# ---------------------------------------------------------------------------
# Assignatories: users a document was explicitly forwarded to
# ---------------------------------------------------------------------------


class DocumentAssignatory(Base):
    __tablename__ = "document_assignatories"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "user_id", name="uq_document_assignatories_doc_user"
        ),
        Index("ix_document_assignatories_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    document = relationship("Document", back_populates="assignatories")
    user = relationship("User")


# ---------------------------------------------------------------------------
# History ledger (append-only, no updated_at)
# ---------------------------------------------------------------------------


class DocumentHistory(Base):
    __tablename__ = "document_history"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "sequence", name="uq_document_history_doc_sequence"
        ),
        Index("ix_document_history_document_id", "document_id"),
        Index("ix_document_history_performed_by_id", "performed_by_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[DocumentHistoryAction] = mapped_column(
        Enum(DocumentHistoryAction), nullable=False
    )
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), nullable=False
    )
    stage: Mapped[WorkflowStage] = mapped_column(
        Enum(WorkflowStage), nullable=False, default=WorkflowStage.INSTRUCTOR
    )
    summary: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[RejectionReason | None] = mapped_column(
        Enum(RejectionReason)
    )
    rejection_details: Mapped[str | None] = mapped_column(Text)
    performed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    document = relationship("Document")
    performed_by = relationship("User")


@event.listens_for(DocumentHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    raise LedgerImmutableError(
        f"History entry {target.id} is append-only and cannot be modified"
    )


@event.listens_for(DocumentHistory, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise LedgerImmutableError(
        f"History entry {target.id} is append-only and cannot be deleted"
    )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class DocumentComment(Base):
    __tablename__ = "document_comments"
    __table_args__ = (Index("ix_document_comments_document_id", "document_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    document = relationship("Document", back_populates="comments")
    user = relationship("User")
