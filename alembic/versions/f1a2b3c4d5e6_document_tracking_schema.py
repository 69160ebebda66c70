"""document tracking schema

Revision ID: f1a2b3c4d5e6
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "f1a2b3c4d5e6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Enums ---
    role = sa.Enum(
        "INSTRUCTOR",
        "DEAN",
        "VPAA",
        "VPADA",
        "PRESIDENT",
        "HR",
        "REGISTRAR",
        "SYSTEM_ADMIN",
        name="role",
    )
    documentpriority = sa.Enum("LOW", "MEDIUM", "HIGH", name="documentpriority")
    documentstatus = sa.Enum("PENDING", "APPROVED", "REJECTED", name="documentstatus")
    workflowstage = sa.Enum(
        "INSTRUCTOR",
        "DEAN",
        "VPAA",
        "VPADA",
        "PRESIDENT",
        "REGISTRAR",
        "ARCHIVES",
        name="workflowstage",
    )
    documenthistoryaction = sa.Enum(
        "SUBMITTED",
        "FORWARDED",
        "APPROVED",
        "REJECTED",
        "RETURNED",
        "SIGNATURE_ATTACHED",
        "COMMENTED",
        name="documenthistoryaction",
    )
    rejectionreason = sa.Enum(
        "MISSING_INFORMATION",
        "INVALID_DETAILS",
        "POLICY_VIOLATION",
        "NEEDS_REVISION",
        "OTHER",
        name="rejectionreason",
    )
    notificationtype = sa.Enum(
        "DOCUMENT_SUBMITTED",
        "DOCUMENT_ASSIGNED",
        "DOCUMENT_APPROVED",
        "DOCUMENT_REJECTED",
        "DOCUMENT_REQUIRES_ACTION",
        "DOCUMENT_UPDATED",
        "DOCUMENT_ARCHIVED",
        "SYSTEM_ANNOUNCEMENT",
        name="notificationtype",
    )
    logstatus = sa.Enum("SUCCESS", "FAILED", "WARNING", name="logstatus")
    for enum_type in (
        role,
        documentpriority,
        documentstatus,
        workflowstage,
        documenthistoryaction,
        rejectionreason,
        notificationtype,
        logstatus,
    ):
        enum_type.create(op.get_bind(), checkfirst=True)

    def existing(enum_type):
        return postgresql.ENUM(
            *enum_type.enums, name=enum_type.name, create_type=False
        )

    # --- Organization ---
    op.create_table(
        "designations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_designations_name"),
    )

    op.create_table(
        "file_categories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_file_categories_name"),
    )

    op.create_table(
        "category_designations",
        sa.Column("category_id", sa.UUID(), nullable=False),
        sa.Column("designation_id", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["file_categories.id"]),
        sa.ForeignKeyConstraint(["designation_id"], ["designations.id"]),
        sa.PrimaryKeyConstraint("category_id", "designation_id"),
    )

    # --- Accounts ---
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", existing(role), nullable=False),
        sa.Column("designation_id", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["designation_id"], ["designations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_designation_id", "users", ["designation_id"])

    # --- Documents ---
    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("reference_id", sa.String(length=32), nullable=False),
        sa.Column("attachment", sa.String(length=2048), nullable=False),
        sa.Column("file_category_id", sa.UUID(), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("file_date", sa.Date(), nullable=False),
        sa.Column("priority", existing(documentpriority), nullable=False),
        sa.Column("status", existing(documentstatus), nullable=False),
        sa.Column("submitted_by_id", sa.UUID(), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["file_category_id"], ["file_categories.id"]),
        sa.ForeignKeyConstraint(["submitted_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reference_id", name="uq_documents_reference_id"),
    )
    op.create_index("ix_documents_submitted_by_id", "documents", ["submitted_by_id"])
    op.create_index("ix_documents_status", "documents", ["status"])
    op.create_index("ix_documents_archived_at", "documents", ["archived_at"])

    op.create_table(
        "document_assignatories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "user_id", name="uq_document_assignatories_doc_user"
        ),
    )
    op.create_index(
        "ix_document_assignatories_user_id", "document_assignatories", ["user_id"]
    )

    op.create_table(
        "document_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action", existing(documenthistoryaction), nullable=False),
        sa.Column("status", existing(documentstatus), nullable=False),
        sa.Column("stage", existing(workflowstage), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("rejection_reason", existing(rejectionreason), nullable=True),
        sa.Column("rejection_details", sa.Text(), nullable=True),
        sa.Column("performed_by_id", sa.UUID(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["performed_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "sequence", name="uq_document_history_doc_sequence"
        ),
    )
    op.create_index(
        "ix_document_history_document_id", "document_history", ["document_id"]
    )
    op.create_index(
        "ix_document_history_performed_by_id", "document_history", ["performed_by_id"]
    )

    op.create_table(
        "document_comments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_comments_document_id", "document_comments", ["document_id"]
    )

    # --- Notifications / system log ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", existing(notificationtype), nullable=False),
        sa.Column("link", sa.String(length=1024), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_type", "notifications", ["type"])

    op.create_table(
        "system_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("status", existing(logstatus), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_system_logs_user_id", "system_logs", ["user_id"])
    op.create_index("ix_system_logs_created_at", "system_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_system_logs_created_at", table_name="system_logs")
    op.drop_index("ix_system_logs_user_id", table_name="system_logs")
    op.drop_table("system_logs")
    op.drop_index("ix_notifications_type", table_name="notifications")
    op.drop_index("ix_notifications_is_read", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_document_comments_document_id", table_name="document_comments")
    op.drop_table("document_comments")
    op.drop_index("ix_document_history_performed_by_id", table_name="document_history")
    op.drop_index("ix_document_history_document_id", table_name="document_history")
    op.drop_table("document_history")
    op.drop_index(
        "ix_document_assignatories_user_id", table_name="document_assignatories"
    )
    op.drop_table("document_assignatories")
    op.drop_index("ix_documents_archived_at", table_name="documents")
    op.drop_index("ix_documents_status", table_name="documents")
    op.drop_index("ix_documents_submitted_by_id", table_name="documents")
    op.drop_table("documents")
    op.drop_index("ix_users_designation_id", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
    op.drop_table("category_designations")
    op.drop_table("file_categories")
    op.drop_table("designations")

    for name in (
        "logstatus",
        "notificationtype",
        "rejectionreason",
        "documenthistoryaction",
        "workflowstage",
        "documentstatus",
        "documentpriority",
        "role",
    ):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
