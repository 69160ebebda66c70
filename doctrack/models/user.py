import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doctrack.db import Base


class Role(enum.Enum):
    INSTRUCTOR = "INSTRUCTOR"
    DEAN = "DEAN"
    VPAA = "VPAA"
    VPADA = "VPADA"
    PRESIDENT = "PRESIDENT"
    HR = "HR"
    REGISTRAR = "REGISTRAR"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


# ---------------------------------------------------------------------------
# Organization: Designations (departments / offices)
# ---------------------------------------------------------------------------


class Designation(Base):
    __tablename__ = "designations"
    __table_args__ = (UniqueConstraint("name", name="uq_designations_name"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    users = relationship("User", back_populates="designation")
    categories = relationship(
        "FileCategory",
        secondary="category_designations",
        back_populates="designations",
    )


category_designations = Table(
    "category_designations",
    Base.metadata,
    Column(
        "category_id",
        UUID(as_uuid=True),
        ForeignKey("file_categories.id"),
        primary_key=True,
    ),
    Column(
        "designation_id",
        UUID(as_uuid=True),
        ForeignKey("designations.id"),
        primary_key=True,
    ),
)


# ---------------------------------------------------------------------------
# Organization: File categories
# ---------------------------------------------------------------------------


class FileCategory(Base):
    __tablename__ = "file_categories"
    __table_args__ = (UniqueConstraint("name", name="uq_file_categories_name"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    designations = relationship(
        "Designation",
        secondary=category_designations,
        back_populates="categories",
    )
    documents = relationship("Document", back_populates="file_category")


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_role", "role"),
        Index("ix_users_designation_id", "designation_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role), default=Role.INSTRUCTOR)
    designation_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("designations.id")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    designation = relationship("Designation", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
