"""Who may see which documents, and who may act on them.

The list, approved-repository and archive surfaces deliberately apply
different rules. Each surface has its own named policy; do not fold them
into a single ACL check.
"""

from __future__ import annotations

import enum

from sqlalchemy import or_, true
from sqlalchemy.sql.elements import ColumnElement

from doctrack.models.document import Document, DocumentAssignatory
from doctrack.models.user import Role, User
from doctrack.services.session import Actor

PRIVILEGED_ROLES = frozenset({Role.VPAA, Role.VPADA, Role.PRESIDENT})
FORWARD_VISIBLE_ROLES = frozenset({Role.DEAN, Role.HR})
DASHBOARD_UNSCOPED_ROLES = PRIVILEGED_ROLES | {Role.HR}

FORWARD_TARGETS = {
    Role.DEAN: frozenset({Role.VPAA, Role.VPADA, Role.HR}),
    Role.VPAA: frozenset({Role.PRESIDENT}),
    Role.VPADA: frozenset({Role.PRESIDENT}),
}

PRESIDENT_OFFICE_MARKERS = ("president",)
ACADEMIC_AFFAIRS_MARKERS = ("academic affairs", "vpaa")


class VisibilitySurface(enum.Enum):
    list = "list"
    approved_repository = "approved_repository"
    archive = "archive"
    dashboard = "dashboard"


def _owned_by(viewer: Actor) -> ColumnElement[bool]:
    return Document.submitted_by_id == viewer.id


def _forwarded_to(viewer: Actor) -> ColumnElement[bool]:
    return Document.assignatories.any(DocumentAssignatory.user_id == viewer.id)


def _same_designation(viewer: Actor) -> ColumnElement[bool]:
    return Document.submitted_by.has(User.designation_id == viewer.designation_id)


# ---------------------------------------------------------------------------
# Document list
# ---------------------------------------------------------------------------


def list_policy(viewer: Actor) -> ColumnElement[bool]:
    if viewer.role in PRIVILEGED_ROLES:
        return true()
    if viewer.role in FORWARD_VISIBLE_ROLES:
        return or_(_owned_by(viewer), _forwarded_to(viewer))
    return _owned_by(viewer)


# ---------------------------------------------------------------------------
# Approved-document repository
# ---------------------------------------------------------------------------


def _designation_names(document: Document) -> list[str]:
    category = document.file_category
    if category is None:
        return []
    return [d.name.lower() for d in category.designations]


def _is_reserved_office(document: Document) -> bool:
    names = _designation_names(document)
    for name in names:
        if any(marker in name for marker in PRESIDENT_OFFICE_MARKERS):
            return True
        if any(marker in name for marker in ACADEMIC_AFFAIRS_MARKERS):
            return True
    return False


def workflow_participants(document: Document) -> set:
    participants = {document.submitted_by_id}
    participants.update(
        entry.performed_by_id
        for entry in document.history
        if entry.performed_by_id is not None
    )
    participants.update(document.assignatory_ids)
    return participants


def approved_repository_policy(viewer: Actor, document: Document) -> bool:
    """Evaluated per loaded document (needs category designations, history
    performers and assignatories)."""
    if document.submitted_by_id == viewer.id:
        return True
    if viewer.id in document.assignatory_ids:
        return True
    # Privileged roles get no blanket access here.
    if viewer.role in PRIVILEGED_ROLES:
        return False
    if _is_reserved_office(document):
        return False
    return viewer.id in workflow_participants(document)


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------


def archive_policy(viewer: Actor) -> ColumnElement[bool]:
    if viewer.role == Role.INSTRUCTOR:
        return _owned_by(viewer)
    if viewer.role == Role.DEAN:
        if viewer.designation_id is None:
            return _owned_by(viewer)
        return _same_designation(viewer)
    if viewer.role in PRIVILEGED_ROLES:
        return true()
    return _owned_by(viewer)


# ---------------------------------------------------------------------------
# Dashboard analytics scope
# ---------------------------------------------------------------------------


def dashboard_scope(viewer: Actor) -> ColumnElement[bool]:
    if viewer.role == Role.INSTRUCTOR:
        return _owned_by(viewer)
    if viewer.role == Role.DEAN:
        if viewer.designation_id is None:
            return _owned_by(viewer)
        return _same_designation(viewer)
    if viewer.role in DASHBOARD_UNSCOPED_ROLES:
        return true()
    return _owned_by(viewer)


_SURFACE_POLICIES = {
    VisibilitySurface.list: list_policy,
    VisibilitySurface.approved_repository: approved_repository_policy,
    VisibilitySurface.archive: archive_policy,
    VisibilitySurface.dashboard: dashboard_scope,
}


def policy_for(surface: VisibilitySurface):
    """Return the policy bound to ``surface``.

    The approved-repository policy is a per-document predicate
    ``(viewer, document) -> bool``; the others build SQL criteria from the
    viewer alone.
    """
    return _SURFACE_POLICIES[surface]


# ---------------------------------------------------------------------------
# Action permissions
# ---------------------------------------------------------------------------


def forward_targets(role: Role) -> frozenset:
    return FORWARD_TARGETS.get(role, frozenset())


def can_replace_attachment(
    viewer: Actor, document: Document, is_assignatory: bool
) -> bool:
    return (
        document.submitted_by_id == viewer.id
        or is_assignatory
        or viewer.role in PRIVILEGED_ROLES
    )


def can_delete(viewer: Actor, document: Document) -> bool:
    return document.submitted_by_id == viewer.id


def can_comment(viewer: Actor, document: Document, is_assignatory: bool) -> bool:
    return document.submitted_by_id == viewer.id or is_assignatory
