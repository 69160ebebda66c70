"""Workflow stage derivation and progress resolution.

The current stage of a document is never stored: it is read off the most
recent history entry, and each entry's stage is stamped from the role of
whoever performed the action.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from doctrack.models.document import (
    DocumentHistory,
    DocumentHistoryAction,
    DocumentPriority,
    DocumentStatus,
    RejectionReason,
    WorkflowStage,
)
from doctrack.models.user import Role


class StepStatus(enum.Enum):
    completed = "Completed"
    pending = "Pending"
    waiting = "Waiting"
    rejected = "Rejected"


STAGE_ORDER: tuple[WorkflowStage, ...] = tuple(WorkflowStage)

_ROLE_STAGES = {
    Role.DEAN: WorkflowStage.DEAN,
    Role.VPAA: WorkflowStage.VPAA,
    Role.VPADA: WorkflowStage.VPADA,
    Role.PRESIDENT: WorkflowStage.PRESIDENT,
}

DEFAULT_SNAPSHOT_STEPS: tuple[WorkflowStage, ...] = (
    WorkflowStage.INSTRUCTOR,
    WorkflowStage.DEAN,
    WorkflowStage.VPAA,
    WorkflowStage.PRESIDENT,
)

WORKFLOW_STAGE_LABELS = {
    WorkflowStage.INSTRUCTOR: "Instructor",
    WorkflowStage.DEAN: "Dean's Office",
    WorkflowStage.VPAA: "VPAA Office",
    WorkflowStage.VPADA: "VPADA Office",
    WorkflowStage.PRESIDENT: "President's Office",
    WorkflowStage.REGISTRAR: "Registrar",
    WorkflowStage.ARCHIVES: "Records & Archives",
}

HISTORY_ACTION_LABELS = {
    DocumentHistoryAction.SUBMITTED: "Document Created & Submitted",
    DocumentHistoryAction.FORWARDED: "Forwarded to Next Office",
    DocumentHistoryAction.APPROVED: "Approved",
    DocumentHistoryAction.REJECTED: "Rejected",
    DocumentHistoryAction.RETURNED: "Returned for Revision",
    DocumentHistoryAction.SIGNATURE_ATTACHED: "Signed PDF Uploaded",
    DocumentHistoryAction.COMMENTED: "Comment Added",
}

REJECTION_REASON_LABELS = {
    RejectionReason.MISSING_INFORMATION: "Missing required information",
    RejectionReason.INVALID_DETAILS: "Invalid or inconsistent details",
    RejectionReason.POLICY_VIOLATION: "Policy or compliance violation",
    RejectionReason.NEEDS_REVISION: "Needs correction or revision",
    RejectionReason.OTHER: "Other (see explanation)",
}

STATUS_DISPLAY = {
    DocumentStatus.PENDING: "Pending",
    DocumentStatus.APPROVED: "Approved",
    DocumentStatus.REJECTED: "Rejected",
}

PRIORITY_DISPLAY = {
    DocumentPriority.LOW: "Low",
    DocumentPriority.MEDIUM: "Medium",
    DocumentPriority.HIGH: "High",
}


def stage_from_role(role: Role | None) -> WorkflowStage:
    return _ROLE_STAGES.get(role, WorkflowStage.INSTRUCTOR)


def stage_index(stage: WorkflowStage) -> int:
    return STAGE_ORDER.index(stage)


def current_stage(latest: DocumentHistory | None) -> WorkflowStage:
    if latest is None:
        return WorkflowStage.INSTRUCTOR
    return latest.stage


def resolve_step_status(
    target: WorkflowStage,
    current: WorkflowStage,
    document_status: DocumentStatus,
) -> StepStatus:
    """Status of ``target`` in a progress view whose document sits at ``current``.

    Branch order matters: an approved document short-circuits before the
    rejected check, which precedes the ordering comparisons.
    """
    target_idx = stage_index(target)
    current_idx = stage_index(current)
    if document_status == DocumentStatus.APPROVED:
        if target_idx <= current_idx:
            return StepStatus.completed
        return StepStatus.waiting
    if document_status == DocumentStatus.REJECTED and target_idx == current_idx:
        return StepStatus.rejected
    if target_idx < current_idx:
        return StepStatus.completed
    if target_idx == current_idx:
        return StepStatus.pending
    return StepStatus.waiting


@dataclass(frozen=True)
class SnapshotStep:
    stage: WorkflowStage
    label: str
    status: StepStatus


def workflow_snapshot(
    current: WorkflowStage,
    document_status: DocumentStatus,
    steps: tuple[WorkflowStage, ...] = DEFAULT_SNAPSHOT_STEPS,
) -> list[SnapshotStep]:
    return [
        SnapshotStep(
            stage=step,
            label=WORKFLOW_STAGE_LABELS[step],
            status=resolve_step_status(step, current, document_status),
        )
        for step in steps
    ]
