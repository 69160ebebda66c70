from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from doctrack.api.deps import get_db, require_user_auth
from doctrack.schemas.document import (
    ArchivedDocumentsRead,
    AttachmentReplace,
    CommentCreate,
    CommentRead,
    DashboardSummaryRead,
    DocumentApprove,
    DocumentForward,
    DocumentListItemRead,
    DocumentRead,
    DocumentReject,
    DocumentSubmit,
    ForwardResultRead,
    RecipientRead,
    RepositoryDocumentRead,
    TimelineEntryRead,
    TrackingRead,
    WorkflowSnapshotRead,
)
from doctrack.services.document_query import document_queries
from doctrack.services.document_workflow import document_workflow
from doctrack.services.session import Actor

router = APIRouter(prefix="/documents", tags=["documents"])


# ------------------------------------------------------------------
# Read paths
# ------------------------------------------------------------------


@router.get("", response_model=list[DocumentListItemRead])
def list_documents(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return document_queries.list_for_viewer(db, actor)


@router.get("/repository", response_model=list[RepositoryDocumentRead])
def approved_repository(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return document_queries.approved_repository(db, actor)


@router.get("/archived", response_model=ArchivedDocumentsRead)
def archived_documents(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return document_queries.archived_for_viewer(db, actor)


@router.get("/dashboard", response_model=DashboardSummaryRead)
def dashboard(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return document_queries.dashboard_summary(db, actor)


@router.get("/forwardable-recipients", response_model=list[RecipientRead])
def forwardable_recipients(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return document_workflow.forwardable_recipients(db, actor)


@router.get("/track/{reference_id}", response_model=TrackingRead)
def track_document(
    reference_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_queries.tracking_by_reference(db, reference_id)


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_queries.get_for_viewer(db, actor, document_id)


@router.get("/{document_id}/history", response_model=list[TimelineEntryRead])
def document_history(
    document_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    document = document_queries.get_for_viewer(db, actor, document_id)
    return document_queries.timeline(db, document.id)


@router.get("/{document_id}/snapshot", response_model=WorkflowSnapshotRead)
def document_snapshot(
    document_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    document = document_queries.get_for_viewer(db, actor, document_id)
    return document_queries.snapshot(db, document)


# ------------------------------------------------------------------
# Workflow commands
# ------------------------------------------------------------------


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def submit_document(
    payload: DocumentSubmit,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_workflow.submit(db, actor, payload)


@router.post("/{document_id}/approve", response_model=DocumentRead)
def approve_document(
    document_id: str,
    payload: DocumentApprove | None = None,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    remarks = payload.remarks if payload else None
    return document_workflow.approve(db, actor, document_id, remarks)


@router.post("/{document_id}/reject", response_model=DocumentRead)
def reject_document(
    document_id: str,
    payload: DocumentReject,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_workflow.reject(db, actor, document_id, payload)


@router.post("/{document_id}/forward", response_model=ForwardResultRead)
def forward_document(
    document_id: str,
    payload: DocumentForward,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_workflow.forward(db, actor, document_id, payload)


@router.put("/{document_id}/attachment", response_model=DocumentRead)
def replace_attachment(
    document_id: str,
    payload: AttachmentReplace,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_workflow.replace_attachment(
        db, actor, document_id, payload.attachment
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    document_workflow.delete(db, actor, document_id)


# ------------------------------------------------------------------
# Comments
# ------------------------------------------------------------------


@router.get("/{document_id}/comments", response_model=list[CommentRead])
def list_comments(
    document_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_workflow.list_comments(db, actor, document_id)


@router.post(
    "/{document_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    document_id: str,
    payload: CommentCreate,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_workflow.add_comment(db, actor, document_id, payload.content)
