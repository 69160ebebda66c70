from doctrack.models.user import (  # noqa: F401
    Designation,
    FileCategory,
    Role,
    User,
    category_designations,
)
from doctrack.models.document import (  # noqa: F401
    Document,
    DocumentAssignatory,
    DocumentComment,
    DocumentHistory,
    DocumentHistoryAction,
    DocumentPriority,
    DocumentStatus,
    LedgerImmutableError,
    RejectionReason,
    WorkflowStage,
)
from doctrack.models.notification import (  # noqa: F401
    LogStatus,
    Notification,
    NotificationType,
    SystemLog,
)
