from prometheus_client import Counter

WORKFLOW_ACTIONS = Counter(
    "doctrack_workflow_actions_total",
    "Committed document workflow actions",
    ["action"],
)
WORKFLOW_CONFLICTS = Counter(
    "doctrack_workflow_conflicts_total",
    "Approve/reject attempts that lost to an earlier decision",
    ["action"],
)
