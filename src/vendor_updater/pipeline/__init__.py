from .update_cycle import (
    CURRENT,
    DUPLICATE,
    ERRORED,
    PUSHED,
    STALE,
    UPDATED,
    DependencyOutcome,
    RepositoryContext,
    RunReport,
    branch_name,
    check_updates,
    commit_message,
    run_update_cycle,
    update_dependency,
)

__all__ = [
    "CURRENT",
    "DUPLICATE",
    "ERRORED",
    "PUSHED",
    "STALE",
    "UPDATED",
    "DependencyOutcome",
    "RepositoryContext",
    "RunReport",
    "branch_name",
    "check_updates",
    "commit_message",
    "run_update_cycle",
    "update_dependency",
]
