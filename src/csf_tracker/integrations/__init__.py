"""Interchange with JSON files, Jira and Confluence."""

from csf_tracker.integrations.interchange import (
    export_workspace,
    export_workspace_json,
    import_workspace,
    import_workspace_json,
)
from csf_tracker.integrations.jira import (
    JiraFieldConfig,
    assessments_to_jira_issues,
    jira_issues_to_assessments,
)
from csf_tracker.integrations.confluence import (
    confluence_rows_to_controls,
    confluence_rows_to_requirements,
    controls_to_confluence_rows,
    export_requirements_confluence_csv,
    requirements_to_confluence_rows,
)
from csf_tracker.integrations.sync import BatchResult, IssueTrackerClient, JiraSyncService

__all__ = [
    "export_workspace",
    "export_workspace_json",
    "import_workspace",
    "import_workspace_json",
    "JiraFieldConfig",
    "assessments_to_jira_issues",
    "jira_issues_to_assessments",
    "confluence_rows_to_controls",
    "confluence_rows_to_requirements",
    "controls_to_confluence_rows",
    "export_requirements_confluence_csv",
    "requirements_to_confluence_rows",
    "BatchResult",
    "IssueTrackerClient",
    "JiraSyncService",
]
