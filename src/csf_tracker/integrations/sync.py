"""
Batch synchronisation with an issue tracker.

Each finding or artifact is pushed with its own retried call. A failure is
recorded against that item and the batch carries on; the issue keys that
came back are applied to the store in one change after every call has
finished, so a store never sees a half-finished batch.
"""

from typing import Optional, Protocol

import structlog
from pydantic import BaseModel

from csf_tracker.core.resilience import RetryConfig, RetryHandler
from csf_tracker.identity.directory import UserDirectory
from csf_tracker.integrations.jira import (
    JiraFieldConfig,
    artifact_to_issue_fields,
    finding_to_issue_fields,
    issue_to_finding_record,
)
from csf_tracker.models.results import ImportResult
from csf_tracker.stores.artifacts import ArtifactsStore
from csf_tracker.stores.findings import FindingsStore

logger = structlog.get_logger(__name__)


class IssueTrackerClient(Protocol):
    """Calls the sync service needs from an issue tracker."""

    async def create_issue(self, fields: dict) -> dict:
        """Create an issue and return it, including its ``key``."""
        ...

    async def update_issue(self, key: str, fields: dict) -> None:
        ...

    async def search_issues(self, jql: str) -> list[dict]:
        ...


class SyncSuccess(BaseModel):
    item_id: str
    external_key: str


class SyncFailure(BaseModel):
    item_id: str
    error: str


class BatchResult(BaseModel):
    """Per-item outcome of a batch of external calls."""
    succeeded: list[SyncSuccess] = []
    failed: list[SyncFailure] = []

    @property
    def summary(self) -> str:
        return f"{len(self.succeeded)} succeeded, {len(self.failed)} failed"


class JiraSyncService:
    """Pushes findings and artifacts to Jira and pulls findings back."""

    def __init__(
        self,
        client: IssueTrackerClient,
        config: Optional[JiraFieldConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.client = client
        self.config = config or JiraFieldConfig()
        self.retry_handler = RetryHandler(retry_config)

    async def push_findings(self, findings: FindingsStore, users: UserDirectory) -> BatchResult:
        """Create issues for new findings and update those already linked."""
        result = BatchResult()
        new_keys: dict[str, str] = {}
        for finding in findings.all():
            fields = finding_to_issue_fields(finding, users, self.config)
            try:
                if finding.jira_key:
                    await self.retry_handler.execute_with_retry(
                        self.client.update_issue, finding.jira_key, fields, component="jira_findings"
                    )
                    key = finding.jira_key
                else:
                    issue = await self.retry_handler.execute_with_retry(
                        self.client.create_issue, fields, component="jira_findings"
                    )
                    key = issue["key"]
                    new_keys[finding.id] = key
            except Exception as e:
                self._record_failure(result, finding.id, e)
                continue
            result.succeeded.append(SyncSuccess(item_id=finding.id, external_key=key))

        findings.set_jira_keys(new_keys)
        logger.info("batch_sync_completed", kind="findings", succeeded=len(result.succeeded), failed=len(result.failed))
        return result

    async def push_artifacts(self, artifacts: ArtifactsStore) -> BatchResult:
        """Create issues for artifacts that have no external key yet."""
        result = BatchResult()
        new_keys: dict[str, str] = {}
        for artifact in artifacts.all():
            if artifact.artifact_id:
                continue
            try:
                issue = await self.retry_handler.execute_with_retry(
                    self.client.create_issue,
                    artifact_to_issue_fields(artifact, self.config),
                    component="jira_artifacts",
                )
            except Exception as e:
                self._record_failure(result, artifact.id, e)
                continue
            new_keys[artifact.id] = issue["key"]
            result.succeeded.append(SyncSuccess(item_id=artifact.id, external_key=issue["key"]))

        artifacts.set_artifact_ids(new_keys)
        logger.info("batch_sync_completed", kind="artifacts", succeeded=len(result.succeeded), failed=len(result.failed))
        return result

    async def pull_findings(self, findings: FindingsStore) -> ImportResult:
        """Upsert findings from the findings project, matched on Jira key."""
        issues = await self.retry_handler.execute_with_retry(
            self.client.search_issues,
            f"project = {self.config.findings_project_key}",
            component="jira_findings",
        )
        by_key = {f.jira_key: f for f in findings.all() if f.jira_key}
        entities = []
        for issue in issues:
            record = issue_to_finding_record(issue, self.config)
            if not record["summary"] or not record["jira_key"]:
                continue
            existing = by_key.get(record["jira_key"])
            if existing is not None:
                record["id"] = existing.id
                record["created_date"] = existing.created_date
                # Links and ownership are managed locally.
                record["linked_artifacts"] = existing.linked_artifacts
                record["remediation_owner_id"] = existing.remediation_owner_id
                record["assessment_id"] = existing.assessment_id
            entities.append(findings.build(record))
        keys = findings.upsert_many(entities, action="sync")
        return ImportResult(imported=len(keys), keys=keys)

    def _record_failure(self, result: BatchResult, item_id: str, error: Exception) -> None:
        result.failed.append(SyncFailure(item_id=item_id, error=str(error)))
        logger.warning("external_call_failed", item_id=item_id, error=str(error))
