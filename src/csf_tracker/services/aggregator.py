"""
Cross-link aggregator.

Read-side views over the many-to-many links between controls, requirements,
artifacts and findings. Nothing is stored here; every call scans the stores
it was given, skips references to entities that no longer exist, and folds
results in store order with first-seen de-duplication so repeated calls
return identical output.
"""

from typing import Iterable, Optional

from csf_tracker.identity.directory import UserDirectory
from csf_tracker.models.artifact import Artifact
from csf_tracker.models.control import Control
from csf_tracker.models.finding import Finding
from csf_tracker.models.requirement import Requirement
from csf_tracker.models.results import RequirementControlData
from csf_tracker.models.common import unique_ids
from csf_tracker.stores.artifacts import ArtifactsStore
from csf_tracker.stores.controls import ControlsStore
from csf_tracker.stores.findings import FindingsStore
from csf_tracker.stores.requirements import RequirementsStore

DESCRIPTION_SEPARATOR = " | "
NAME_SEPARATOR = ", "


class CrossLinkAggregator:
    """Resolves control, requirement, artifact and finding links."""

    def __init__(
        self,
        controls: ControlsStore,
        requirements: RequirementsStore,
        artifacts: ArtifactsStore,
        findings: FindingsStore,
        users: UserDirectory,
    ):
        self.controls = controls
        self.requirements = requirements
        self.artifacts = artifacts
        self.findings = findings
        self.users = users

    def get_controls_by_requirement(self, requirement_id: str) -> list[Control]:
        return self.controls.get_by_requirement(requirement_id)

    def get_requirements_by_control(self, control_id: str) -> list[Requirement]:
        control = self.controls.get(control_id)
        if control is None:
            return []
        found = (self.requirements.get(r) for r in control.linked_requirement_ids)
        return [requirement for requirement in found if requirement is not None]

    def get_artifacts_by_control(self, control_id: str) -> list[Artifact]:
        return self.artifacts.get_by_control(control_id)

    def get_findings_by_control(self, control_id: str) -> list[Finding]:
        return self.findings.get_by_control(control_id)

    def get_control_data_for_requirement(self, requirement_id: str) -> RequirementControlData:
        """Fold every control linked to a requirement into one view.

        With no linked control, a control whose id equals the requirement id
        is used instead.
        """
        linked = self.get_controls_by_requirement(requirement_id)
        matched_by_control_id = False
        if not linked:
            legacy = self.controls.get(requirement_id)
            if legacy is not None:
                linked = [legacy]
                matched_by_control_id = True

        owner_ids = unique_ids(c.owner_id for c in linked if self._known_user(c.owner_id))
        stakeholder_ids = unique_ids(
            s for c in linked for s in c.stakeholder_ids if self._known_user(s)
        )
        descriptions = [c.implementation_description for c in linked if c.implementation_description.strip()]

        return RequirementControlData(
            requirement_id=requirement_id,
            control_ids=[c.control_id for c in linked],
            implementation_description=DESCRIPTION_SEPARATOR.join(dict.fromkeys(descriptions)),
            owner_ids=owner_ids,
            stakeholder_ids=stakeholder_ids,
            control_owner=self._names(owner_ids),
            stakeholders=self._names(stakeholder_ids),
            artifacts=_unique_by_id(a for c in linked for a in self.get_artifacts_by_control(c.control_id)),
            findings=_unique_by_id(f for c in linked for f in self.get_findings_by_control(c.control_id)),
            matched_by_control_id=matched_by_control_id,
            primary_control_id=linked[0].control_id if linked else None,
        )

    def requirement_rows_for_confluence(self, framework_id: Optional[str] = None) -> list[dict]:
        """Requirement rows enriched with owners and stakeholders of linked controls."""
        requirements = (
            self.requirements.get_by_framework(framework_id)
            if framework_id else self.requirements.all()
        )
        rows = []
        for requirement in requirements:
            linked = self.get_controls_by_requirement(requirement.id)
            owners = unique_ids(c.owner_id for c in linked if self._known_user(c.owner_id))
            stakeholders = unique_ids(
                s for c in linked for s in c.stakeholder_ids if self._known_user(s)
            )
            rows.append({
                "Requirement ID": requirement.id,
                "Framework": requirement.framework_id,
                "CSF Function": requirement.function,
                "CSF Function Description": requirement.function_description,
                "Category Name": requirement.category,
                "Category Description": requirement.category_description,
                "Subcategory ID": requirement.subcategory_id,
                "Subcategory Description": requirement.subcategory_description,
                "Implementation Example": requirement.implementation_example,
                "In Scope": "Yes" if requirement.in_scope else "No",
                "Control Owner": self._names(owners),
                "Stakeholders": self._names(stakeholders),
                "Controls In Scope": NAME_SEPARATOR.join(c.control_id for c in linked),
            })
        return rows

    def _known_user(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and self.users.exists(user_id)

    def _names(self, user_ids: Iterable[str]) -> str:
        return NAME_SEPARATOR.join(dict.fromkeys(self.users.display_name(u) for u in user_ids))


def _unique_by_id(items: Iterable) -> list:
    seen = set()
    result = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            result.append(item)
    return result
