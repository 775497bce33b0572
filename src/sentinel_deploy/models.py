"""
Data models for workspace provisioning and solution deployment.

These Pydantic models describe the operator settings, the JSON documents the
Azure CLI returns, and the ARM templates the tool writes.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums for classification
# ============================================================================

class ProvisioningState(str, Enum):
    """Terminal states reported by Azure Resource Manager."""
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"


class ChangeType(str, Enum):
    """Change types reported by a what-if operation."""
    CREATE = "Create"
    DELETE = "Delete"
    DEPLOY = "Deploy"
    IGNORE = "Ignore"
    MODIFY = "Modify"
    NO_CHANGE = "NoChange"
    UNSUPPORTED = "Unsupported"


# ============================================================================
# Operator settings
# ============================================================================

class DeploymentSettings(BaseModel):
    """Settings resolved from defaults, the settings file, env and flags."""
    model_config = ConfigDict(extra="forbid")

    subscription_id: Optional[str] = None

    # Naming convention inputs
    prefix: str = "sentinel"
    environment: str = "dev"

    # Explicit names override the naming convention
    location: Optional[str] = None
    resource_group: Optional[str] = None
    workspace_name: Optional[str] = None

    # Workspace configuration
    sku: str = "PerGB2018"
    retention_in_days: int = Field(default=90, ge=30, le=730)
    daily_quota_gb: Optional[float] = Field(default=None, gt=0)
    tags: dict[str, str] = Field(default_factory=dict)
    workspace_template: Optional[str] = None

    # Solution deployment
    solutions_path: str = "Solutions"
    solution: Optional[str] = None
    solution_parameters: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Azure CLI result models
# ============================================================================

class ResourceGroup(BaseModel):
    """A resource group as reported by `az group show/create`."""
    name: str
    location: str
    id: Optional[str] = None
    provisioning_state: Optional[str] = None
    existed: bool = False

    # Location the operator asked for when it differs from the group's own
    requested_location: Optional[str] = None

    @classmethod
    def from_cli(cls, data: dict[str, Any], existed: bool) -> "ResourceGroup":
        return cls(
            name=data["name"],
            location=data["location"],
            id=data.get("id"),
            provisioning_state=(data.get("properties") or {}).get("provisioningState"),
            existed=existed,
        )


class DeploymentResult(BaseModel):
    """Outcome of `az deployment group create`."""
    name: str
    resource_group: str
    provisioning_state: Optional[str] = None
    outputs: dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp: Optional[str] = None
    duration: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.provisioning_state == ProvisioningState.SUCCEEDED.value

    @classmethod
    def from_cli(cls, data: dict[str, Any], resource_group: str) -> "DeploymentResult":
        properties = data.get("properties") or {}

        # ARM wraps each output as {"type": ..., "value": ...}
        outputs = {}
        for key, output in (properties.get("outputs") or {}).items():
            if isinstance(output, dict) and "value" in output:
                outputs[key] = output["value"]
            else:
                outputs[key] = output

        return cls(
            name=data.get("name", ""),
            resource_group=data.get("resourceGroup") or resource_group,
            provisioning_state=properties.get("provisioningState"),
            outputs=outputs,
            id=data.get("id"),
            correlation_id=properties.get("correlationId"),
            timestamp=properties.get("timestamp"),
            duration=properties.get("duration"),
        )


class WhatIfChange(BaseModel):
    """A single resource change predicted by what-if."""
    resource_id: str
    change_type: str


class WhatIfResult(BaseModel):
    """Outcome of `az deployment group what-if`."""
    deployment_name: str
    status: Optional[str] = None
    changes: list[WhatIfChange] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for change in self.changes:
            totals[change.change_type] = totals.get(change.change_type, 0) + 1
        return totals

    @classmethod
    def from_cli(cls, data: Optional[dict[str, Any]], deployment_name: str) -> "WhatIfResult":
        data = data or {}
        changes = [
            WhatIfChange(
                resource_id=change.get("resourceId", ""),
                change_type=change.get("changeType", ChangeType.UNSUPPORTED.value),
            )
            for change in data.get("changes") or []
        ]
        return cls(deployment_name=deployment_name, status=data.get("status"), changes=changes)


class WorkspaceInfo(BaseModel):
    """The provisioned Log Analytics workspace."""
    name: str
    resource_group: str
    location: str
    resource_id: Optional[str] = None
    customer_id: Optional[str] = None
    sentinel_enabled: bool = False


class SolutionPackage(BaseModel):
    """A pre-built Sentinel solution found on disk."""
    name: str
    path: Path
    template_path: Path
    version: Optional[str] = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    has_ui_definition: bool = False

    @property
    def required_parameters(self) -> list[str]:
        return [
            name for name, definition in self.parameters.items()
            if not isinstance(definition, dict) or "defaultValue" not in definition
        ]


class ProvisionSummary(BaseModel):
    """Everything a run did, used for the console and JSON summaries."""
    subscription_id: Optional[str] = None
    subscription_name: Optional[str] = None
    resource_group: Optional[ResourceGroup] = None
    workspace: Optional[WorkspaceInfo] = None
    workspace_deployment: Optional[DeploymentResult] = None
    solution: Optional[str] = None
    solution_deployment: Optional[DeploymentResult] = None
    what_if: list[WhatIfResult] = Field(default_factory=list)


# ============================================================================
# ARM Template Models
# ============================================================================

class ARMResource(BaseModel):
    """Represents an ARM template resource."""
    type: str
    api_version: str
    name: str
    location: Optional[str] = "[parameters('location')]"
    scope: Optional[str] = None
    properties: dict[str, Any] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list)
    tags: Any = None


class ARMTemplate(BaseModel):
    """Complete ARM template."""
    schema_url: str = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"
    content_version: str = "1.0.0.0"
    parameters: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    resources: list[ARMResource] = Field(default_factory=list)
    outputs: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to ARM template dictionary format."""
        resources = []
        for r in self.resources:
            resource = {
                "type": r.type,
                "apiVersion": r.api_version,
                "name": r.name,
            }
            if r.scope is not None:
                resource["scope"] = r.scope
            if r.location is not None:
                resource["location"] = r.location
            resource["properties"] = r.properties
            resource["dependsOn"] = r.depends_on
            if r.tags is not None:
                resource["tags"] = r.tags
            resources.append(resource)

        return {
            "$schema": self.schema_url,
            "contentVersion": self.content_version,
            "parameters": self.parameters,
            "variables": self.variables,
            "resources": resources,
            "outputs": self.outputs,
        }
