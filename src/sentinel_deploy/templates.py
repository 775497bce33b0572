"""
ARM Template Generator

Generates the default Azure Resource Manager template for a Log Analytics
workspace with Microsoft Sentinel onboarded, and writes deployment
parameter files.
"""

import json
import re
import logging
from pathlib import Path
from typing import Optional, Any

from .exceptions import DeployError
from .models import ARMTemplate, ARMResource


logger = logging.getLogger(__name__)

PARAMETERS_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#"

WORKSPACE_ID = "[resourceId('Microsoft.OperationalInsights/workspaces', parameters('workspaceName'))]"


class WorkspaceTemplateGenerator:
    """
    Generates ARM templates for the security-analytics workspace.

    The template creates the Log Analytics workspace and the Sentinel
    onboarding state on top of it, and exposes the workspace ids as outputs.
    """

    # API versions for different resource types
    API_VERSIONS = {
        "Microsoft.OperationalInsights/workspaces": "2022-10-01",
        "Microsoft.SecurityInsights/onboardingStates": "2024-03-01",
    }

    def generate(
        self,
        sku: str = "PerGB2018",
        retention_in_days: int = 90,
        daily_quota_gb: Optional[float] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """
        Generate the workspace template.

        Args:
            sku: Default pricing tier
            retention_in_days: Default data retention
            daily_quota_gb: Default daily ingestion cap, None for no cap
            tags: Default tags applied to the workspace

        Returns:
            Dictionary representing the ARM template
        """
        template = ARMTemplate(
            parameters=self._generate_parameters(sku, retention_in_days, daily_quota_gb, tags),
        )
        template.resources.append(self._create_workspace_resource())
        template.resources.append(self._create_onboarding_resource())
        template.outputs = self._generate_outputs()
        return template.to_dict()

    def _generate_parameters(
        self,
        sku: str,
        retention_in_days: int,
        daily_quota_gb: Optional[float],
        tags: Optional[dict[str, str]],
    ) -> dict[str, Any]:
        return {
            "workspaceName": {
                "type": "string",
                "minLength": 4,
                "maxLength": 63,
                "metadata": {"description": "Name of the Log Analytics workspace"},
            },
            "location": {
                "type": "string",
                "defaultValue": "[resourceGroup().location]",
                "metadata": {"description": "Azure region for the workspace"},
            },
            "sku": {
                "type": "string",
                "defaultValue": sku,
                "allowedValues": [
                    "PerGB2018",
                    "CapacityReservation",
                    "Free",
                    "Standalone",
                    "PerNode",
                    "Premium",
                    "Standard",
                ],
                "metadata": {"description": "Pricing tier of the workspace"},
            },
            "retentionInDays": {
                "type": "int",
                "defaultValue": retention_in_days,
                "minValue": 30,
                "maxValue": 730,
                "metadata": {"description": "Number of days data is retained"},
            },
            "dailyQuotaGb": {
                "type": "string",
                "defaultValue": str(daily_quota_gb) if daily_quota_gb else "-1",
                "metadata": {"description": "Daily ingestion cap in GB, -1 for no cap"},
            },
            "tags": {
                "type": "object",
                "defaultValue": dict(tags or {}),
                "metadata": {"description": "Tags applied to the workspace"},
            },
        }

    def _create_workspace_resource(self) -> ARMResource:
        """Create Log Analytics workspace resource."""
        return ARMResource(
            type="Microsoft.OperationalInsights/workspaces",
            api_version=self.API_VERSIONS["Microsoft.OperationalInsights/workspaces"],
            name="[parameters('workspaceName')]",
            properties={
                "sku": {
                    "name": "[parameters('sku')]"
                },
                "retentionInDays": "[parameters('retentionInDays')]",
                "workspaceCapping": {
                    "dailyQuotaGb": "[json(parameters('dailyQuotaGb'))]"
                },
                "features": {
                    "enableLogAccessUsingOnlyResourcePermissions": True
                }
            },
            tags="[parameters('tags')]",
        )

    def _create_onboarding_resource(self) -> ARMResource:
        """Create the Sentinel onboarding state, scoped to the workspace."""
        return ARMResource(
            type="Microsoft.SecurityInsights/onboardingStates",
            api_version=self.API_VERSIONS["Microsoft.SecurityInsights/onboardingStates"],
            name="default",
            location=None,
            scope="[concat('Microsoft.OperationalInsights/workspaces/', parameters('workspaceName'))]",
            properties={},
            depends_on=[WORKSPACE_ID],
        )

    def _generate_outputs(self) -> dict[str, Any]:
        api_version = self.API_VERSIONS["Microsoft.OperationalInsights/workspaces"]
        return {
            "workspaceName": {
                "type": "string",
                "value": "[parameters('workspaceName')]",
            },
            "workspaceId": {
                "type": "string",
                "value": WORKSPACE_ID,
            },
            "customerId": {
                "type": "string",
                "value": f"[reference({WORKSPACE_ID[1:-1]}, '{api_version}').customerId]",
            },
            "sentinelEnabled": {
                "type": "bool",
                "value": True,
            },
        }

    def export_template(
        self,
        template: dict[str, Any],
        output_path: str,
        indent: int = 2,
    ) -> None:
        """
        Export an ARM template to a file.

        Args:
            template: The ARM template dictionary
            output_path: Path to write the template
            indent: JSON indentation level
        """
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(template, f, indent=indent)

    def validate_template(self, template: dict[str, Any]) -> tuple[bool, list[str]]:
        """
        Validate ARM template for common issues.

        Args:
            template: The ARM template dictionary

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors = []

        # Check required fields
        if "$schema" not in template:
            errors.append("Missing required field: $schema")
        if "contentVersion" not in template:
            errors.append("Missing required field: contentVersion")
        if "resources" not in template:
            errors.append("Missing required field: resources")

        # Check resources
        if "resources" in template:
            for i, resource in enumerate(template["resources"]):
                resource_name = resource.get("name", f"resource_{i}")

                if "type" not in resource:
                    errors.append(f"Resource '{resource_name}': Missing 'type' field")
                if "apiVersion" not in resource:
                    errors.append(f"Resource '{resource_name}': Missing 'apiVersion' field")
                if "name" not in resource:
                    errors.append(f"Resource index {i}: Missing 'name' field")

        # Every parameter referenced by a resource must be declared
        declared = set(template.get("parameters", {}))
        body = json.dumps(template.get("resources", []))
        for name in sorted(set(_referenced_parameters(body)) - declared):
            errors.append(f"Parameter '{name}' is referenced but not declared")

        return (len(errors) == 0, errors)


_PARAMETER_REFERENCE = re.compile(r"parameters\('([^']+)'\)")


def _referenced_parameters(text: str) -> list[str]:
    return _PARAMETER_REFERENCE.findall(text)


def write_parameters_file(values: dict[str, Any], output_path: Path) -> Path:
    """Write an ARM deployment parameters document for `--parameters @file`."""
    document = {
        "$schema": PARAMETERS_SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": {name: {"value": value} for name, value in values.items()},
    }
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    return output_path


def load_template(template_path: Path) -> dict[str, Any]:
    """Read a JSON ARM template."""
    try:
        with open(template_path, encoding="utf-8-sig") as f:
            template = json.load(f)
    except OSError as e:
        raise DeployError(f"Cannot read template {template_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise DeployError(f"Template {template_path} is not valid JSON: {e}") from e

    if not isinstance(template, dict):
        raise DeployError(f"Template {template_path} must contain a JSON object")
    return template


def declared_parameters(template_path: Path) -> Optional[dict[str, Any]]:
    """
    Return the parameter declarations of a JSON template.

    Bicep templates are compiled by the Azure CLI, so their parameters are
    not known here and None is returned.
    """
    if template_path.suffix.lower() != ".json":
        logger.debug(f"Not reading parameters from non-JSON template {template_path}")
        return None
    return load_template(template_path).get("parameters") or {}
