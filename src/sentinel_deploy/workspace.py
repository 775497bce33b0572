"""
Workspace provisioning.

Resolves the resource group, deploys the workspace template into it and
reads back the workspace identifiers.
"""

import logging
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from .azcli import AzureCli
from .exceptions import DeployError, DeploymentFailedError
from .models import (
    DeploymentSettings,
    DeploymentResult,
    ResourceGroup,
    WhatIfResult,
    WorkspaceInfo,
)
from .naming import deployment_name
from .resource_group import ResourceGroupResolver
from .settings import resolve_names
from .templates import WorkspaceTemplateGenerator, declared_parameters, write_parameters_file


logger = logging.getLogger(__name__)


def run_group_deployment(
    cli: AzureCli,
    resource_group: str,
    name: str,
    template_file: Path,
    parameters_file: Path,
    what_if: bool = False,
) -> Union[DeploymentResult, WhatIfResult]:
    """
    Run `az deployment group create` (or `what-if`) for one template.

    Raises:
        DeploymentFailedError: If the deployment did not succeed
    """
    operation = "what-if" if what_if else "create"
    args = [
        "deployment", "group", operation,
        "--resource-group", resource_group,
        "--name", name,
        "--template-file", str(template_file),
        "--parameters", f"@{parameters_file}",
    ]
    if what_if:
        args.append("--no-pretty-print")
        return WhatIfResult.from_cli(cli.run(*args), deployment_name=name)

    logger.info(f"Starting deployment '{name}' in resource group '{resource_group}'")
    data = cli.run(*args)
    if not isinstance(data, dict):
        raise DeploymentFailedError(name, None)

    result = DeploymentResult.from_cli(data, resource_group)
    if not result.succeeded:
        raise DeploymentFailedError(name, result.provisioning_state)
    logger.info(f"Deployment '{name}' succeeded")
    return result


def show_workspace(cli: AzureCli, resource_group: str, name: str) -> dict[str, Any]:
    """Return `az monitor log-analytics workspace show` for an existing workspace."""
    return cli.run(
        "monitor", "log-analytics", "workspace", "show",
        "--resource-group", resource_group,
        "--workspace-name", name,
    )


class WorkspaceProvisioner:
    """Provisions the Log Analytics workspace with Sentinel onboarded."""

    def __init__(self, cli: AzureCli, settings: DeploymentSettings):
        self.cli = cli
        self.settings = settings
        self.resolver = ResourceGroupResolver(cli)
        self.generator = WorkspaceTemplateGenerator()

        self.resource_group: Optional[ResourceGroup] = None
        self.deployment: Optional[Union[DeploymentResult, WhatIfResult]] = None

    def template_parameters(self, workspace: str, location: str) -> dict[str, Any]:
        parameters: dict[str, Any] = {
            "workspaceName": workspace,
            "location": location,
            "sku": self.settings.sku,
            "retentionInDays": self.settings.retention_in_days,
            "tags": self.settings.tags,
        }
        if self.settings.daily_quota_gb:
            parameters["dailyQuotaGb"] = str(self.settings.daily_quota_gb)
        return parameters

    def _prepare_template(self, work_dir: Path) -> Path:
        if self.settings.workspace_template:
            template_path = Path(self.settings.workspace_template)
            if not template_path.is_file():
                raise DeployError(f"Workspace template not found: {template_path}")
            logger.info(f"Using workspace template {template_path}")
            return template_path

        template = self.generator.generate(
            sku=self.settings.sku,
            retention_in_days=self.settings.retention_in_days,
            daily_quota_gb=self.settings.daily_quota_gb,
            tags=self.settings.tags,
        )
        is_valid, errors = self.generator.validate_template(template)
        if not is_valid:
            raise DeployError("Generated workspace template is invalid: " + "; ".join(errors))

        template_path = work_dir / "workspace.json"
        self.generator.export_template(template, str(template_path))
        return template_path

    def provision(self, what_if: bool = False) -> WorkspaceInfo:
        """
        Ensure the resource group and deploy the workspace.

        Args:
            what_if: Preview the deployment instead of running it

        Returns:
            WorkspaceInfo for the deployed (or previewed) workspace
        """
        resource_group_name, workspace = resolve_names(self.settings)
        self.resource_group = self.resolver.ensure(
            resource_group_name,
            location=self.settings.location,
            tags=self.settings.tags,
            create=not what_if,
        )
        location = self.resource_group.location
        info = WorkspaceInfo(name=workspace, resource_group=resource_group_name, location=location)

        # what-if needs an existing resource group to run against
        if what_if and not self.resource_group.existed:
            logger.info(f"Skipping what-if for '{workspace}': resource group does not exist yet")
            return info

        with tempfile.TemporaryDirectory(prefix="sentinel-deploy-") as tmp:
            work_dir = Path(tmp)
            template_path = self._prepare_template(work_dir)

            parameters = self.template_parameters(workspace, location)
            declared = declared_parameters(template_path)
            if declared is not None:
                skipped = sorted(set(parameters) - set(declared))
                if skipped:
                    logger.debug(f"Template does not declare {skipped}; not passing them")
                parameters = {k: v for k, v in parameters.items() if k in declared}

            parameters_path = write_parameters_file(parameters, work_dir / "workspace.parameters.json")
            self.deployment = run_group_deployment(
                self.cli,
                resource_group_name,
                deployment_name("workspace"),
                template_path,
                parameters_path,
                what_if=what_if,
            )

        if what_if:
            return info

        outputs = self.deployment.outputs
        info.name = outputs.get("workspaceName") or workspace
        info.resource_id = outputs.get("workspaceId")
        info.customer_id = outputs.get("customerId")
        info.sentinel_enabled = bool(outputs.get("sentinelEnabled", False))

        # Templates that do not output the ids need a lookup
        if not info.resource_id or not info.customer_id:
            data = show_workspace(self.cli, resource_group_name, info.name) or {}
            info.resource_id = info.resource_id or data.get("id")
            info.customer_id = info.customer_id or data.get("customerId")
            info.location = data.get("location") or info.location

        return info
