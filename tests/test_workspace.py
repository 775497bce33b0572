"""
Tests for workspace provisioning
"""

import json

import pytest

from sentinel_deploy.exceptions import DeployError, DeploymentFailedError
from sentinel_deploy.models import DeploymentSettings, WhatIfResult
from sentinel_deploy.workspace import WorkspaceProvisioner

from conftest import (
    CUSTOMER_ID,
    WORKSPACE_RESOURCE_ID,
    deployment_document,
    group_document,
    workspace_document,
)


@pytest.fixture
def settings():
    return DeploymentSettings(
        prefix="secops",
        environment="prod",
        location="westeurope",
        retention_in_days=180,
        tags={"owner": "secops"},
    )


class TestWorkspaceProvisioner:
    """Tests for WorkspaceProvisioner.provision."""

    def test_provision_new_resource_group(self, azure_cli, fake_az, settings):
        fake_az.add("group", "exists", stdout="false")
        fake_az.add("group", "create", output=group_document())
        fake_az.add("deployment", "group", "create", output=deployment_document())

        info = WorkspaceProvisioner(azure_cli, settings).provision()

        assert info.name == "log-secops-prod"
        assert info.resource_group == "rg-secops-prod"
        assert info.location == "westeurope"
        assert info.resource_id == WORKSPACE_RESOURCE_ID
        assert info.customer_id == CUSTOMER_ID
        assert info.sentinel_enabled is True

    def test_deployment_command(self, azure_cli, fake_az, settings):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document())
        fake_az.add("deployment", "group", "create", output=deployment_document())

        WorkspaceProvisioner(azure_cli, settings).provision()

        args = fake_az.args_of(2)
        assert args[:3] == ["deployment", "group", "create"]
        assert args[args.index("--resource-group") + 1] == "rg-secops-prod"
        assert args[args.index("--name") + 1].startswith("workspace-")
        assert args[args.index("--template-file") + 1].endswith("workspace.json")

    def test_parameters_use_existing_group_location(self, azure_cli, fake_az, settings):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document(location="northeurope"))
        fake_az.add("deployment", "group", "create", output=deployment_document())

        provisioner = WorkspaceProvisioner(azure_cli, settings)
        provisioner.provision()

        parameters = fake_az.parameters[0]
        assert parameters["workspaceName"] == {"value": "log-secops-prod"}
        assert parameters["location"] == {"value": "northeurope"}
        assert parameters["retentionInDays"] == {"value": 180}
        assert parameters["tags"] == {"value": {"owner": "secops"}}
        assert "dailyQuotaGb" not in parameters
        assert provisioner.resource_group.requested_location == "westeurope"

    def test_daily_quota_passed_as_string(self, azure_cli, fake_az, settings):
        settings.daily_quota_gb = 5.0
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document())
        fake_az.add("deployment", "group", "create", output=deployment_document())

        WorkspaceProvisioner(azure_cli, settings).provision()

        assert fake_az.parameters[0]["dailyQuotaGb"] == {"value": "5.0"}

    def test_custom_template_gets_only_declared_parameters(self, azure_cli, fake_az, settings, tmp_path):
        template_path = tmp_path / "workspace.json"
        template_path.write_text(json.dumps({
            "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
            "contentVersion": "1.0.0.0",
            "parameters": {"workspaceName": {"type": "string"}, "location": {"type": "string"}},
            "resources": [],
        }))
        settings.workspace_template = str(template_path)
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document())
        fake_az.add("deployment", "group", "create", output=deployment_document(outputs={}))
        fake_az.add("monitor", "log-analytics", "workspace", "show", output=workspace_document())

        info = WorkspaceProvisioner(azure_cli, settings).provision()

        assert set(fake_az.parameters[0]) == {"workspaceName", "location"}
        args = fake_az.args_of(2)
        assert args[args.index("--template-file") + 1] == str(template_path)

        # Outputs were empty, so the ids come from a workspace lookup
        assert info.resource_id == WORKSPACE_RESOURCE_ID
        assert info.customer_id == CUSTOMER_ID
        assert info.sentinel_enabled is False

    def test_missing_custom_template(self, azure_cli, fake_az, settings, tmp_path):
        settings.workspace_template = str(tmp_path / "missing.bicep")
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document())

        with pytest.raises(DeployError, match="template not found"):
            WorkspaceProvisioner(azure_cli, settings).provision()

    def test_failed_deployment(self, azure_cli, fake_az, settings):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document())
        fake_az.add("deployment", "group", "create", output=deployment_document(state="Failed"))

        with pytest.raises(DeploymentFailedError) as exc_info:
            WorkspaceProvisioner(azure_cli, settings).provision()
        assert exc_info.value.state == "Failed"

    def test_what_if(self, azure_cli, fake_az, settings):
        fake_az.add("group", "exists", stdout="true")
        fake_az.add("group", "show", output=group_document())
        fake_az.add("deployment", "group", "what-if", output={
            "status": "Succeeded",
            "changes": [
                {"resourceId": WORKSPACE_RESOURCE_ID, "changeType": "Create"},
                {"resourceId": WORKSPACE_RESOURCE_ID + "/onboardingStates/default", "changeType": "Create"},
            ],
        })

        provisioner = WorkspaceProvisioner(azure_cli, settings)
        info = provisioner.provision(what_if=True)

        assert isinstance(provisioner.deployment, WhatIfResult)
        assert provisioner.deployment.counts() == {"Create": 2}
        assert "--no-pretty-print" in fake_az.args_of(2)
        assert info.resource_id is None

    def test_what_if_without_resource_group_creates_nothing(self, azure_cli, fake_az, settings):
        fake_az.add("group", "exists", stdout="false")

        provisioner = WorkspaceProvisioner(azure_cli, settings)
        info = provisioner.provision(what_if=True)

        assert len(fake_az.calls) == 1
        assert provisioner.deployment is None
        assert provisioner.resource_group.existed is False
        assert info.location == "westeurope"
