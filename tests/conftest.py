"""
Shared fixtures.

The Azure CLI is never executed: FakeAzureRunner stands in for
subprocess.run and answers az calls from scripted responses.
"""

import json
import subprocess
from pathlib import Path

import pytest

from sentinel_deploy.azcli import AzureCli


SAMPLES_DIR = Path(__file__).parent.parent / "samples"
SOLUTIONS_DIR = SAMPLES_DIR / "Solutions"

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
WORKSPACE_RESOURCE_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-secops-prod"
    "/providers/Microsoft.OperationalInsights/workspaces/log-secops-prod"
)
CUSTOMER_ID = "11111111-2222-3333-4444-555555555555"

ACCOUNT = {
    "id": SUBSCRIPTION_ID,
    "name": "Security Prod",
    "tenantId": "99999999-0000-0000-0000-000000000000",
    "state": "Enabled",
}


def group_document(name="rg-secops-prod", location="westeurope"):
    return {
        "id": f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{name}",
        "location": location,
        "name": name,
        "properties": {"provisioningState": "Succeeded"},
        "tags": None,
    }


def deployment_document(name="workspace-20240101120000", state="Succeeded", outputs=None):
    if outputs is None:
        outputs = {
            "workspaceName": {"type": "String", "value": "log-secops-prod"},
            "workspaceId": {"type": "String", "value": WORKSPACE_RESOURCE_ID},
            "customerId": {"type": "String", "value": CUSTOMER_ID},
            "sentinelEnabled": {"type": "Bool", "value": True},
        }
    return {
        "id": f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-secops-prod/providers/"
              f"Microsoft.Resources/deployments/{name}",
        "name": name,
        "resourceGroup": "rg-secops-prod",
        "properties": {
            "provisioningState": state,
            "correlationId": "abcdef01-2345-6789-abcd-ef0123456789",
            "duration": "PT1M12.5S",
            "timestamp": "2024-01-01T12:01:12.500000+00:00",
            "outputs": outputs,
        },
    }


def workspace_document(name="log-secops-prod", location="westeurope"):
    return {
        "id": WORKSPACE_RESOURCE_ID,
        "name": name,
        "location": location,
        "customerId": CUSTOMER_ID,
        "retentionInDays": 90,
        "sku": {"name": "PerGB2018"},
    }


class FakeAzureRunner:
    """Scripted replacement for subprocess.run."""

    def __init__(self):
        self.responses = []
        self.calls = []
        self.parameters = []

    def add(self, *prefix, output=None, stdout="", returncode=0, stderr=""):
        """Answer calls whose arguments start with `prefix`."""
        if output is not None:
            stdout = json.dumps(output)
        self.responses.append((prefix, returncode, stdout, stderr))
        return self

    def args_of(self, index):
        return self.calls[index][1:]

    def __call__(self, command, capture_output=True, text=True):
        self.calls.append(command)
        args = command[1:]

        # Parameter files live in a temp dir, so read them while they exist
        if "--parameters" in args:
            value = args[args.index("--parameters") + 1]
            if value.startswith("@"):
                with open(value[1:], encoding="utf-8") as f:
                    self.parameters.append(json.load(f)["parameters"])

        for prefix, returncode, stdout, stderr in self.responses:
            if tuple(args[:len(prefix)]) == prefix:
                return subprocess.CompletedProcess(command, returncode, stdout, stderr)
        raise AssertionError(f"Unexpected az call: {' '.join(command)}")


@pytest.fixture
def fake_az():
    return FakeAzureRunner()


@pytest.fixture
def azure_cli(fake_az):
    return AzureCli(subscription=SUBSCRIPTION_ID, executable="az", runner=fake_az)
