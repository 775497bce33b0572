"""
Sentinel Workspace Deployment Tool

This package provisions a Log Analytics workspace with Microsoft Sentinel and
deploys pre-built solution packages into it through the Azure CLI.
"""

__version__ = "1.0.0"
__author__ = "Sentinel Deploy Team"

from .azcli import AzureCli
from .resource_group import ResourceGroupResolver
from .settings import load_settings
from .solutions import SolutionCatalog, SolutionDeployer
from .templates import WorkspaceTemplateGenerator
from .workspace import WorkspaceProvisioner

__all__ = [
    "AzureCli",
    "ResourceGroupResolver",
    "load_settings",
    "SolutionCatalog",
    "SolutionDeployer",
    "WorkspaceTemplateGenerator",
    "WorkspaceProvisioner",
]
