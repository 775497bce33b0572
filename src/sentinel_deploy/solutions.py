"""
Solution packages.

Finds pre-built Sentinel solutions in a checked-out Solutions tree
(`<root>/<Solution>/Package/mainTemplate.json`) and deploys them into a
workspace.
"""

import difflib
import logging
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from .azcli import AzureCli
from .exceptions import DeployError, SolutionNotFoundError, SolutionParameterError
from .models import DeploymentResult, SolutionPackage, WhatIfResult, WorkspaceInfo
from .naming import deployment_name
from .templates import load_template, write_parameters_file
from .workspace import run_group_deployment, show_workspace


logger = logging.getLogger(__name__)

TEMPLATE_NAME = "mainTemplate.json"
UI_DEFINITION_NAME = "createUiDefinition.json"

_VERSION_ZIP = re.compile(r"^(\d+(?:\.\d+)*)\.zip$")


def _normalize(name: str) -> str:
    return "".join(c for c in name.lower() if c not in " -_")


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


class SolutionCatalog:
    """Discovers solution packages under a Solutions directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _template_path(self, solution_dir: Path) -> Optional[Path]:
        for candidate in (solution_dir / "Package" / TEMPLATE_NAME, solution_dir / TEMPLATE_NAME):
            if candidate.is_file():
                return candidate
        return None

    def _package_version(self, template: dict[str, Any], package_dir: Path) -> Optional[str]:
        version = (template.get("variables") or {}).get("_solutionVersion")
        if not version:
            version = (template.get("metadata") or {}).get("version")
        if version:
            return str(version)

        # Released packages ship as <version>.zip next to the template
        zipped = [m.group(1) for m in (_VERSION_ZIP.match(p.name) for p in package_dir.glob("*.zip")) if m]
        if zipped:
            return max(zipped, key=_version_key)
        return None

    def load(self, solution_dir: Path) -> Optional[SolutionPackage]:
        """Load one solution directory, or None if it has no template."""
        template_path = self._template_path(solution_dir)
        if template_path is None:
            return None

        template = load_template(template_path)
        return SolutionPackage(
            name=solution_dir.name,
            path=solution_dir,
            template_path=template_path,
            version=self._package_version(template, template_path.parent),
            parameters=template.get("parameters") or {},
            has_ui_definition=(template_path.parent / UI_DEFINITION_NAME).is_file(),
        )

    def packages(self) -> list[SolutionPackage]:
        """
        List every solution with a deployable template.

        Raises:
            SolutionNotFoundError: If the Solutions directory does not exist
        """
        if not self.root.is_dir():
            raise SolutionNotFoundError(f"Solutions directory not found: {self.root}")

        found = []
        for solution_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            try:
                package = self.load(solution_dir)
            except DeployError as e:
                logger.warning(f"Skipping solution '{solution_dir.name}': {e}")
                continue
            if package is not None:
                found.append(package)
        return found

    def find(self, name: str) -> SolutionPackage:
        """
        Find a solution by name.

        Matches exactly first, then case-insensitively, then ignoring spaces,
        hyphens and underscores.
        """
        direct = self.root / name
        if direct.is_dir():
            package = self.load(direct)
            if package is not None:
                return package

        packages = self.packages()
        for matches in (
            lambda p: p.name.lower() == name.lower(),
            lambda p: _normalize(p.name) == _normalize(name),
        ):
            candidates = [p for p in packages if matches(p)]
            if len(candidates) == 1:
                return candidates[0]
            if len(candidates) > 1:
                raise SolutionNotFoundError(
                    f"Solution name '{name}' is ambiguous",
                    [p.name for p in candidates],
                )

        suggestions = difflib.get_close_matches(name, [p.name for p in packages], n=3, cutoff=0.5)
        raise SolutionNotFoundError(f"Solution '{name}' not found in {self.root}", suggestions)


class SolutionDeployer:
    """Deploys a solution package into a workspace's resource group."""

    # Conventional solution template parameters and the workspace field they take
    WORKSPACE_PARAMETERS = {
        "workspace": "name",
        "workspaceName": "name",
        "workspace-location": "location",
        "workspaceLocation": "location",
        "location": "location",
    }

    def __init__(self, cli: AzureCli):
        self.cli = cli

    def build_parameters(
        self,
        package: SolutionPackage,
        workspace: WorkspaceInfo,
        extra: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Map workspace details and extra values onto the template's parameters.

        Raises:
            SolutionParameterError: If required parameters remain unset
        """
        values: dict[str, Any] = {}
        for parameter, field in self.WORKSPACE_PARAMETERS.items():
            if parameter in package.parameters:
                values[parameter] = getattr(workspace, field)

        for key, value in (extra or {}).items():
            if key in package.parameters:
                values[key] = value
            else:
                logger.warning(f"Solution '{package.name}' does not declare parameter '{key}'; ignoring it")

        missing = [name for name in package.required_parameters if name not in values]
        if missing:
            raise SolutionParameterError(package.name, missing)
        return values

    def deploy(
        self,
        package: SolutionPackage,
        workspace: WorkspaceInfo,
        extra: Optional[dict[str, Any]] = None,
        what_if: bool = False,
    ) -> Union[DeploymentResult, WhatIfResult]:
        """Deploy (or preview) the solution into the workspace's resource group."""
        parameters = self.build_parameters(package, workspace, extra)
        logger.info(
            f"Deploying solution '{package.name}' {package.version or ''} "
            f"into workspace '{workspace.name}'"
        )

        with tempfile.TemporaryDirectory(prefix="sentinel-deploy-") as tmp:
            parameters_path = write_parameters_file(parameters, Path(tmp) / "solution.parameters.json")
            return run_group_deployment(
                self.cli,
                workspace.resource_group,
                deployment_name(f"solution-{package.name}"),
                package.template_path,
                parameters_path,
                what_if=what_if,
            )


def lookup_workspace(cli: AzureCli, resource_group: str, name: str) -> WorkspaceInfo:
    """Describe an existing workspace so a solution can be deployed into it."""
    data = show_workspace(cli, resource_group, name)
    if not data:
        raise DeployError(f"Workspace '{name}' not found in resource group '{resource_group}'")
    location = data.get("location")
    if not location:
        raise DeployError(f"Workspace '{name}' in resource group '{resource_group}' reported no location")
    return WorkspaceInfo(
        name=data.get("name", name),
        resource_group=resource_group,
        location=location,
        resource_id=data.get("id"),
        customer_id=data.get("customerId"),
    )
