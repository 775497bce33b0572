"""
Exceptions raised by the deployment tooling.

Library code raises these; the CLI turns them into a console message and a
process exit code.
"""

from typing import Optional


class DeployError(Exception):
    """Base class for all deployment errors."""

    exit_code = 1


class SettingsError(DeployError):
    """The settings file or an override could not be loaded or validated."""

    exit_code = 2


class NamingError(DeployError):
    """A resource name breaks the Azure naming rules."""

    exit_code = 2


class AzureCliError(DeployError):
    """The Azure CLI exited with a failure or printed unreadable output."""

    def __init__(self, message: str, command: list[str], returncode: int = 1, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    @property
    def exit_code(self) -> int:
        # Signal-killed processes report a negative return code
        return self.returncode if self.returncode > 0 else 1

    def __str__(self) -> str:
        detail = self.stderr.strip()
        if detail:
            return f"{self.args[0]}\n{detail}"
        return self.args[0]


class AzureCliNotFoundError(AzureCliError):
    """The `az` executable is not installed or not on PATH."""


class DeploymentFailedError(DeployError):
    """A deployment finished in a state other than Succeeded."""

    def __init__(self, deployment_name: str, state: Optional[str]):
        super().__init__(f"Deployment '{deployment_name}' finished with state: {state or 'Unknown'}")
        self.deployment_name = deployment_name
        self.state = state


class SolutionNotFoundError(DeployError):
    """No solution package matches the requested name."""

    def __init__(self, message: str, suggestions: Optional[list[str]] = None):
        if suggestions:
            message = f"{message} (did you mean: {', '.join(suggestions)}?)"
        super().__init__(message)
        self.suggestions = suggestions or []


class SolutionParameterError(DeployError):
    """A solution template requires parameters that were not supplied."""

    def __init__(self, solution: str, missing: list[str]):
        super().__init__(
            f"Solution '{solution}' requires parameters that were not set: {', '.join(missing)}"
        )
        self.solution = solution
        self.missing = missing
