"""
Azure CLI wrapper.

Runs `az` as a subprocess with JSON output and turns failures into
AzureCliError.
"""

import json
import logging
import os
import subprocess
from typing import Any, Callable, Optional

from .exceptions import AzureCliError, AzureCliNotFoundError


logger = logging.getLogger(__name__)

AZURE_CLI_PATH_ENV = "AZURE_CLI_PATH"


def default_executable() -> str:
    """Resolve the az executable name for this platform."""
    configured = os.environ.get(AZURE_CLI_PATH_ENV)
    if configured:
        return configured
    return "az.cmd" if os.name == "nt" else "az"


class AzureCli:
    """
    Thin wrapper around the Azure CLI.

    Every call requests JSON output and is recorded in `history`. The runner
    defaults to subprocess.run and can be replaced, which is how the tests
    script CLI responses.
    """

    def __init__(
        self,
        subscription: Optional[str] = None,
        executable: Optional[str] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.subscription = subscription
        self.executable = executable or default_executable()
        self._runner = runner
        self.history: list[list[str]] = []

    def build_command(self, args: tuple[str, ...], subscription_scoped: bool = True) -> list[str]:
        command = [self.executable, *args, "--output", "json", "--only-show-errors"]
        if subscription_scoped and self.subscription:
            command.extend(["--subscription", self.subscription])
        return command

    def run(self, *args: str, subscription_scoped: bool = True) -> Any:
        """
        Run an az command and return its parsed JSON output.

        Args:
            *args: Command arguments after `az`, e.g. ("group", "show", "--name", "rg")
            subscription_scoped: Whether to append --subscription

        Returns:
            The decoded JSON document, or None if the command printed nothing

        Raises:
            AzureCliNotFoundError: If the executable cannot be started
            AzureCliError: On a non-zero exit or undecodable output
        """
        command = self.build_command(args, subscription_scoped)
        self.history.append(command)
        logger.debug(f"Running: {' '.join(command)}")

        try:
            result = self._runner(command, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise AzureCliNotFoundError(
                f"Azure CLI executable '{self.executable}' not found. "
                "Install it from https://aka.ms/install-azure-cli",
                command,
                returncode=127,
            ) from e

        if result.returncode != 0:
            raise AzureCliError(
                f"az {' '.join(args[:3])} failed with exit code {result.returncode}",
                command,
                returncode=result.returncode,
                stderr=result.stderr or "",
            )

        if result.stderr:
            logger.debug(f"az stderr: {result.stderr.strip()}")

        stdout = (result.stdout or "").strip()
        if not stdout:
            return None

        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise AzureCliError(
                f"az {' '.join(args[:3])} returned output that is not JSON: {e}",
                command,
                returncode=1,
                stderr=stdout[:500],
            ) from e

    def account(self) -> dict[str, Any]:
        """Return the active account (`az account show`)."""
        if self.subscription:
            return self.run("account", "show")
        return self.run("account", "show", subscription_scoped=False)
