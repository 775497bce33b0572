"""
Resource group resolution.

An existing group is reused in place and its location wins over whatever the
operator asked for. A missing group is created in the requested location, or
in DEFAULT_LOCATION when none was given.
"""

import logging
from typing import Optional

from .azcli import AzureCli
from .models import ResourceGroup
from .naming import normalize_location


logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "eastus"


class ResourceGroupResolver:
    """Finds or creates the target resource group."""

    def __init__(self, cli: AzureCli):
        self.cli = cli

    def exists(self, name: str) -> bool:
        return bool(self.cli.run("group", "exists", "--name", name))

    def ensure(
        self,
        name: str,
        location: Optional[str] = None,
        tags: Optional[dict[str, str]] = None,
        create: bool = True,
    ) -> ResourceGroup:
        """
        Return the resource group, creating it when it does not exist.

        Args:
            name: Resource group name
            location: Requested location; only used when the group is created
            tags: Tags applied on creation
            create: When False a missing group is described but not created

        Returns:
            ResourceGroup with `existed` set accordingly
        """
        if self.exists(name):
            group = ResourceGroup.from_cli(self.cli.run("group", "show", "--name", name), existed=True)
            if location and normalize_location(location) != normalize_location(group.location):
                logger.warning(
                    f"Resource group '{name}' already exists in '{group.location}'; "
                    f"ignoring requested location '{location}'"
                )
                group.requested_location = location
            else:
                logger.info(f"Using existing resource group '{name}' in '{group.location}'")
            return group

        target = normalize_location(location) if location else DEFAULT_LOCATION
        if not location:
            logger.info(f"No location configured; using default location '{target}' for '{name}'")

        if not create:
            logger.info(f"Resource group '{name}' does not exist and would be created in '{target}'")
            return ResourceGroup(name=name, location=target, existed=False)

        args = ["group", "create", "--name", name, "--location", target]
        if tags:
            args.append("--tags")
            args.extend(f"{key}={value}" for key, value in tags.items())

        group = ResourceGroup.from_cli(self.cli.run(*args), existed=False)
        logger.info(f"Created resource group '{name}' in '{group.location}'")
        return group
