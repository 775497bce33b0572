"""
Naming conventions for the resources this tool creates.

Resource group:  rg-{prefix}-{environment}
Workspace:       log-{prefix}-{environment}
Deployment:      {kind}-{UTC timestamp}
"""

import re
from datetime import datetime, timezone
from typing import Optional

from .exceptions import NamingError


RESOURCE_GROUP_MAX_LENGTH = 90
WORKSPACE_MIN_LENGTH = 4
WORKSPACE_MAX_LENGTH = 63
DEPLOYMENT_MAX_LENGTH = 64

_WORKSPACE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*[A-Za-z0-9]$")


def _collapse_dashes(value: str) -> str:
    while "--" in value:
        value = value.replace("--", "-")
    return value


def resource_group_name(prefix: str, environment: str) -> str:
    """Build the conventional resource group name."""
    raw = f"rg-{prefix}-{environment}"
    safe = "".join(c if c.isalnum() or c in "-_.()" else "-" for c in raw)
    safe = _collapse_dashes(safe.lower())
    return safe[:RESOURCE_GROUP_MAX_LENGTH].rstrip(".-")


def workspace_name(prefix: str, environment: str) -> str:
    """Build the conventional Log Analytics workspace name."""
    raw = f"log-{prefix}-{environment}"
    safe = re.sub(r"[^a-z0-9]+", "-", raw.lower())
    safe = _collapse_dashes(safe)[:WORKSPACE_MAX_LENGTH].strip("-")
    validate_workspace_name(safe)
    return safe


def validate_workspace_name(name: str) -> None:
    """
    Check a workspace name against the Log Analytics rules.

    Names are 4-63 characters of letters, digits and hyphens, and must start
    and end with a letter or digit.
    """
    if not WORKSPACE_MIN_LENGTH <= len(name) <= WORKSPACE_MAX_LENGTH:
        raise NamingError(
            f"Workspace name '{name}' must be between {WORKSPACE_MIN_LENGTH} "
            f"and {WORKSPACE_MAX_LENGTH} characters"
        )
    if not _WORKSPACE_PATTERN.match(name):
        raise NamingError(
            f"Workspace name '{name}' may only contain letters, digits and hyphens, "
            "and must start and end with a letter or digit"
        )


def validate_resource_group_name(name: str) -> None:
    if not name or len(name) > RESOURCE_GROUP_MAX_LENGTH:
        raise NamingError(
            f"Resource group name '{name}' must be between 1 and {RESOURCE_GROUP_MAX_LENGTH} characters"
        )
    if name.endswith("."):
        raise NamingError(f"Resource group name '{name}' cannot end with a period")
    invalid = sorted({c for c in name if not (c.isalnum() or c in "-_.()")})
    if invalid:
        raise NamingError(
            f"Resource group name '{name}' contains invalid characters: {''.join(invalid)}"
        )


def deployment_name(kind: str, now: Optional[datetime] = None) -> str:
    """Build a unique, sortable deployment name such as `workspace-20240101120000`."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y%m%d%H%M%S")
    safe_kind = _collapse_dashes("".join(c if c.isalnum() else "-" for c in kind.lower())).strip("-")
    safe_kind = safe_kind[:DEPLOYMENT_MAX_LENGTH - len(stamp) - 1].rstrip("-") or "deployment"
    return f"{safe_kind}-{stamp}"


def normalize_location(location: str) -> str:
    """Turn a display location ("East US") into its short form ("eastus")."""
    return location.replace(" ", "").lower()
