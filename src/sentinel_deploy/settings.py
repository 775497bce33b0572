"""
Settings resolution.

Values are layered: model defaults, then the JSON settings file, then
environment variables, then command-line overrides.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from .exceptions import SettingsError
from .models import DeploymentSettings
from . import naming


logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "sentinel-deploy.json"
SETTINGS_ENV_VAR = "SENTINEL_DEPLOY_SETTINGS"
ENV_PREFIX = "SENTINEL_DEPLOY_"

# Variables shared with azd and other Azure tooling
AZURE_ENV_VARS = {
    "AZURE_SUBSCRIPTION_ID": "subscription_id",
    "AZURE_LOCATION": "location",
    "AZURE_RESOURCE_GROUP": "resource_group",
}

# Fields that can be set from a plain string environment variable
SCALAR_FIELDS = (
    "subscription_id",
    "prefix",
    "environment",
    "location",
    "resource_group",
    "workspace_name",
    "sku",
    "retention_in_days",
    "daily_quota_gb",
    "workspace_template",
    "solutions_path",
    "solution",
)


def _read_settings_file(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SettingsError(f"Cannot read settings file {path}: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SettingsError(f"Settings file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a JSON object")

    logger.debug(f"Loaded settings file {path} with keys: {sorted(data)}")
    return data


def find_settings_file(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> Optional[Path]:
    """
    Locate the settings file to use.

    An explicit path (argument or environment variable) must exist. The
    default file in the working directory is optional.
    """
    env = os.environ if env is None else env
    explicit = path or env.get(SETTINGS_ENV_VAR)
    if explicit:
        settings_path = Path(explicit)
        if not settings_path.is_file():
            raise SettingsError(f"Settings file not found: {settings_path}")
        return settings_path

    default_path = (cwd or Path.cwd()) / DEFAULT_SETTINGS_FILE
    if default_path.is_file():
        return default_path
    return None


def _environment_values(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for var, field in AZURE_ENV_VARS.items():
        if env.get(var):
            values[field] = env[var]

    # Tool-specific variables take precedence over the shared Azure ones
    for field in SCALAR_FIELDS:
        var = f"{ENV_PREFIX}{field.upper()}"
        if env.get(var):
            values[field] = env[var]

    return values


def load_settings(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    cwd: Optional[Path] = None,
) -> DeploymentSettings:
    """
    Resolve the effective deployment settings.

    Args:
        path: Explicit settings file path
        env: Environment mapping (defaults to os.environ)
        overrides: Values from command-line flags; None values are ignored
        cwd: Directory searched for the default settings file

    Returns:
        Validated DeploymentSettings

    Raises:
        SettingsError: If the file cannot be read or the values are invalid
    """
    env = os.environ if env is None else env

    values: dict[str, Any] = {}
    settings_path = find_settings_file(path, env, cwd)
    if settings_path is not None:
        values.update(_read_settings_file(settings_path))

    values.update(_environment_values(env))

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    try:
        return DeploymentSettings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        source = f" ({settings_path})" if settings_path else ""
        raise SettingsError(f"Invalid settings{source}: {problems}") from e


def resolve_names(settings: DeploymentSettings) -> tuple[str, str]:
    """Return (resource_group, workspace_name), honoring explicit names."""
    if settings.resource_group:
        naming.validate_resource_group_name(settings.resource_group)
        resource_group = settings.resource_group
    else:
        resource_group = naming.resource_group_name(settings.prefix, settings.environment)

    if settings.workspace_name:
        naming.validate_workspace_name(settings.workspace_name)
        workspace = settings.workspace_name
    else:
        workspace = naming.workspace_name(settings.prefix, settings.environment)

    return resource_group, workspace
