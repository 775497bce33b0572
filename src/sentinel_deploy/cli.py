"""
CLI Interface for the Sentinel workspace deployment tool

Provides commands to provision a Log Analytics workspace with Microsoft
Sentinel and to deploy pre-built solution packages into it.
"""

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax

from . import __version__
from .azcli import AzureCli
from .exceptions import DeployError, SettingsError
from .models import DeploymentResult, DeploymentSettings, ProvisionSummary, WhatIfResult
from .settings import load_settings, resolve_names
from .solutions import SolutionCatalog, SolutionDeployer, lookup_workspace
from .templates import WorkspaceTemplateGenerator
from .workspace import WorkspaceProvisioner


console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def print_banner():
    """Print the application banner."""
    console.print(f"[bold blue]Sentinel Workspace Deployment[/bold blue] [dim]v{__version__}[/dim]\n")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
    )


@contextmanager
def _exit_on_error():
    """Turn DeployError into a console message and an exit code."""
    try:
        yield
    except DeployError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        sys.exit(e.exit_code)


def workspace_options(func):
    """Options shared by every command that targets a workspace."""
    options = [
        click.option("--subscription", help="Azure subscription ID or name"),
        click.option("--prefix", help="Naming prefix (default: sentinel)"),
        click.option("--environment", "-e", help="Environment name used in resource names (default: dev)"),
        click.option("--location", "-l", help="Azure region for a new resource group"),
        click.option("--resource-group", "-g", help="Resource group name (overrides the naming convention)"),
        click.option("--workspace-name", "-w", help="Workspace name (overrides the naming convention)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def output_options(func):
    """--what-if and --format, shared by the deploying commands."""
    func = click.option(
        "--format", "-f", "output_format",
        type=click.Choice(["text", "json"]),
        default="text",
        help="Summary format",
    )(func)
    func = click.option(
        "--what-if",
        is_flag=True,
        help="Preview changes with az deployment what-if instead of deploying",
    )(func)
    return func


def _load(ctx: click.Context, **overrides: Any) -> DeploymentSettings:
    renamed = {
        "subscription_id": overrides.pop("subscription", None),
    }
    renamed.update(overrides)
    with _exit_on_error():
        return load_settings(path=ctx.obj.get("settings_path"), overrides=renamed)


def _progress(output_format: str) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
        disable=output_format == "json",
    )


def _parse_parameters(values: tuple[str, ...]) -> dict[str, Any]:
    """Parse repeated KEY=VALUE options; values that are valid JSON are decoded."""
    parsed: dict[str, Any] = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{item}'", param_hint="--parameter")
        try:
            parsed[key] = json.loads(raw)
        except json.JSONDecodeError:
            parsed[key] = raw
    return parsed


def _record_account(cli: AzureCli, summary: ProvisionSummary) -> None:
    account = cli.account() or {}
    summary.subscription_id = account.get("id")
    summary.subscription_name = account.get("name")
    logger.debug(f"Using subscription {summary.subscription_name} ({summary.subscription_id})")


def _record_deployment(summary: ProvisionSummary, deployment, field: str) -> None:
    if isinstance(deployment, WhatIfResult):
        summary.what_if.append(deployment)
    elif isinstance(deployment, DeploymentResult):
        setattr(summary, field, deployment)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--settings", "-s", "settings_path",
    type=click.Path(dir_okay=False),
    help="Settings file (default: ./sentinel-deploy.json or $SENTINEL_DEPLOY_SETTINGS)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging, including every az call")
@click.pass_context
def main(ctx, settings_path: Optional[str], verbose: bool):
    """
    Sentinel Workspace Deployment

    Provision a Log Analytics workspace with Microsoft Sentinel and deploy
    pre-built solution packages into it using the Azure CLI.
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings_path"] = settings_path


@main.command()
@workspace_options
@click.option("--retention-days", type=int, help="Workspace data retention in days (30-730)")
@output_options
@click.pass_context
def provision(ctx, retention_days: Optional[int], what_if: bool, output_format: str, **options):
    """
    Create the resource group (if needed) and deploy the workspace.

    An existing resource group is reused and its location is kept.
    """
    settings = _load(ctx, retention_in_days=retention_days, **options)
    if output_format == "text":
        print_banner()

    cli = AzureCli(subscription=settings.subscription_id)
    summary = ProvisionSummary()

    with _exit_on_error(), _progress(output_format) as progress:
        task = progress.add_task("Checking Azure account...", total=None)
        _record_account(cli, summary)
        progress.update(task, completed=True)

        task = progress.add_task("Provisioning workspace...", total=None)
        provisioner = WorkspaceProvisioner(cli, settings)
        summary.workspace = provisioner.provision(what_if=what_if)
        summary.resource_group = provisioner.resource_group
        _record_deployment(summary, provisioner.deployment, "workspace_deployment")
        progress.update(task, completed=True)

    _print_summary(summary, output_format)


@main.command("deploy-solution")
@click.argument("name", required=False)
@workspace_options
@click.option("--solutions-path", "-p", type=click.Path(file_okay=False), help="Solutions directory")
@click.option(
    "--parameter", "-P", "parameters",
    multiple=True,
    metavar="KEY=VALUE",
    help="Extra solution template parameter (repeatable; JSON values are decoded)",
)
@output_options
@click.pass_context
def deploy_solution(ctx, name: Optional[str], solutions_path: Optional[str], parameters: tuple[str, ...],
                    what_if: bool, output_format: str, **options):
    """
    Deploy a solution package into an existing workspace.

    NAME: Solution directory name (default: the `solution` setting)
    """
    settings = _load(ctx, solutions_path=solutions_path, solution=name, **options)
    extra = {**settings.solution_parameters, **_parse_parameters(parameters)}
    if output_format == "text":
        print_banner()

    cli = AzureCli(subscription=settings.subscription_id)
    summary = ProvisionSummary()

    with _exit_on_error(), _progress(output_format) as progress:
        package = _find_solution(settings)
        summary.solution = package.name

        task = progress.add_task("Locating workspace...", total=None)
        _record_account(cli, summary)
        resource_group, workspace_name = resolve_names(settings)
        summary.workspace = lookup_workspace(cli, resource_group, workspace_name)
        progress.update(task, completed=True)

        task = progress.add_task(f"Deploying solution {package.name}...", total=None)
        deployment = SolutionDeployer(cli).deploy(package, summary.workspace, extra, what_if=what_if)
        _record_deployment(summary, deployment, "solution_deployment")
        progress.update(task, completed=True)

    _print_summary(summary, output_format)


@main.command()
@click.argument("name", required=False)
@workspace_options
@click.option("--retention-days", type=int, help="Workspace data retention in days (30-730)")
@click.option("--solutions-path", "-p", type=click.Path(file_okay=False), help="Solutions directory")
@click.option(
    "--parameter", "-P", "parameters",
    multiple=True,
    metavar="KEY=VALUE",
    help="Extra solution template parameter (repeatable; JSON values are decoded)",
)
@output_options
@click.pass_context
def deploy(ctx, name: Optional[str], retention_days: Optional[int], solutions_path: Optional[str],
           parameters: tuple[str, ...], what_if: bool, output_format: str, **options):
    """
    Provision the workspace, then deploy a solution into it.

    NAME: Solution directory name (default: the `solution` setting)
    """
    settings = _load(
        ctx,
        retention_in_days=retention_days,
        solutions_path=solutions_path,
        solution=name,
        **options,
    )
    extra = {**settings.solution_parameters, **_parse_parameters(parameters)}
    if output_format == "text":
        print_banner()

    cli = AzureCli(subscription=settings.subscription_id)
    summary = ProvisionSummary()

    with _exit_on_error(), _progress(output_format) as progress:
        # Fail on a bad solution name before anything is created
        package = _find_solution(settings)
        summary.solution = package.name

        task = progress.add_task("Checking Azure account...", total=None)
        _record_account(cli, summary)
        progress.update(task, completed=True)

        task = progress.add_task("Provisioning workspace...", total=None)
        provisioner = WorkspaceProvisioner(cli, settings)
        summary.workspace = provisioner.provision(what_if=what_if)
        summary.resource_group = provisioner.resource_group
        _record_deployment(summary, provisioner.deployment, "workspace_deployment")
        progress.update(task, completed=True)

        if what_if and not summary.resource_group.existed:
            logger.warning("Skipping solution what-if: resource group does not exist yet")
        else:
            task = progress.add_task(f"Deploying solution {package.name}...", total=None)
            deployment = SolutionDeployer(cli).deploy(package, summary.workspace, extra, what_if=what_if)
            _record_deployment(summary, deployment, "solution_deployment")
            progress.update(task, completed=True)

    _print_summary(summary, output_format)


@main.command()
@click.option("--solutions-path", "-p", type=click.Path(file_okay=False), help="Solutions directory")
@click.pass_context
def solutions(ctx, solutions_path: Optional[str]):
    """
    List the solution packages available for deployment.
    """
    settings = _load(ctx, solutions_path=solutions_path)

    with _exit_on_error():
        packages = SolutionCatalog(settings.solutions_path).packages()

    if not packages:
        console.print(f"[yellow]No solution packages found in {settings.solutions_path}.[/yellow]")
        return

    console.print(f"\n[green]Found {len(packages)} solution package(s):[/green]\n")

    table = Table()
    table.add_column("Solution", style="cyan")
    table.add_column("Version")
    table.add_column("Template")
    table.add_column("Required parameters")
    table.add_column("UI definition", justify="center")

    root = Path(settings.solutions_path)
    for package in packages:
        try:
            template = str(package.template_path.relative_to(root))
        except ValueError:
            template = str(package.template_path)
        table.add_row(
            package.name,
            package.version or "-",
            template,
            ", ".join(package.required_parameters) or "-",
            "yes" if package.has_ui_definition else "no",
        )

    console.print(table)


@main.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the template to this file")
@click.option("--retention-days", type=int, help="Default retention in days (30-730)")
@click.option("--sku", help="Default workspace pricing tier")
@click.pass_context
def template(ctx, output: Optional[str], retention_days: Optional[int], sku: Optional[str]):
    """
    Export the workspace ARM template used when no template is configured.
    """
    settings = _load(ctx, retention_in_days=retention_days, sku=sku)

    generator = WorkspaceTemplateGenerator()
    arm_template = generator.generate(
        sku=settings.sku,
        retention_in_days=settings.retention_in_days,
        daily_quota_gb=settings.daily_quota_gb,
        tags=settings.tags,
    )

    is_valid, errors = generator.validate_template(arm_template)
    if not is_valid:
        err_console.print("\n[yellow]Template validation warnings:[/yellow]")
        for error in errors:
            err_console.print(f"  - {error}")

    if output:
        generator.export_template(arm_template, output)
        console.print(f"[green]Template saved to: {output}[/green]")
    else:
        console.print(Syntax(json.dumps(arm_template, indent=2), "json"))


def _find_solution(settings: DeploymentSettings):
    if not settings.solution:
        raise SettingsError("No solution given; pass NAME or set 'solution' in the settings file")
    return SolutionCatalog(settings.solutions_path).find(settings.solution)


def _print_summary(summary: ProvisionSummary, output_format: str) -> None:
    """Print the run summary as text or JSON."""
    if output_format == "json":
        click.echo(summary.model_dump_json(indent=2))
        return

    console.print(Panel(
        f"[bold]{summary.subscription_name or 'Unknown subscription'}[/bold]\n"
        f"ID: {summary.subscription_id or '-'}",
        title="Subscription",
    ))

    table = Table(title="Resources", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    group = summary.resource_group
    if group is not None:
        if group.existed:
            status = "existing"
        elif summary.what_if or group.id is None:
            status = "would be created"
        else:
            status = "created"
        table.add_row("Resource group", f"{group.name} ({status})")
        table.add_row("Location", group.location)
        if group.requested_location:
            table.add_row(
                "Requested location",
                f"[yellow]{group.requested_location} (ignored; group already exists)[/yellow]",
            )

    workspace = summary.workspace
    if workspace is not None:
        table.add_row("Workspace", workspace.name)
        if workspace.customer_id:
            table.add_row("Workspace ID", workspace.customer_id)
        if workspace.resource_id:
            table.add_row("Resource ID", workspace.resource_id)
        if summary.workspace_deployment is not None:
            table.add_row("Sentinel", "enabled" if workspace.sentinel_enabled else "not reported by template")

    if summary.solution:
        table.add_row("Solution", summary.solution)

    console.print(table)

    deployments = [d for d in (summary.workspace_deployment, summary.solution_deployment) if d]
    if deployments:
        deployments_table = Table(title="Deployments")
        deployments_table.add_column("Name", style="cyan")
        deployments_table.add_column("State")
        deployments_table.add_column("Duration")
        deployments_table.add_column("Correlation ID")
        for deployment in deployments:
            deployments_table.add_row(
                deployment.name,
                f"[green]{deployment.provisioning_state}[/green]",
                deployment.duration or "-",
                deployment.correlation_id or "-",
            )
        console.print(deployments_table)

    for result in summary.what_if:
        what_if_table = Table(title=f"What-if: {result.deployment_name}")
        what_if_table.add_column("Change", style="cyan")
        what_if_table.add_column("Resources", justify="right")
        for change_type, count in sorted(result.counts().items()):
            what_if_table.add_row(change_type, str(count))
        if not result.changes:
            what_if_table.add_row("[dim]none[/dim]", "0")
        console.print(what_if_table)

    if summary.solution_deployment is None and summary.workspace_deployment is not None:
        console.print("\n[bold]Next steps:[/bold]")
        console.print("1. List available solutions: [cyan]sentinel-deploy solutions[/cyan]")
        console.print("2. Deploy one into this workspace: [cyan]sentinel-deploy deploy-solution <name>[/cyan]")


if __name__ == "__main__":
    main()
