"""Network Peering Operator CLI (peering-operator).

Usage:
    peering-operator validate ./specs        # Validate resource files
    peering-operator reconcile peer.yaml     # Reconcile one resource once
    peering-operator run                     # Run the operator loop
    peering-operator status my-peering       # Show persisted status
    peering-operator peers <project-id>      # List remote peering connections
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from azure.core.exceptions import AzureError

from .client import ApiClient
from .config import Config, ConfigurationError
from .main import main as operator_main
from .main import setup_logging
from .manager import persist_result
from .models import ProviderName
from .reconciler import PeeringReconciler
from .service import HttpNetworkPeeringService, ServiceError
from .spec_loader import SpecLoadError, discover_resources, load_resource
from .status_store import StatusStore, StatusStoreError
from .translation import TranslationError

DEFAULT_STATE_DIR = "/state"


def _load_config(**overrides: object) -> Config:
    try:
        return Config.from_env(**overrides)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="peering-operator")
@click.option("--verbose", "-v", is_flag=True, help="Emit structured debug logs")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Network Peering Operator CLI.

    Reconciles NetworkPeering resources against the networking API.
    """
    ctx.obj = {"log_level": logging.DEBUG if verbose else logging.INFO}
    if verbose:
        setup_logging(logging.DEBUG)


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def validate(path: Path) -> None:
    """Validate a resource file or every resource file in a directory."""
    if path.is_dir():
        resources, errors = discover_resources(path)
        for key, loaded in sorted(resources.items()):
            click.echo(f"OK      {key} ({loaded.path.name})")
        for error_path, message in sorted(errors.items()):
            click.secho(f"INVALID {error_path.name}: {message}", fg="red", err=True)
        if errors:
            raise click.ClickException(f"{len(errors)} invalid resource file(s)")
        click.secho(f"✓ {len(resources)} resource(s) valid", fg="green")
        return

    try:
        resource = load_resource(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e
    click.secho(f"✓ {resource.metadata.key} is valid", fg="green")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="STATE_DIR",
    default=DEFAULT_STATE_DIR,
    help="Directory of persisted status records",
)
@click.option("--persist/--no-persist", default=True, help="Write the resulting status")
def reconcile(path: Path, state_dir: Path, persist: bool) -> None:
    """Reconcile a single resource file once and print the outcome."""
    try:
        resource = load_resource(path)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e

    config = _load_config(specs_dir=path.parent, state_dir=state_dir)
    store = StatusStore(state_dir)
    key = resource.metadata.key

    try:
        record = store.get(key)
    except StatusStoreError as e:
        raise click.ClickException(str(e)) from e
    marker = False
    if record is not None:
        resource = resource.model_copy(update={"status": record.resource.status})
        marker = record.lifecycle_marker

    with ApiClient.from_config(config) as api:
        result = PeeringReconciler.from_config(config, api).reconcile(resource, marker)

    if persist:
        try:
            persist_result(store, resource, result)
        except StatusStoreError as e:
            raise click.ClickException(str(e)) from e

    click.echo(f"Resource:       {key}")
    click.echo(f"Outcome:        {result.outcome.value}")
    if result.transition:
        click.echo(f"Transition:     {result.transition}")
    if result.reason:
        click.echo(f"Reason:         {result.reason}")
    if result.message:
        click.echo(f"Message:        {result.message}")
    click.echo(f"Peer ID:        {result.status.id or '-'}")
    click.echo(f"Lifecycle mark: {result.lifecycle_marker}")
    requeue = "never" if result.requeue_after is None else f"{result.requeue_after}s"
    click.echo(f"Requeue after:  {requeue}")
    if result.failed:
        sys.exit(1)


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the operator loop until interrupted (configured from the environment)."""
    sys.exit(asyncio.run(operator_main(ctx.obj["log_level"])))


@cli.command()
@click.argument("name")
@click.option("--namespace", "-n", default="default", help="Resource namespace")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="STATE_DIR",
    default=DEFAULT_STATE_DIR,
    help="Directory of persisted status records",
)
def status(name: str, namespace: str, state_dir: Path) -> None:
    """Show the persisted status of a resource as JSON."""
    key = f"{namespace}/{name}"
    try:
        record = StatusStore(state_dir).get(key)
    except StatusStoreError as e:
        raise click.ClickException(str(e)) from e
    if record is None:
        raise click.ClickException(f"No status recorded for {key}")

    payload = {
        "resource": key,
        "lifecycleMarker": record.lifecycle_marker,
        "outcome": record.outcome,
        "reason": record.reason,
        "message": record.message,
        "updatedAt": record.updated_at.isoformat(),
        "status": record.resource.status.model_dump(mode="json", by_alias=True),
    }
    click.echo(json.dumps(payload, indent=2))


@cli.command()
@click.argument("project_id")
@click.option(
    "--provider",
    "-p",
    type=click.Choice([p.value for p in ProviderName]),
    default=ProviderName.AWS.value,
    help="Cloud provider",
)
def peers(project_id: str, provider: str) -> None:
    """List the remote peering connections of a project."""
    config = _load_config(specs_dir=Path.cwd())
    with ApiClient.from_config(config) as api:
        try:
            found = HttpNetworkPeeringService(api).list_peers(project_id, provider)
        except (AzureError, ServiceError, TranslationError) as e:
            raise click.ClickException(str(e)) from e

    if not found:
        click.echo(f"No {provider} peering connections in project {project_id}")
        return
    for peer in found:
        line = f"{peer.id}  {peer.provider}  container={peer.container_id}  status={peer.status}"
        if peer.error_message:
            line += f"  error={peer.error_message}"
        click.echo(line)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
