from __future__ import annotations

import logging
import sys

import click

from .config import LOG_LEVELS, AppConfig
from .k8s import (
    KubernetesAuthenticationError,
    KubernetesClients,
    KubernetesDiscoveryError,
    VolumeNotFoundError,
    load_kubernetes_clients,
)
from .plugins import PLUGINS
from .printers import OUTPUT_FORMATS, OUTPUT_TABLE, empty_table_message, render_rows
from .upgrade_status import get_job_status
from .volume import VOLUME_COLUMNS, UnsupportedVolumeError, describe_volumes, list_volumes

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"], max_content_width=120)
_HANDLED_ERRORS = (
    KubernetesAuthenticationError,
    KubernetesDiscoveryError,
    VolumeNotFoundError,
    UnsupportedVolumeError,
)


def _clients(ctx: click.Context) -> KubernetesClients:
    app_config: AppConfig = ctx.obj
    return load_kubernetes_clients(
        kubeconfig_path=app_config.kubeconfig_path,
        context=app_config.context,
        in_cluster=app_config.in_cluster,
        request_timeout_seconds=app_config.request_timeout_seconds,
    )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--kubeconfig", "kubeconfig_path", default=None, help="Path to the kubeconfig file.")
@click.option("--context", "kube_context", default=None, help="Kubeconfig context to use.")
@click.option("--in-cluster", is_flag=True, help="Use in-cluster service account credentials.")
@click.option("--openebs-namespace", default=None, help="Namespace where OpenEBS components run.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Diagnostic verbosity written to stderr.",
)
@click.pass_context
def cli(ctx, kubeconfig_path, kube_context, in_cluster, openebs_namespace, log_level):
    """Inspect OpenEBS local PV volumes and upgrade jobs."""
    overrides = {
        "kubeconfig_path": kubeconfig_path,
        "context": kube_context,
        "in_cluster": True if in_cluster else None,
        "openebs_namespace": openebs_namespace,
        "log_level": log_level,
    }
    try:
        app_config = AppConfig(**{key: value for key, value in overrides.items() if value is not None})
    except ValueError as error:
        raise click.ClickException(f"Invalid configuration: {error}") from error
    logging.basicConfig(
        level=app_config.log_level.upper(),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = app_config


@cli.group()
def volume():
    """List and describe volumes."""


@volume.command("list")
@click.option(
    "--cas-type",
    type=click.Choice(sorted(PLUGINS)),
    default=None,
    help="Only show volumes of this storage engine.",
)
@click.option("-n", "--namespace", default="", help="Only show volumes whose custom resource is in this namespace.")
@click.option("-o", "--output", type=click.Choice(OUTPUT_FORMATS), default=OUTPUT_TABLE, show_default=True)
@click.pass_context
def volume_list(ctx, cas_type, namespace, output):
    """List volumes provisioned by the supported CSI drivers."""
    plugins = [PLUGINS[cas_type]] if cas_type else list(PLUGINS.values())
    try:
        rows = list_volumes(_clients(ctx), plugins, namespace)
    except _HANDLED_ERRORS as error:
        raise click.ClickException(str(error)) from error

    if not rows and output == OUTPUT_TABLE:
        click.echo(empty_table_message("volumes", namespace, cas_type or ""), err=True)
        return
    click.echo(render_rows(VOLUME_COLUMNS, rows, output))


@volume.command("describe")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def volume_describe(ctx, names):
    """Show details of one or more volumes."""
    try:
        describe_volumes(_clients(ctx), names, sys.stdout)
    except _HANDLED_ERRORS as error:
        raise click.ClickException(str(error)) from error


@cli.group()
def upgrade():
    """Inspect upgrade jobs."""


@upgrade.command("status")
@click.option("--wait", is_flag=True, help="Follow the logs of the first upgrade job pod until it exits.")
@click.pass_context
def upgrade_status(ctx, wait):
    """Print logs of upgrade jobs."""
    app_config: AppConfig = ctx.obj
    try:
        get_job_status(
            _clients(ctx),
            app_config.openebs_namespace,
            sys.stdout,
            wait=wait,
        )
    except _HANDLED_ERRORS as error:
        raise click.ClickException(str(error)) from error


def main() -> None:
    cli(prog_name="nkvi")


if __name__ == "__main__":
    main()
