#!/usr/bin/env python
"""Command-line interface for secret-syncer.

This module provides the main CLI entry point, turning command-line options
into a SyncConfig and wiring the controller, reconciler, store and
eligibility predicate together.
"""

import signal
import sys

import click
import yaml
from icecream import ic

from secret_syncer import __version__, console
from secret_syncer.cluster import check_namespace, connect
from secret_syncer.config import SyncConfig
from secret_syncer.controller import SecretSyncController
from secret_syncer.exceptions import ClusterConnectionError, InvalidSecretRefError, SecretSyncError
from secret_syncer.models import ReconcileContext, SecretRef
from secret_syncer.predicates import (
    DEFAULT_SYNC_LABEL,
    EligibilityPredicate,
    IngressReferencePredicate,
    LabelSelectorPredicate,
    SyncAll,
)
from secret_syncer.projection import desired_synced_secret
from secret_syncer.reconciler import SecretSyncer
from secret_syncer.store import KubernetesSecretStore


def build_predicate(
    secrets_namespace: str,
    *,
    sync_all: bool,
    label_selector: str,
    ingress: bool,
    ingress_class: str | None,
) -> EligibilityPredicate:
    """Build the eligibility predicate selected on the command line.

    Raises:
        click.BadParameter: If the label selector is malformed.

    """
    if sync_all:
        return SyncAll(secrets_namespace)
    if ingress or ingress_class is not None:
        return IngressReferencePredicate(secrets_namespace, ingress_class=ingress_class)
    try:
        return LabelSelectorPredicate.parse(secrets_namespace, label_selector)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--label-selector") from None


def show_synced_secret(syncer: SecretSyncer, store: KubernetesSecretStore, ctx: ReconcileContext, ref: str) -> None:
    """Print the synced secret that would be produced for ``ref`` as YAML.

    Raises:
        click.ClickException: If the reference is invalid or the secret does not exist.

    """
    try:
        source_ref = SecretRef.parse(ref)
    except InvalidSecretRefError as e:
        raise click.ClickException(str(e)) from None

    source = store.get(ctx, source_ref.namespace, source_ref.name)
    if source is None:
        raise click.ClickException(f"Secret '{source_ref}' not found")

    if not syncer.predicate.is_eligible(ctx, store, source):
        console.warning(f"{console.highlight(str(source_ref))} is not eligible and would not be synced")

    desired = desired_synced_secret(syncer.secrets_namespace, source)
    click.echo(yaml.safe_dump(store.serialize(desired), sort_keys=False))


def run_once(controller: SecretSyncController, secrets_namespace: str) -> None:
    """Reconcile every secret once and print a summary."""
    counts = controller.run_once()
    ic(counts)
    console.newline()
    console.summary_panel(
        "Secrets Synced",
        {
            "Namespace": secrets_namespace,
            "Created": str(counts["created"]),
            "Updated": str(counts["updated"]),
            "Deleted": str(counts["deleted"]),
            "Unchanged": str(counts["unchanged"]),
            "Failed": str(counts["failed"]),
        },
    )
    if counts["failed"]:
        sys.exit(1)


@click.command(
    help="Mirror Kubernetes secrets into a central namespace",
    context_settings={"auto_envvar_prefix": "SECRET_SYNCER"},
)
@click.option("--version", "-v", required=False, is_flag=True, help="print version")
@click.option("--debug", required=False, is_flag=True, help="print debug information")
@click.option("--select", required=False, is_flag=True, default=False, help="prompt for context select")
@click.option("--context", required=False, help="kubeconfig context to use")
@click.option("--in-cluster", required=False, is_flag=True, help="use the pod service account")
@click.option(
    "--secrets-namespace",
    "-n",
    required=False,
    envvar="SECRET_SYNCER_SECRETS_NAMESPACE",
    show_envvar=True,
    help="namespace holding the synced secrets",
)
@click.option(
    "--workers", type=click.IntRange(min=1), default=1, show_default=True, show_envvar=True, help="parallel reconciles"
)
@click.option(
    "--resync-period",
    type=click.FloatRange(min=0),
    default=300,
    show_default=True,
    show_envvar=True,
    help="seconds between full resyncs, 0 disables",
)
@click.option(
    "--request-timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=30,
    show_default=True,
    show_envvar=True,
    help="seconds before an API request times out",
)
@click.option("--sync-all", required=False, is_flag=True, help="sync every secret")
@click.option(
    "--label-selector",
    default=f"{DEFAULT_SYNC_LABEL}=true",
    show_default=True,
    help="sync secrets carrying this key=value label",
)
@click.option("--ingress", required=False, is_flag=True, help="sync secrets referenced by an Ingress TLS section")
@click.option("--ingress-class", required=False, help="only consider ingresses of this class")
@click.option("--once", required=False, is_flag=True, help="reconcile every secret once and exit")
@click.option("--show", required=False, metavar="NAMESPACE/NAME", help="print the synced copy of a secret")
def cli(
    version: bool,
    debug: bool,
    select: bool,
    context: str | None,
    in_cluster: bool,
    secrets_namespace: str | None,
    workers: int,
    resync_period: float,
    request_timeout: float,
    sync_all: bool,
    label_selector: str,
    ingress: bool,
    ingress_class: str | None,
    once: bool,
    show: str | None,
) -> None:
    """Process CLI arguments and run the controller.

    Args:
        version: Print version and exit.
        debug: Enable debug output.
        select: Prompt for Kubernetes context selection.
        context: Kubeconfig context name.
        in_cluster: Use in-cluster configuration.
        secrets_namespace: Namespace holding the synced secrets.
        workers: Number of worker threads.
        resync_period: Seconds between full resyncs.
        request_timeout: Per-request timeout in seconds.
        sync_all: Sync every secret.
        label_selector: key=value label marking secrets to sync.
        ingress: Sync secrets referenced by ingresses.
        ingress_class: Ingress class to consider.
        once: Reconcile once and exit.
        show: Print the synced copy of NAMESPACE/NAME and exit.

    """
    if not debug:
        ic.disable()

    if version:
        click.echo(__version__)
        return

    if not secrets_namespace:
        raise click.UsageError("Missing option '--secrets-namespace' / '-n'.")

    predicate = build_predicate(
        secrets_namespace,
        sync_all=sync_all,
        label_selector=label_selector,
        ingress=ingress,
        ingress_class=ingress_class,
    )
    sync_config = SyncConfig(
        secrets_namespace=secrets_namespace,
        workers=workers,
        resync_period=resync_period,
        request_timeout=request_timeout,
    )
    ic(sync_config, predicate)

    try:
        api_client = connect(in_cluster=in_cluster, prompt=select, context=context)
        store = KubernetesSecretStore(api_client)
        syncer = SecretSyncer(secrets_namespace, store, predicate)

        if show:
            show_synced_secret(syncer, store, ReconcileContext(request_timeout=request_timeout), show)
            return

        with console.spinner("Checking cluster connection..."):
            namespace_exists = check_namespace(api_client, secrets_namespace)
        if not namespace_exists:
            console.error(f"Namespace {console.highlight(secrets_namespace)} does not exist, create it first")
            sys.exit(1)

        controller = SecretSyncController(sync_config, syncer, store.core_v1_api)
        if once:
            run_once(controller, secrets_namespace)
            return

        signal.signal(signal.SIGTERM, lambda *_: controller.stop())
        try:
            controller.run()
        except KeyboardInterrupt:
            console.warning("Interrupted, shutting down")
            controller.stop()
    except ClusterConnectionError as e:
        console.error(f"Cluster connection failed: {e}")
        sys.exit(1)
    except SecretSyncError as e:
        console.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    cli()
