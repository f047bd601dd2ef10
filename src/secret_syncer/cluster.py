"""Kubernetes cluster connection utilities.

This module loads the cluster configuration, either from the pod's service
account or from a kubeconfig context, and checks that the cluster answers.
"""

import click
import questionary
from icecream import ic
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import MaxRetryError

from secret_syncer import console
from secret_syncer.exceptions import ClusterConnectionError
from secret_syncer.styles import POINTER, PROMPT_STYLE, QMARK


def select_context(*, prompt: bool, context: str | None = None) -> str:
    """Choose the kubeconfig context to work with.

    Args:
        prompt: If True, prompt the user to select a context.
        context: Explicit context name; used as-is when given.

    Returns:
        The selected context name.

    Raises:
        ClusterConnectionError: If kubeconfig is invalid or missing.
        click.Abort: If user cancels context selection.

    """
    try:
        contexts, current_context = config.list_kube_config_contexts()
    except ConfigException as e:
        raise ClusterConnectionError(f"Invalid or missing kubeconfig: {e}") from e

    if context is not None:
        return context

    if prompt:
        context_names: list[str] = [ctx["name"] for ctx in contexts]
        selected: str | None = questionary.select(
            "Select context to work with",
            choices=context_names,
            style=PROMPT_STYLE,
            pointer=POINTER,
            qmark=QMARK,
        ).ask()
        if selected is None:
            console.warning("Context selection cancelled.")
            raise click.Abort()
        return selected

    return str(current_context["name"])


def connect(*, in_cluster: bool, prompt: bool = False, context: str | None = None) -> client.ApiClient:
    """Load the cluster configuration and return an API client.

    Args:
        in_cluster: Use the pod's service account instead of a kubeconfig.
        prompt: Prompt for the kubeconfig context.
        context: Explicit kubeconfig context name.

    Returns:
        An ApiClient bound to the loaded configuration.

    Raises:
        ClusterConnectionError: If the configuration cannot be loaded.

    """
    if in_cluster:
        try:
            config.load_incluster_config()
        except ConfigException as e:
            raise ClusterConnectionError(f"Not running inside a cluster: {e}") from e
        console.action("Working with in-cluster configuration")
    else:
        name = select_context(prompt=prompt, context=context)
        try:
            config.load_kube_config(context=name)
        except ConfigException as e:
            raise ClusterConnectionError(f"Failed to load context '{name}': {e}") from e
        console.action(f"Working with {console.highlight(name)} cluster")

    return client.ApiClient()


def check_namespace(api_client: client.ApiClient, namespace: str) -> bool:
    """Check that the cluster is reachable and ``namespace`` exists.

    Args:
        api_client: The client to check with.
        namespace: Namespace that will hold the synced secrets.

    Returns:
        True if the namespace exists, False otherwise.

    Raises:
        ClusterConnectionError: If the cluster is unreachable.

    """
    try:
        client.CoreV1Api(api_client).read_namespace(name=namespace)
    except MaxRetryError as e:
        raise ClusterConnectionError(f"Failed to connect to the Kubernetes cluster: {e.reason}") from e
    except ApiException as e:
        ic(e.status)
        if e.status == 404:
            return False
        raise ClusterConnectionError(f"Failed to read namespace {namespace}: {e.status} {e.reason}") from e
    return True
