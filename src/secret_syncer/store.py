"""Cluster access for the reconciler.

This module defines the narrow capabilities the reconciler and the
eligibility predicates consume, and their implementation on top of the
official Kubernetes client.
"""

from typing import Any, Protocol

from icecream import ic
from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from secret_syncer.exceptions import SyncFailedError
from secret_syncer.models import ReconcileContext
from secret_syncer.patch import create_merge_patch

_MERGE_PATCH = "application/merge-patch+json"


class SecretReader(Protocol):
    """Read-only view of the cluster handed to eligibility predicates."""

    def get(self, ctx: ReconcileContext, namespace: str, name: str) -> client.V1Secret | None:
        """Return the secret, or None if it does not exist."""
        ...

    def list_ingresses(self, ctx: ReconcileContext, namespace: str) -> list[client.V1Ingress]:
        """Return all ingresses in a namespace."""
        ...


class SecretStore(SecretReader, Protocol):
    """Read/write access to secrets used by the reconciler."""

    def create(self, ctx: ReconcileContext, secret: client.V1Secret) -> None:
        """Create the secret."""
        ...

    def patch(self, ctx: ReconcileContext, original: client.V1Secret, modified: client.V1Secret) -> bool:
        """Conditionally update ``original`` to ``modified``; return whether a request was sent."""
        ...

    def delete(self, ctx: ReconcileContext, secret: client.V1Secret) -> None:
        """Delete the secret."""
        ...


def _failure(operation: str, namespace: str, name: str, err: Exception) -> SyncFailedError:
    if isinstance(err, ApiException):
        return SyncFailedError(
            f"Failed to {operation} secret {namespace}/{name}: {err.status} {err.reason}",
            status=err.status,
        )
    return SyncFailedError(f"Failed to {operation} secret {namespace}/{name}: {err}")


class KubernetesSecretStore:
    """SecretStore implementation backed by CoreV1Api and NetworkingV1Api.

    Every call checks the context for cancellation first and passes the
    context's request timeout to the client. Only ``get`` treats 404 as a
    regular outcome; every other error is raised as SyncFailedError.

    Attributes:
        api_client: The shared ApiClient, also used for serialization.

    """

    def __init__(self, api_client: client.ApiClient | None = None) -> None:
        """Initialize the store.

        Args:
            api_client: ApiClient to use. Defaults to one built from the
                        globally loaded kube configuration.

        """
        self.api_client: client.ApiClient = api_client or client.ApiClient()
        self.core_v1_api = client.CoreV1Api(self.api_client)
        self._networking_v1_api = client.NetworkingV1Api(self.api_client)

    def serialize(self, secret: client.V1Secret) -> dict[str, Any]:
        """Return the wire representation of a secret."""
        return self.api_client.sanitize_for_serialization(secret)

    def get(self, ctx: ReconcileContext, namespace: str, name: str) -> client.V1Secret | None:
        ctx.raise_if_cancelled()
        try:
            return self.core_v1_api.read_namespaced_secret(
                name=name, namespace=namespace, _request_timeout=ctx.request_timeout
            )
        except ApiException as err:
            if err.status == 404:
                ic(f"{namespace}/{name} not found")
                return None
            raise _failure("get", namespace, name, err) from err
        except HTTPError as err:
            raise _failure("get", namespace, name, err) from err

    def list_ingresses(self, ctx: ReconcileContext, namespace: str) -> list[client.V1Ingress]:
        ctx.raise_if_cancelled()
        try:
            return self._networking_v1_api.list_namespaced_ingress(
                namespace=namespace, _request_timeout=ctx.request_timeout
            ).items
        except (ApiException, HTTPError) as err:
            raise SyncFailedError(
                f"Failed to list ingresses in {namespace}: {err}",
                status=getattr(err, "status", None),
            ) from err

    def create(self, ctx: ReconcileContext, secret: client.V1Secret) -> None:
        ctx.raise_if_cancelled()
        meta = secret.metadata
        try:
            self.core_v1_api.create_namespaced_secret(
                namespace=meta.namespace, body=secret, _request_timeout=ctx.request_timeout
            )
        except (ApiException, HTTPError) as err:
            raise _failure("create", meta.namespace, meta.name, err) from err

    def patch(self, ctx: ReconcileContext, original: client.V1Secret, modified: client.V1Secret) -> bool:
        """Send a merge patch computed as the diff from ``original`` to ``modified``.

        The patch carries the resource version of ``original``, so the API
        server rejects it with 409 Conflict if the secret changed since it
        was read. No request is sent when the diff is empty.

        Args:
            ctx: The reconcile context.
            original: The secret as read from the server.
            modified: A copy of ``original`` with the synced fields overwritten.

        Returns:
            True if a patch request was sent, False if nothing differed.

        Raises:
            SyncFailedError: If the patch is rejected, including on conflict.

        """
        meta = original.metadata
        body = create_merge_patch(self.serialize(original), self.serialize(modified))
        if not body:
            return False

        body.setdefault("metadata", {})["resourceVersion"] = meta.resource_version
        ic(body)

        ctx.raise_if_cancelled()
        try:
            self.core_v1_api.patch_namespaced_secret(
                name=meta.name,
                namespace=meta.namespace,
                body=body,
                _request_timeout=ctx.request_timeout,
                _content_type=_MERGE_PATCH,
            )
        except (ApiException, HTTPError) as err:
            raise _failure("patch", meta.namespace, meta.name, err) from err
        return True

    def delete(self, ctx: ReconcileContext, secret: client.V1Secret) -> None:
        ctx.raise_if_cancelled()
        meta = secret.metadata
        try:
            self.core_v1_api.delete_namespaced_secret(
                name=meta.name, namespace=meta.namespace, _request_timeout=ctx.request_timeout
            )
        except (ApiException, HTTPError) as err:
            raise _failure("delete", meta.namespace, meta.name, err) from err

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"KubernetesSecretStore(host={self.api_client.configuration.host!r})"
