"""Shared test fixtures for secret-syncer tests."""

import copy
from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client

from secret_syncer.exceptions import SyncFailedError
from secret_syncer.models import ReconcileContext
from secret_syncer.patch import create_merge_patch
from secret_syncer.reconciler import SecretSyncer

SECRETS_NAMESPACE = "synced-secrets"


def make_secret(
    namespace: str = "payments",
    name: str = "api-key",
    *,
    data: dict[str, str] | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    secret_type: str = "Opaque",
    immutable: bool | None = None,
) -> client.V1Secret:
    """Build a V1Secret as the API server would return it."""
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(
            namespace=namespace,
            name=name,
            labels=labels,
            annotations=annotations,
        ),
        data={"k": "djE="} if data is None else data,
        type=secret_type,
        immutable=immutable,
    )


class FakeSecretStore:
    """In-memory SecretStore that behaves like the API server.

    Assigns uids and resource versions, rejects patches based on a stale
    resource version with 409 and records every mutating call.
    """

    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.ingresses: dict[str, list[client.V1Ingress]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def put(self, secret: client.V1Secret) -> client.V1Secret:
        """Store a secret directly, as if an external actor created it."""
        stored = copy.deepcopy(secret)
        stored.metadata.uid = stored.metadata.uid or f"uid-{stored.metadata.namespace}-{stored.metadata.name}"
        stored.metadata.resource_version = self._next_version()
        self.secrets[(stored.metadata.namespace, stored.metadata.name)] = stored
        return stored

    def remove(self, namespace: str, name: str) -> None:
        """Delete a secret directly, as if an external actor deleted it."""
        del self.secrets[(namespace, name)]

    def get(self, ctx, namespace, name):
        ctx.raise_if_cancelled()
        secret = self.secrets.get((namespace, name))
        return copy.deepcopy(secret) if secret is not None else None

    def list_ingresses(self, ctx, namespace):
        ctx.raise_if_cancelled()
        return self.ingresses.get(namespace, [])

    def create(self, ctx, secret):
        ctx.raise_if_cancelled()
        key = (secret.metadata.namespace, secret.metadata.name)
        if key in self.secrets:
            raise SyncFailedError("already exists", status=409)
        self.calls.append(("create", *key))
        self.put(secret)

    def patch(self, ctx, original, modified):
        key = (original.metadata.namespace, original.metadata.name)
        if not create_merge_patch(original.to_dict(), modified.to_dict()):
            return False
        ctx.raise_if_cancelled()
        current = self.secrets.get(key)
        if current is None:
            raise SyncFailedError("not found", status=404)
        if current.metadata.resource_version != original.metadata.resource_version:
            raise SyncFailedError("conflict", status=409)
        self.calls.append(("patch", *key))
        self.put(modified)
        return True

    def delete(self, ctx, secret):
        ctx.raise_if_cancelled()
        key = (secret.metadata.namespace, secret.metadata.name)
        if key not in self.secrets:
            raise SyncFailedError("not found", status=404)
        self.calls.append(("delete", *key))
        del self.secrets[key]

    def synced(self, namespace: str = "payments", name: str = "api-key") -> client.V1Secret | None:
        """Return the stored synced copy of a source secret."""
        return self.secrets.get((SECRETS_NAMESPACE, f"{namespace}-{name}"))


class StaticPredicate:
    """Predicate returning a fixed answer, switchable between calls."""

    def __init__(self, eligible: bool = True) -> None:
        self.eligible = eligible
        self.calls: list[tuple] = []

    def is_eligible(self, ctx, reader, secret):
        self.calls.append((ctx, reader, secret))
        return self.eligible


@pytest.fixture
def ctx():
    """Reconcile context with a request timeout."""
    return ReconcileContext(request_timeout=5)


@pytest.fixture
def store():
    """In-memory secret store."""
    return FakeSecretStore()


@pytest.fixture
def predicate():
    """Switchable eligibility predicate, eligible by default."""
    return StaticPredicate()


@pytest.fixture
def syncer(store, predicate):
    """SecretSyncer wired to the in-memory store."""
    return SecretSyncer(SECRETS_NAMESPACE, store, predicate)


@pytest.fixture
def mock_kube_contexts():
    """Mock kubernetes config contexts."""
    with patch("kubernetes.config.list_kube_config_contexts") as mock:
        mock.return_value = ([{"name": "test-context"}], {"name": "test-context"})
        yield mock


@pytest.fixture
def mock_kube_config():
    """Mock kubernetes config loading."""
    with patch("kubernetes.config.load_kube_config") as mock:
        yield mock


@pytest.fixture
def mock_core_v1_api():
    """Mock CoreV1Api used by the store and cluster checks."""
    with patch("kubernetes.client.CoreV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_networking_v1_api():
    """Mock NetworkingV1Api used for ingress lookups."""
    with patch("kubernetes.client.NetworkingV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance
