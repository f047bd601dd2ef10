"""Eligibility predicates deciding which secrets get synced.

A predicate is anything with an ``is_eligible(ctx, reader, secret)`` method.
Secrets already living in the sync namespace are never eligible, otherwise
synced copies would themselves be synced.
"""

from typing import Protocol

from icecream import ic
from kubernetes import client

from secret_syncer.models import ReconcileContext
from secret_syncer.store import SecretReader

DEFAULT_SYNC_LABEL = "secretsync.cilium.io/sync"


class EligibilityPredicate(Protocol):
    """Decides whether a source secret should have a synced copy."""

    def is_eligible(self, ctx: ReconcileContext, reader: SecretReader, secret: client.V1Secret) -> bool:
        """Return True if ``secret`` should be synced.

        Args:
            ctx: The reconcile context, to be passed to any reader call.
            reader: Read-only cluster access for additional lookups.
            secret: The source secret.

        """
        ...


class SyncAll:
    """Every secret outside the sync namespace is eligible."""

    def __init__(self, secrets_namespace: str) -> None:
        self.secrets_namespace = secrets_namespace

    def is_eligible(self, ctx: ReconcileContext, reader: SecretReader, secret: client.V1Secret) -> bool:
        return secret.metadata.namespace != self.secrets_namespace

    def __repr__(self) -> str:
        return f"SyncAll(secrets_namespace={self.secrets_namespace!r})"


class LabelSelectorPredicate(SyncAll):
    """Secrets carrying ``key=value`` in their labels are eligible."""

    def __init__(self, secrets_namespace: str, key: str = DEFAULT_SYNC_LABEL, value: str = "true") -> None:
        super().__init__(secrets_namespace)
        self.key = key
        self.value = value

    @classmethod
    def parse(cls, secrets_namespace: str, selector: str) -> "LabelSelectorPredicate":
        """Build the predicate from a ``key=value`` string.

        Raises:
            ValueError: If the selector is not of the form key=value.

        """
        key, sep, value = selector.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid label selector '{selector}', expected 'key=value'")
        return cls(secrets_namespace, key=key.strip(), value=value.strip())

    def is_eligible(self, ctx: ReconcileContext, reader: SecretReader, secret: client.V1Secret) -> bool:
        if not super().is_eligible(ctx, reader, secret):
            return False
        labels = secret.metadata.labels or {}
        return labels.get(self.key) == self.value

    def __repr__(self) -> str:
        return f"LabelSelectorPredicate({self.key}={self.value})"


class IngressReferencePredicate(SyncAll):
    """Secrets referenced as a TLS secret by an Ingress are eligible.

    Only ingresses of the given class are considered; with no class set,
    every ingress in the secret's namespace counts.
    """

    def __init__(self, secrets_namespace: str, ingress_class: str | None = None) -> None:
        super().__init__(secrets_namespace)
        self.ingress_class = ingress_class

    def is_eligible(self, ctx: ReconcileContext, reader: SecretReader, secret: client.V1Secret) -> bool:
        if not super().is_eligible(ctx, reader, secret):
            return False

        for ingress in reader.list_ingresses(ctx, secret.metadata.namespace):
            spec = ingress.spec
            if spec is None:
                continue
            if self.ingress_class is not None and spec.ingress_class_name != self.ingress_class:
                continue
            for tls in spec.tls or []:
                if tls.secret_name == secret.metadata.name:
                    ic(f"{secret.metadata.namespace}/{secret.metadata.name} referenced by {ingress.metadata.name}")
                    return True
        return False

    def __repr__(self) -> str:
        return f"IngressReferencePredicate(ingress_class={self.ingress_class!r})"
