"""Data models for secret-syncer.

This module provides the small value types passed between the controller,
the reconciler and the cluster store.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from secret_syncer.exceptions import InvalidSecretRefError, ReconcileCancelledError

# Provenance labels set on every synced secret
OWNING_SECRET_NAMESPACE = "secretsync.cilium.io/owning-secret-namespace"
OWNING_SECRET_NAME = "secretsync.cilium.io/owning-secret-name"


class SyncAction(str, Enum):
    """What a reconcile pass did to the synced secret.

    Inherits from str so values print cleanly in console output.
    """

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


class SecretRef(NamedTuple):
    """Identity of a source secret.

    Attributes:
        namespace: The namespace of the source secret.
        name: The name of the source secret.

    """

    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "SecretRef":
        """Parse a ``namespace/name`` string.

        Args:
            value: The reference string.

        Returns:
            The parsed SecretRef.

        Raises:
            InvalidSecretRefError: If the string is not of the form namespace/name.

        """
        namespace, sep, name = value.partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise InvalidSecretRefError(f"Invalid secret reference '{value}', expected 'namespace/name'")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of a single reconcile pass.

    Attributes:
        action: What was done to the synced secret.
        requeue_after: Seconds after which the ref should be reconciled
            again, or None when converged.

    """

    action: SyncAction
    requeue_after: float | None = None


@dataclass
class ReconcileContext:
    """Cancellation and timeout settings carried through every cluster call.

    Attributes:
        request_timeout: Per-request timeout in seconds passed to the client.
        cancelled: Event that, once set, aborts the pass before the next call.

    """

    request_timeout: float | None = None
    cancelled: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        """Cancel every pass sharing this context."""
        self.cancelled.set()

    def raise_if_cancelled(self) -> None:
        """Raise ReconcileCancelledError if the context has been cancelled."""
        if self.cancelled.is_set():
            raise ReconcileCancelledError("Reconcile cancelled")
