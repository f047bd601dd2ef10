"""Custom exceptions for secret-syncer.

This module defines the exception hierarchy used throughout the application.
Every failure of a reconcile pass is retryable; the controller decides when
to try again.
"""


class SecretSyncError(Exception):
    """Base exception for all secret-syncer errors.

    All custom exceptions in this package inherit from this class,
    allowing callers to catch all secret-syncer errors with a single
    except clause if desired.
    """

    pass


class SyncFailedError(SecretSyncError):
    """Raised when a reconcile pass could not converge the synced secret.

    This can occur when:
    - The API server returns an error other than "not found" on a lookup
    - A create, patch or delete request is rejected
    - A conditional patch hits a concurrent modification (409 Conflict)
    - The cluster is unreachable

    The original error is always chained as ``__cause__``.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_conflict(self) -> bool:
        """Whether the failure was an optimistic-concurrency conflict."""
        return self.status == 409


class ReconcileCancelledError(SecretSyncError):
    """Raised when the reconcile context is cancelled before a cluster call."""

    pass


class ClusterConnectionError(SecretSyncError):
    """Raised when connection to the Kubernetes cluster fails.

    This can occur when:
    - The kubeconfig is invalid or missing
    - The in-cluster service account is not mounted
    - The cluster is unreachable
    """

    pass


class InvalidSecretRefError(SecretSyncError):
    """Raised when a ``namespace/name`` reference cannot be parsed."""

    pass
