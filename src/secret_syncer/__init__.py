"""secret-syncer: mirror Kubernetes secrets into a central namespace.

Every eligible secret gets a synced copy named ``<namespace>-<name>`` in the
configured secrets namespace. The copy follows its source and is removed
once the source is deleted or no longer eligible.

Example usage:
    from secret_syncer import KubernetesSecretStore, LabelSelectorPredicate, SecretSyncer
    from secret_syncer.models import ReconcileContext, SecretRef

    store = KubernetesSecretStore()
    syncer = SecretSyncer("cilium-secrets", store, LabelSelectorPredicate("cilium-secrets"))
    syncer.reconcile(ReconcileContext(request_timeout=30), SecretRef("payments", "api-key"))
"""

__version__ = "0.1.0"

from secret_syncer.cli import cli
from secret_syncer.config import SyncConfig
from secret_syncer.controller import SecretSyncController
from secret_syncer.exceptions import (
    ClusterConnectionError,
    InvalidSecretRefError,
    ReconcileCancelledError,
    SecretSyncError,
    SyncFailedError,
)
from secret_syncer.predicates import IngressReferencePredicate, LabelSelectorPredicate, SyncAll
from secret_syncer.reconciler import SecretSyncer
from secret_syncer.store import KubernetesSecretStore

__all__ = [
    # Version
    "__version__",
    # Main CLI
    "cli",
    # Classes
    "SyncConfig",
    "SecretSyncController",
    "SecretSyncer",
    "KubernetesSecretStore",
    # Predicates
    "SyncAll",
    "LabelSelectorPredicate",
    "IngressReferencePredicate",
    # Exceptions
    "SecretSyncError",
    "SyncFailedError",
    "ReconcileCancelledError",
    "ClusterConnectionError",
    "InvalidSecretRefError",
]
